def envelope(data, message: str, meta: dict | None = None) -> dict:
    """Wrap *data* in the ``{status, message, data, meta?}`` success envelope."""
    body = {"status": "success", "message": message, "data": data}
    if meta is not None:
        body["meta"] = meta
    return body
