import logging

from marketplace.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Configure the root logger once at application startup.

    Module loggers (``logging.getLogger(__name__)``) propagate to the root
    handler, so nothing else needs to be wired per module.  SQLAlchemy's
    engine logger is left to ``settings.DEBUG`` via ``echo``.
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # uvicorn installs its own handlers; keep its access log at our level.
    logging.getLogger("uvicorn.access").setLevel((level or settings.LOG_LEVEL).upper())
