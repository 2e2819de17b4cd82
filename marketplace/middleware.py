import time
import uuid
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# ---------------------------------------------------------------------------
# Per-request context
# ---------------------------------------------------------------------------

query_count_var: ContextVar[int] = ContextVar("query_count", default=0)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="unknown")

CORRELATION_HEADER = b"x-correlation-id"
_MAX_CORRELATION_ID = 128


def install_query_counter(engine) -> None:
    """
    Count every statement *engine* sends to the database into
    ``query_count_var``, eager-load follow-up queries included.

    Call once per engine: ``database.py`` for the application engine,
    ``tests/conftest.py`` for the SQLite test engine.
    """

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


def _correlation_id(scope: Scope) -> str:
    """Client-supplied ``X-Correlation-ID`` (truncated), or a new uuid4 hex."""
    for name, value in scope.get("headers", []):
        if name == CORRELATION_HEADER and value:
            return value.decode("latin-1")[:_MAX_CORRELATION_ID]
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class TimingMiddleware:
    """
    Adds ``X-Response-Time-Ms``, ``X-Query-Count`` and ``X-Correlation-ID``
    to every HTTP response.

    Written as raw ASGI rather than ``BaseHTTPMiddleware``: the latter runs
    the endpoint in a child task, and the query counter it increments would
    not be visible here afterwards.

    Unhandled-exception 500s are sent by Starlette's outer error middleware
    and bypass this wrapper; ``unhandled_error_handler`` sets the
    correlation header on those itself.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        correlation_id = _correlation_id(scope)
        correlation_id_var.set(correlation_id)
        started = time.perf_counter()

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(elapsed_ms).encode()),
                    (b"x-query-count", str(query_count_var.get()).encode()),
                    (CORRELATION_HEADER, correlation_id.encode("latin-1")),
                ]
            await send(message)

        await self.app(scope, receive, send_with_headers)
