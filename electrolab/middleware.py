import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("electrolab.requests")

# SQL statements issued on behalf of the current request.
statement_count: ContextVar[int] = ContextVar("statement_count", default=0)


def count_statements(engine) -> None:
    """Attach a listener to *engine* that bumps ``statement_count`` per statement."""

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _on_execute(conn, cursor, statement, parameters, context, executemany):
        statement_count.set(statement_count.get() + 1)


class RequestMetricsMiddleware:
    """
    Pure ASGI middleware adding ``X-Response-Time-Ms`` and ``X-Query-Count``
    to every HTTP response and writing one access-log line per request.

    It runs the app in the caller's task (no ``BaseHTTPMiddleware``), so
    the statement counter set by the engine listener is visible here.
    """

    def __init__(self, app: ASGIApp, slow_ms: float = 500.0) -> None:
        self.app = app
        self.slow_ms = slow_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        statement_count.set(0)
        started = time.perf_counter()
        status_code = 500

        async def send_with_metrics(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                elapsed = (time.perf_counter() - started) * 1000
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", f"{elapsed:.2f}".encode()),
                    (b"x-query-count", str(statement_count.get()).encode()),
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_with_metrics)
        finally:
            elapsed = (time.perf_counter() - started) * 1000
            level = logging.WARNING if elapsed >= self.slow_ms else logging.INFO
            logger.log(
                level,
                "%s %s -> %s in %.1fms (%d queries)",
                scope["method"], scope["path"], status_code, elapsed, statement_count.get(),
            )
