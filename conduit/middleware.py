import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# SQL statements issued on behalf of the request being served.
query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """Hook *engine* so every statement it sends bumps ``query_count_var``."""

    def _on_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)

    event.listen(engine.sync_engine, "before_cursor_execute", _on_cursor_execute)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class TimingMiddleware:
    """
    Stamp ``X-Response-Time-Ms`` and ``X-Query-Count`` on HTTP responses and
    write one access-log line per request.

    Written as raw ASGI: the app runs in the caller's context, so the counter
    it increments is the one read back here.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        token = query_count_var.set(0)
        started = time.perf_counter()
        status = 500

        async def send_with_diagnostics(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(_elapsed_ms(started)).encode()),
                    (b"x-query-count", str(query_count_var.get()).encode()),
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_with_diagnostics)
        finally:
            logger.info(
                "%s %s %d %.2fms queries=%d",
                scope["method"],
                scope["path"],
                status,
                _elapsed_ms(started),
                query_count_var.get(),
            )
            query_count_var.reset(token)
