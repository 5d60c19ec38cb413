"""
Logging configuration for Audioly Backend

structlog on top of stdlib logging. Request scoped fields (request id,
method, path and, once the bearer token is verified, the caller's user id)
live in structlog's context variables, so relationship and catalog events
logged deep inside the store carry them without being passed around.
"""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from typing import Iterator, List

import structlog
from pythonjsonlogger import jsonlogger

from audioly.core.config import settings

REQUEST_ID_HEADER = "x-request-id"

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3", "aiomysql")


def _processors(json_output: bool) -> List:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]


def setup_logging() -> None:
    """Configure structured logging for the application"""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # structlog renders the event itself; stdlib only adds the envelope
    if settings.is_production:
        formatter = jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s")
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # one handler even when several apps are created in one process
    root_logger.handlers = [handler]

    structlog.configure(
        processors=_processors(settings.is_production),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance"""
    return structlog.get_logger(name)


def bind_user(user_id: str) -> None:
    """Attach the authenticated caller to every later event of this request."""
    structlog.contextvars.bind_contextvars(user_id=user_id)


class RequestContextMiddleware:
    """
    Opens a fresh logging context per HTTP request.

    An incoming X-Request-ID is reused so a trace started at the edge proxy
    continues here; otherwise one is generated. The id is echoed on the
    response and a single `request.end` event is logged with status and
    duration.
    """

    def __init__(self, app):
        self.app = app
        self.logger = get_logger("audioly.request")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        incoming = headers.get(REQUEST_ID_HEADER.encode(), b"").decode("latin-1").strip()
        request_id = incoming[:64] or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=scope.get("method"),
            path=scope.get("path"),
        )

        start = time.perf_counter()
        status_code = 500

        async def send_with_context(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                response_headers = list(message.get("headers", []))
                response_headers.append((REQUEST_ID_HEADER.encode(), request_id.encode()))
                message["headers"] = response_headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_context)
        except Exception:
            self.logger.exception("request.failed")
            raise
        finally:
            self.logger.info(
                "request.end",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            structlog.contextvars.clear_contextvars()


@contextmanager
def timed(event: str, logger: structlog.stdlib.BoundLogger, **fields) -> Iterator[dict]:
    """
    Log `event` with its latency once the block exits.

    The yielded dict is merged into the event, so callers can report
    results computed inside the block. Blocks slower than
    `settings.slow_operation_ms` are logged as warnings.
    """
    extra: dict = {}
    start = time.perf_counter()
    ok = False
    try:
        yield extra
        ok = True
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        log = logger.warning if latency_ms > settings.slow_operation_ms else logger.info
        log(event, latency_ms=latency_ms, success=ok, **fields, **extra)
