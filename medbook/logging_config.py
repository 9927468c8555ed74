"""Structured JSON logging for the scheduling backend.

Every event is a JSON line carrying timestamp, level, logger name and any
context bound for the current request (request_id). Patient emails are masked
before they reach a log call.
"""
import logging
import sys
import uuid

import structlog

_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.JSONRenderer(),
]


def setup_structured_logging(log_level: str = "INFO"):
    """
    Route structlog through the stdlib root logger on stdout.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
    """
    structlog.configure(
        processors=list(_PROCESSORS),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(stream=sys.stdout, format="%(message)s", level=log_level.upper())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def mask_email(email: str) -> str:
    """Redact an email for logs: 'jane.doe@example.com' -> 'j***@example.com'."""
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def generate_request_id() -> str:
    """Short request id, e.g. 'req-3f9a1c0b7d2e'."""
    return "req-" + uuid.uuid4().hex[:12]


class RequestIDMiddleware:
    """
    ASGI middleware tagging each HTTP request with an id.

    The id is bound into structlog's context for the request's log lines and
    echoed back in the X-Request-ID response header.
    """

    header_name = b"x-request-id"

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = generate_request_id()
        scope.setdefault("state", {})["request_id"] = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        async def send_with_request_id(message):
            if message["type"] == "http.response.start":
                message["headers"] = [*message.get("headers", []), (self.header_name, request_id.encode())]
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
