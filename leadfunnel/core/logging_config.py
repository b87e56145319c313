"""
Structured logging setup and per-request tracking ids
"""

import logging
import sys
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

TRACKING_ID_HEADER = "X-Request-ID"


def configure_logging(debug: bool = False) -> None:
    """Configure structlog on top of stdlib logging"""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def generate_tracking_id() -> str:
    """Correlation id, e.g. lead_1718000000000_3f9a1c2b7"""
    return f"lead_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a tracking id to every log line emitted while serving a request"""

    async def dispatch(self, request: Request, call_next):
        tracking_id = generate_tracking_id()
        request.state.tracking_id = tracking_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            tracking_id=tracking_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[TRACKING_ID_HEADER] = tracking_id
        return response
