"""Request latency logging middleware."""

import logging
import time
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_REQUEST_THRESHOLD_MS = 3000

QUIET_PATHS = ("/health", "/health/ready")

# Watch streams stay open for the whole breakout; their latency is meaningless.
STREAMING_SUFFIXES = ("/watch",)


def is_streaming_path(path: str) -> bool:
    return path.endswith(STREAMING_SUFFIXES)


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log method, path, status and latency for each request.

    Slow requests and server errors are logged at elevated levels. Health
    probes are only logged when unusually slow, and long-lived watch
    streams are logged once when the stream is opened.

    Args:
        request: The incoming request.
        call_next: The next middleware/handler in the chain.

    Returns:
        Response: The response from the handler.
    """
    start_time = time.perf_counter()
    method = request.method
    path = request.url.path

    response = None
    error_occurred = False

    try:
        response = await call_next(request)
        return response
    except Exception:
        error_occurred = True
        raise
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response else 500
        log_msg = "%s %s - %d - %.2fms"
        args = (method, path, status_code, latency_ms)

        if path in QUIET_PATHS:
            if latency_ms > 100:
                logger.debug(log_msg, *args)
        elif is_streaming_path(path) and not error_occurred:
            logger.info("Stream opened: " + log_msg, *args)
        elif error_occurred or status_code >= 500:
            logger.error(log_msg, *args)
        elif latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
            logger.error("VERY SLOW REQUEST: " + log_msg, *args)
        elif latency_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning("SLOW REQUEST: " + log_msg, *args)
        elif status_code >= 400:
            logger.warning(log_msg, *args)
        else:
            logger.info(log_msg, *args)
