from fastapi import FastAPI, Request
from fastapi.responses import Response
from typing import Awaitable, Callable
import logging
import time

logger = logging.getLogger(__name__)


async def trace_request(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Log one line when a request starts and one when its response is ready"""
    start = time.perf_counter()
    logger.info(f"started processing request method={request.method} uri={request.url.path}")
    try:
        response = await call_next(request)
    except Exception:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.error(
            f"request failed method={request.method} uri={request.url.path} latency={latency_ms:.0f}ms"
        )
        raise

    latency_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"finished processing request method={request.method} uri={request.url.path} "
        f"status={response.status_code} latency={latency_ms:.0f}ms"
    )
    return response


def install_request_tracing(app: FastAPI) -> None:
    # Added last so it wraps every other middleware
    app.middleware("http")(trace_request)
