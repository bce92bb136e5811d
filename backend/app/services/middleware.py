"""Request tracing for the RAB Estimator API."""
import os
import re
import time
import uuid
import logging
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("rab-api.middleware")

SKIP_LOG_PATHS = {"/health"}

# Calculations are synchronous; anything slower than this is worth a warning
SLOW_REQUEST_MS = float(os.getenv("RAB_SLOW_REQUEST_MS", "1000"))

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse a caller's X-Request-ID when it is a short token, else mint a uuid4."""
    if incoming and _REQUEST_ID_RE.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with X-Request-ID, reports X-Process-Time in
    milliseconds, and logs one structured line per request except health
    probes.  Requests slower than SLOW_REQUEST_MS log at WARNING.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        start_time = time.perf_counter()
        request.state.request_id = request_id

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if request.url.path in SKIP_LOG_PATHS:
            return response

        level = logging.WARNING if duration_ms > SLOW_REQUEST_MS else logging.INFO
        logger.log(
            level,
            "slow request" if level == logging.WARNING else "request completed",
            extra={
                "http_method": request.method,
                "http_path": request.url.path,
                "http_status": response.status_code,
                "request_id": request_id,
                "duration_ms": duration_ms,
            },
        )
        return response
