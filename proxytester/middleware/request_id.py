"""Request ID middleware.

Every test run or scan is tagged with a request ID so its log lines (route
entry, window progress, reconciliation) can be grouped. A caller-supplied
``X-Request-ID`` is kept, e.g. from a scheduler that triggers nightly scans.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with ``request.state.request_id`` and echoes it back.

    Completed requests are logged with their status and ``duration_ms``;
    a batch of slow proxies shows up here as a long-running request.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "%s %s -> %d",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request_id": request_id,
                "duration_ms": round((time.perf_counter() - started) * 1000),
            },
        )
        return response
