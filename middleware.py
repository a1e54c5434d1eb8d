import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from services.metrics import increment_http_requests

logger = logging.getLogger("settlement.http_access")


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        start = time.time()

        request.state.request_id = req_id

        response = None
        try:
            response = await call_next(request)
            response.headers["X-Request-Id"] = req_id
            return response
        finally:
            duration_ms = int((time.time() - start) * 1000)
            status = getattr(response, "status_code", 500)
            increment_http_requests(request.url.path, status)

            # no headers logged: admin key travels in one
            logger.info(
                "http_request request_id=%s method=%s path=%s status=%s duration_ms=%s",
                req_id,
                request.method,
                request.url.path,
                status,
                duration_ms,
            )
