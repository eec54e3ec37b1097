import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("pickem.http")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One JSON log line per request, tagged with a short request id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start = time.time()

        response: Response = await call_next(request)

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "status": response.status_code,
            "duration_ms": round((time.time() - start) * 1000, 2),
        }

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, json.dumps(log_data))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    # httpx logs every request at INFO; the feed client already logs its own.
    logging.getLogger("httpx").setLevel(logging.WARNING)
