"""Access log middleware producing records in the shape the SQL transport maps to columns."""
import time
from typing import Any
from typing import Callable
from typing import Dict

from fastapi import Request
from fastapi import Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

# Headers never copied into the stored request/response
REDACTED_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-api-key"})


def _headers(headers: Any) -> Dict[str, str]:
    return {key: ("[REDACTED]" if key.lower() in REDACTED_HEADERS else value) for key, value in headers.items()}


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Log one INFO record per request.

    The message is ``"<METHOD> <path> <status>"`` and the record carries
    ``meta={"req": ..., "res": ..., "responseTime": <ms>}``, which the SQL
    transport splits into its method, endpoint, response code, request,
    response and response time columns.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        start_time = time.perf_counter()
        response: Response = await call_next(request)
        response_time = round((time.perf_counter() - start_time) * 1000, 2)

        meta = {
            "req": {
                "method": request.method,
                "url": str(request.url),
                "path": request.url.path,
                "query_params": dict(request.query_params.items()),
                "http_version": request.scope.get("http_version", "1.1"),
                "client": request.client.host if request.client else None,
                "headers": _headers(request.headers),
            },
            "res": {
                "status_code": response.status_code,
                "headers": _headers(response.headers),
            },
            "responseTime": response_time,
        }
        logger.bind(meta=meta).info(f"{request.method} {request.url.path} {response.status_code}")
        return response
