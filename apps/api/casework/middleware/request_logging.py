from __future__ import annotations

import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from casework.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("casework.request")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _record(request: Request, status_code: int, duration_ms: float) -> dict[str, Any]:
    path = resolve_http_path_label(request)
    observe_http_request(method=request.method, path=path, status=status_code, duration=duration_ms / 1000)
    return {
        "method": request.method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "tenant_id": request.headers.get("x-tenant-id"),
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One structured line per request, labelled with the route template."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error("http.error", exc_info=True, extra=_record(request, 500, _elapsed_ms(started)))
            raise

        logger.info("http.request", extra=_record(request, response.status_code, _elapsed_ms(started)))
        return response
