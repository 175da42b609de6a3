from __future__ import annotations

import uuid
from dataclasses import dataclass

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from casework.context import reset_actor_id, reset_correlation_id, set_actor_id, set_correlation_id


@dataclass
class RequestContext:
    correlation_id: str
    tenant_id: str | None
    organization_id: str | None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to the request and echoes it on the response.

    The actor id starts empty for every request; the auth dependency fills it in
    once the bearer token is decoded.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        request.state.context = RequestContext(
            correlation_id=correlation_id,
            tenant_id=request.headers.get("x-tenant-id"),
            organization_id=request.headers.get("x-organization-id"),
        )

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        correlation_token = set_correlation_id(correlation_id)
        actor_token = set_actor_id(None)
        try:
            response = await call_next(request)
        finally:
            reset_actor_id(actor_token)
            reset_correlation_id(correlation_token)

        response.headers["x-correlation-id"] = correlation_id
        response.headers["x-request-id"] = correlation_id
        return response
