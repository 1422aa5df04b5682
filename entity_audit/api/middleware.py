"""API middleware: correlation ID and changer context."""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from entity_audit.core.context import actor_ctx, correlation_id_ctx

CORRELATION_HEADER = "X-Correlation-ID"
ACTOR_HEADER = "X-Actor"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Generate or preserve correlation ID; attach to request.state, response header, and logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class ActorContextMiddleware(BaseHTTPMiddleware):
    """Expose X-Actor as the current actor for audit capture and logging."""

    async def dispatch(self, request: Request, call_next) -> Response:
        actor = (request.headers.get(ACTOR_HEADER) or "").strip() or None
        request.state.actor = actor
        token = actor_ctx.set(actor)
        try:
            return await call_next(request)
        finally:
            actor_ctx.reset(token)
