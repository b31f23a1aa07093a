from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.farmhub.core.context import build_request_context
from app.farmhub.core.error_catalog import AppError
from app.farmhub.core.security import verify_token


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Best-effort identity for logging; the guard chain still authenticates."""

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None
        request.state.store_id = None
        request.state.role = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.lower().startswith("bearer "):
            token = auth_header.split(" ", 1)[1]
            try:
                token_data = verify_token(token)
            except AppError:
                token_data = None
            if token_data is not None:
                request.state.user_id = token_data.sub
                request.state.role = token_data.role

        request.state.context = build_request_context(
            user_id=request.state.user_id,
            store_id=None,
            trace_id=getattr(request.state, "trace_id", ""),
        )

        return await call_next(request)
