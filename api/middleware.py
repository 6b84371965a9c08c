"""Request-scoped middleware for API requests."""

from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from utils.user_context import set_current_actor_id, clear_current_actor_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ActorContextMiddleware(BaseHTTPMiddleware):
    """Sets the acting user from the upstream authentication layer.

    Authentication happens before this service; the gateway forwards the
    authenticated user's id in the X-Actor-Id header. Protected routes
    without it get 401. Public paths (verification, health) bypass it.
    """

    HEADER = "X-Actor-Id"

    PUBLIC_PATHS = [
        "/api/verify/",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def _is_public_path(self, path: str) -> bool:
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        raw_actor = request.headers.get(self.HEADER)
        try:
            actor_id = UUID(raw_actor) if raw_actor else None
        except ValueError:
            actor_id = None

        if actor_id is None:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                    request,
                ).model_dump(mode="json"),
            )

        set_current_actor_id(actor_id)
        request.state.actor_id = actor_id

        try:
            return await call_next(request)
        finally:
            clear_current_actor_id()
