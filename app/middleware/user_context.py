"""User context middleware: resolves the signed-in user for engine routes.

Sessions are owned by the dashboard's auth layer, which forwards the
authenticated user id in a trusted header.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config import get_settings

# Paths that never require a user
PUBLIC_PREFIXES = (
    "/health",
    "/status",
    "/docs",
    "/openapi.json",
    "/redoc",
)


class UserContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path == "/" or any(path.startswith(p) for p in PUBLIC_PREFIXES):
            return await call_next(request)

        user_id = request.headers.get(get_settings().user_id_header, "").strip()
        if not user_id:
            return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

        # Attach user to request state for downstream use
        request.state.user_id = user_id
        return await call_next(request)
