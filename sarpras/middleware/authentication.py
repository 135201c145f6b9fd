# sarpras/middleware/authentication.py
from typing import Optional, Set, Callable, Awaitable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.security.utils import get_authorization_scheme_param
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from sarpras.core.security import decode_subject


# Path yang boleh diakses tanpa token
PUBLIC_PATHS: Set[str] = {
    "/",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/ping-mongodb",
    "/api/v1/auth/token",
    "/api/v1/auth/register",
}


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(("/docs", "/redoc"))


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Tolak request tanpa Bearer token yang valid pada path non-publik.

    Hanya ``sub`` (id user) yang disimpan di ``request.state``; user, status aktif
    dan role dimuat ulang oleh dependency di ``sarpras.core.security``.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        rid = getattr(request.state, "request_id", "N/A")

        if request.method == "OPTIONS" or is_public_path(path):
            return await call_next(request)

        scheme, token = get_authorization_scheme_param(request.headers.get("Authorization") or "")
        if scheme.lower() != "bearer" or not token:
            logger.warning(f"RID:{rid} {request.method} {path} rejected: missing Bearer token")
            return _unauthorized("Not authenticated")

        user_id: Optional[str] = decode_subject(token)
        if not user_id:
            logger.warning(f"RID:{rid} {request.method} {path} rejected: invalid or expired token")
            return _unauthorized("Could not validate credentials")

        request.state.user_id = user_id
        return await call_next(request)
