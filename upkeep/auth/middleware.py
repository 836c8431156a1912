"""FastAPI authentication middleware.

Checks the Authorization header for a Bearer JWT and sets
``request.state.actor`` and ``request.state.capabilities``.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from upkeep.auth.jwt import JWTManager
from upkeep.exceptions import UpkeepError


class AuthMiddleware(BaseHTTPMiddleware):
    """Bearer token authentication."""

    # Paths that don't require auth
    PUBLIC_PATHS = {"/v1/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, jwt_manager: JWTManager = None):
        super().__init__(app)
        self.jwt_manager = jwt_manager or JWTManager()

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            return JSONResponse({"detail": "Missing Authorization header"}, status_code=401)
        if not auth_header.startswith("Bearer "):
            return JSONResponse({"detail": "Invalid auth format"}, status_code=401)

        try:
            payload = self.jwt_manager.verify_token(auth_header[7:])
        except UpkeepError as e:
            return JSONResponse({"detail": str(e)}, status_code=401)

        request.state.actor = payload["actor"]
        request.state.capabilities = payload["capabilities"]
        return await call_next(request)
