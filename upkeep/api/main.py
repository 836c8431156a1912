"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware

from upkeep.config import config
from upkeep.updater.engine import Updater
from upkeep.version import __version__

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("upkeep v%s serving plugins from %s", __version__, config.plugins_dir)
    yield
    logger.info("upkeep shutting down")


def create_app(updater_factory: Optional[Callable[[str], Updater]] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        updater_factory: Builds the :class:`Updater` for a plugin slug. Defaults
            to :meth:`Updater.for_plugin` against the configured profiles file.
    """
    app = FastAPI(
        title="upkeep",
        description="Update checks and rollback for self-hosted plugins.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.updater_factory = updater_factory or Updater.for_plugin

    from upkeep.auth.jwt import JWTManager
    from upkeep.auth.middleware import AuthMiddleware
    app.add_middleware(AuthMiddleware, jwt_manager=JWTManager())

    # outermost, applied to all responses
    app.add_middleware(SecurityHeadersMiddleware)

    from upkeep.api.routes import health, plugins
    app.include_router(health.router, prefix="/v1")
    app.include_router(plugins.router, prefix="/v1")

    return app
