"""GET /v1/health."""

import logging
from pathlib import Path

from fastapi import APIRouter

from upkeep.api.schemas import HealthResponse
from upkeep.config import config
from upkeep.version import __version__

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    services = {
        "api": True,
        "plugins_dir": Path(config.plugins_dir).is_dir(),
        "profiles": Path(config.profiles_file).is_file() or Path("plugins.yaml").is_file(),
    }
    overall = "ok" if all(services.values()) else "degraded"
    return HealthResponse(status=overall, version=__version__, services=services)
