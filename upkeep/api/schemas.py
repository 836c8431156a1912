"""Request/response models for the HTTP API."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    version: str
    services: dict[str, bool]


class UpdateResponse(BaseModel):
    plugin: str
    version: str
    available: bool
    new_version: str = ""
    reason: str = ""
    allow_rollback: bool = False
    package: str = ""
    message: str = ""
    check_update_url: str = ""


class RollbackBody(BaseModel):
    targetVersion: str = ""
    nonce: str = ""


class RollbackPageResponse(BaseModel):
    plugin: str
    slug: str
    pluginName: str
    currentVersion: str
    versions: list[dict[str, Any]] = Field(default_factory=list)
    changelog: str = ""
    lastUpdated: str = ""
    nonce: str = ""
    detail: Optional[str] = None
