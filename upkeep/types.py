"""All shared types, enums, and type aliases. Everything imports from here."""

from enum import Enum
from typing import Any, Optional, Union
from datetime import datetime, timezone
from pydantic import BaseModel, Field, model_validator


# ── Enums ──────────────────────────────────────────────────────────────

class RollbackErrorCode(str, Enum):
    VALIDATION_FAILURE = "validation_failure"       # capability, nonce, plugin, empty target
    TRANSPORT_FAILURE = "transport_failure"         # update server unreachable during resolve
    NO_TARGET_VERSION = "no_target_version"         # target absent from the version catalog
    UNTRUSTED_PACKAGE = "untrusted_package"         # package URL rejected by origin policy
    INSTALL_FAILURE = "install_failure"             # connect failed or installer hard failure
    REACTIVATION_FAILURE = "reactivation_failure"   # non-fatal, files already replaced

class NoUpdateReason(str, Enum):
    TRANSPORT_FAILURE = "transport_failure"
    NO_NEW_VERSION = "no_new_version"
    UP_TO_DATE = "up_to_date"
    NOT_CONFIGURED = "not_configured"      # no Update URI or Tested-up-to header

class InstallStatus(str, Enum):
    INSTALLED = "installed"
    CONNECT_FAILED = "connect_failed"
    FAILED = "failed"


# ── Local plugin identity ──────────────────────────────────────────────

class PluginDescriptor(BaseModel):
    """Header fields of the installed plugin file. Read once per session."""
    model_config = {"frozen": True}

    name: str
    version: str = ""
    update_uri: str = ""
    tested_up_to: str = ""
    requires_php: str = ""
    requires_at_least: str = ""
    plugin_uri: str = ""
    description: str = ""
    author: str = ""
    author_uri: str = ""
    basename: str                       # "my-plugin/my-plugin.php"
    slug: str                           # "my-plugin"
    plugin_file: str = ""               # absolute path on disk


# ── Remote metadata ────────────────────────────────────────────────────

RawRemotePayload = dict[str, Any]


class FetchFailure(BaseModel):
    """Sentinel returned by the fetcher instead of raising."""
    model_config = {"frozen": True}

    reason: str                         # "transport", "http_status", "invalid_json"
    status_code: Optional[int] = None
    message: str = ""


class CanonicalUpdateRecord(BaseModel):
    """Reconciled view of the update server's answer merged over local defaults.

    Unknown keys the server sends through are kept (``extra="allow"``) so the
    details view can show them without the reconciler knowing every field.
    """
    model_config = {"frozen": True, "extra": "allow", "coerce_numbers_to_str": True}

    # Identity, filled from local defaults
    id: str = ""
    name: str = ""
    slug: str = ""
    plugin: str = ""
    version: str = ""                   # installed version
    url: str = ""

    # Update target
    new_version: str = ""
    package_url: Optional[str] = None
    download_link: str = ""
    versions: dict[str, str] = Field(default_factory=dict)
    allow_rollback: bool = False
    upgrade_notice: Any = ""            # str, or {version: notice}

    # Compatibility
    tested: str = ""
    requires: str = ""
    requires_php: str = ""
    requires_plugins: list[Any] = Field(default_factory=list)

    # Presentation
    sections: dict[str, str] = Field(default_factory=dict)
    screenshots: dict[int, Any] = Field(default_factory=dict)
    banners: dict[str, Any] = Field(default_factory=dict)
    banners_rtl: dict[str, Any] = Field(default_factory=dict)
    icons: dict[str, Any] = Field(default_factory=dict)
    tags: Any = Field(default_factory=dict)
    author: str = ""
    author_profile: str = ""
    homepage: str = ""
    preview_link: str = ""
    last_updated: str = ""
    added: str = ""

    # Counters
    active_installs: int = 0
    rating: int = 0
    ratings: Any = Field(default_factory=dict)
    num_ratings: Any = 0
    support_threads: int = 0
    support_threads_resolved: int = 0

    # Commercial
    business_model: str = ""
    commercial_support_url: str = ""
    support_url: str = ""

    @model_validator(mode="before")
    @classmethod
    def no_catalog_without_package(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("package_url"):
            data = {**data, "versions": {}}
        return data


class PluginInfo(CanonicalUpdateRecord):
    """Details-view projection. ``versions`` is empty unless rollback is allowed."""


class UpdateAvailable(BaseModel):
    """The installed plugin is behind the update server."""
    model_config = {"frozen": True}

    plugin: str
    slug: str
    version: str                        # installed
    new_version: str
    package: str = ""
    url: str = ""
    tested: str = ""
    requires: str = ""
    requires_php: str = ""
    icons: dict[str, Any] = Field(default_factory=dict)
    banners: dict[str, Any] = Field(default_factory=dict)
    upgrade_notice: Any = ""
    allow_rollback: bool = False
    record: CanonicalUpdateRecord

    @property
    def available(self) -> bool:
        return True


class NoUpdate(BaseModel):
    """No update offered. ``record`` is kept when the server did answer."""
    model_config = {"frozen": True}

    plugin: str
    version: str
    reason: NoUpdateReason
    record: Optional[CanonicalUpdateRecord] = None

    @property
    def available(self) -> bool:
        return False


UpdateDecision = Union[UpdateAvailable, NoUpdate]


class CachedDecision(BaseModel):
    """Last known update-availability decision for one plugin."""
    plugin: str
    available: bool
    new_version: str = ""
    allow_rollback: bool = False
    record: Optional[dict[str, Any]] = None
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RollbackVersion(BaseModel):
    """One selectable entry on the rollback page."""
    model_config = {"frozen": True}

    version: str
    package: str
    is_current: bool = False


# ── Rollback ───────────────────────────────────────────────────────────

class RollbackPage(BaseModel):
    """What the rollback page renders: version list, changelog, action nonce."""
    model_config = {"frozen": True}

    plugin: str
    slug: str
    plugin_name: str
    current_version: str
    versions: list[RollbackVersion] = Field(default_factory=list)
    changelog: str = ""
    last_updated: str = ""
    nonce: str = ""


class RollbackRequest(BaseModel):
    """One interactive rollback attempt. Never persisted."""
    model_config = {"frozen": True}

    plugin_id: str                      # basename
    target_version: str = ""
    nonce: str = ""
    actor_capability_ok: bool = False
    actor: str = ""                     # identity the nonce was minted for


class RollbackResult(BaseModel):
    """Terminal outcome of a rollback attempt."""
    model_config = {"frozen": True}

    success: bool
    current_version: str = ""
    target_version: str = ""
    error_code: Optional[RollbackErrorCode] = None
    message: str = ""
    debug_trace: Optional[list[str]] = None
    plugin_name: str = ""
    plugin: str = ""
    slug: str = ""

    def to_response(self) -> dict[str, Any]:
        """Wire payload for the interactive caller."""
        payload: dict[str, Any] = {
            "error": not self.success,
            "errorCode": self.error_code.value if self.error_code else "",
            "message": self.message,
            "currentVersion": self.current_version,
            "targetVersion": self.target_version,
            "versionID": self.target_version.replace(".", "-"),
            "pluginName": self.plugin_name,
            "plugin": self.plugin,
            "slug": self.slug,
        }
        if self.debug_trace is not None:
            payload["debug"] = list(self.debug_trace)
        return payload


# ── Install pipeline ───────────────────────────────────────────────────

class InstallerOutcome(BaseModel):
    """What a package installer primitive reports back from ``run()``."""
    success: bool
    error: str = ""
    messages: list[str] = Field(default_factory=list)


class InstallResult(BaseModel):
    """Install pipeline result, translated from the primitive's outcome."""
    model_config = {"frozen": True}

    status: InstallStatus
    was_active: bool = False
    reactivation_attempted: bool = False
    reactivation_error: str = ""
    error: str = ""
    messages: list[str] = Field(default_factory=list)

    @property
    def installed(self) -> bool:
        return self.status == InstallStatus.INSTALLED
