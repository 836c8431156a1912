"""upkeep: update checks and rollback for self-hosted plugins.

Usage:
    from upkeep import Updater

    updater = Updater.for_plugin("my-plugin")
    decision = updater.update_check()
    if decision.available:
        print(decision.new_version)
"""

from upkeep.types import (
    PluginDescriptor, CanonicalUpdateRecord, PluginInfo, FetchFailure,
    UpdateAvailable, NoUpdate, NoUpdateReason, RollbackRequest, RollbackResult,
    RollbackErrorCode, RollbackPage, RollbackVersion, InstallResult, InstallStatus,
)
from upkeep.exceptions import (
    UpkeepError, DescriptorError, ProfileError, NonceError, InstallerError,
    RollbackUnavailable,
)
from upkeep.updater.engine import Updater
from upkeep.version import __version__

__all__ = [
    "PluginDescriptor", "CanonicalUpdateRecord", "PluginInfo", "FetchFailure",
    "UpdateAvailable", "NoUpdate", "NoUpdateReason", "RollbackRequest", "RollbackResult",
    "RollbackErrorCode", "RollbackPage", "RollbackVersion", "InstallResult", "InstallStatus",
    "UpkeepError", "DescriptorError", "ProfileError", "NonceError", "InstallerError",
    "RollbackUnavailable",
    "Updater",
    "__version__",
]
