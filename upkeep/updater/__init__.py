"""Update engine: descriptor, fetch, reconcile, decide, install, roll back."""

from upkeep.updater.cache import UpdateCache
from upkeep.updater.decision import (
    build_info,
    compare_versions,
    compatibility_notice,
    decide_update,
    info_defaults,
    rollback_catalog,
    update_defaults,
    update_message,
)
from upkeep.updater.descriptor import read_descriptor, validate_descriptor
from upkeep.updater.engine import Updater
from upkeep.updater.fetcher import RemoteMetadataFetcher
from upkeep.updater.host import JsonPluginHost, PluginHost
from upkeep.updater.installer import (
    InstallPhaseCallbacks,
    InstallPipeline,
    LocalPackageInstaller,
    PackageInstaller,
)
from upkeep.updater.reconciler import deep_merge, prepare_remote_item, reconcile
from upkeep.updater.rollback import RollbackOrchestrator, RollbackStage
from upkeep.updater.session import UpdateSession

__all__ = [
    "UpdateCache",
    "build_info",
    "compare_versions",
    "compatibility_notice",
    "decide_update",
    "info_defaults",
    "rollback_catalog",
    "update_defaults",
    "update_message",
    "read_descriptor",
    "validate_descriptor",
    "Updater",
    "RemoteMetadataFetcher",
    "JsonPluginHost",
    "PluginHost",
    "InstallPhaseCallbacks",
    "InstallPipeline",
    "LocalPackageInstaller",
    "PackageInstaller",
    "deep_merge",
    "prepare_remote_item",
    "reconcile",
    "RollbackOrchestrator",
    "RollbackStage",
    "UpdateSession",
]
