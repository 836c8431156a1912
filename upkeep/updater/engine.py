"""Updater facade: everything a host does for one managed plugin."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from pydantic import ValidationError

from upkeep.auth.nonce import NonceManager, recheck_action
from upkeep.callbacks.logging import AuditLogger
from upkeep.config.loader import find_profile, load_profiles_yaml
from upkeep.types import (
    CanonicalUpdateRecord,
    FetchFailure,
    NoUpdate,
    NoUpdateReason,
    PluginInfo,
    RollbackPage,
    RollbackRequest,
    RollbackResult,
    UpdateAvailable,
    UpdateDecision,
)
from upkeep.updater.cache import UpdateCache
from upkeep.updater.decision import build_info, decide_update, info_defaults, update_defaults, update_message
from upkeep.updater.fetcher import ACTION_PLUGIN_INFORMATION, RemoteMetadataFetcher
from upkeep.updater.host import JsonPluginHost, PluginHost
from upkeep.updater.installer import InstallPipeline, LocalPackageInstaller, PackageInstaller
from upkeep.updater.reconciler import reconcile
from upkeep.updater.rollback import RollbackOrchestrator
from upkeep.updater.session import UpdateSession

logger = logging.getLogger(__name__)


class Updater:
    """Update checks, details, force-recheck and rollback for one plugin.

    Build one per invocation, usually through :meth:`for_plugin`. Collaborators
    default to the local implementations rooted at ``config`` paths.
    """

    def __init__(
        self,
        session: UpdateSession,
        fetcher: Optional[RemoteMetadataFetcher] = None,
        cache: Optional[UpdateCache] = None,
        host: Optional[PluginHost] = None,
        installer: Optional[PackageInstaller] = None,
        nonces: Optional[NonceManager] = None,
        audit: Optional[AuditLogger] = None,
        cfg: Any = None,
    ) -> None:
        if cfg is None:
            from upkeep.config import config as cfg
        self.cfg = cfg
        self.session = session
        self.fetcher = fetcher or RemoteMetadataFetcher(timeout=cfg.request_timeout)
        self.cache = cache or UpdateCache(Path(cfg.state_dir))
        self.host = host or JsonPluginHost(session.plugins_dir)
        self.installer = installer or LocalPackageInstaller(download_timeout=cfg.download_timeout)
        self.nonces = nonces or NonceManager()
        self.audit = audit or AuditLogger()

    @classmethod
    def for_plugin(
        cls,
        slug: str,
        profiles_file: Optional[str] = None,
        cfg: Any = None,
        **kwargs: Any,
    ) -> "Updater":
        """Open the plugin named ``slug`` in the profiles file.

        Raises:
            FileNotFoundError: No profiles file found.
            ProfileError: Profiles file invalid or ``slug`` not listed.
            DescriptorError: The plugin file is missing or unreadable.
        """
        if cfg is None:
            from upkeep.config import config as cfg
        profiles = load_profiles_yaml(profiles_file, fallback=cfg.profiles_file)
        session = UpdateSession.open(find_profile(profiles, slug), Path(cfg.plugins_dir), cfg)
        return cls(session, cfg=cfg, **kwargs)

    @property
    def plugin_id(self) -> str:
        return self.session.plugin_id

    @property
    def backup_dir(self) -> Path:
        return Path(self.cfg.backup_dir or Path(self.cfg.state_dir) / "backups")

    # ─── Update check ─────────────────────────────────────────────────────

    def _cached_decision(self) -> Optional[UpdateDecision]:
        cached = self.cache.get(self.plugin_id)
        if cached is None or cached.record is None:
            return None
        age = (datetime.now(timezone.utc) - cached.checked_at).total_seconds()
        if age > self.cfg.update_cache_ttl:
            logger.debug("Cached decision for %s is %.0fs old, refetching", self.plugin_id, age)
            return None
        try:
            record = CanonicalUpdateRecord.model_validate(cached.record)
        except ValidationError as exc:
            logger.warning("Cached record for %s is invalid: %s", self.plugin_id, exc)
            return None
        return decide_update(record, self.session.descriptor)

    def update_check(self, use_cache: bool = True) -> UpdateDecision:
        """Decide whether an update is available. Never raises.

        A failed fetch yields ``NoUpdate(transport_failure)`` and is not cached,
        so the next check asks the server again. Cached decisions older than
        ``update_cache_ttl`` seconds are refetched.
        """
        descriptor = self.session.descriptor
        if use_cache:
            decision = self._cached_decision()
            if decision is not None:
                self.audit.update_checked(decision, cached=True)
                return decision

        if not self.session.can_check_updates:
            logger.debug("Update checks disabled for %s", self.plugin_id)
            decision = NoUpdate(plugin=self.plugin_id, version=descriptor.version, reason=NoUpdateReason.NOT_CONFIGURED)
            self.audit.update_checked(decision)
            return decision

        raw = self.fetcher.fetch(self.session)
        if isinstance(raw, FetchFailure) or not raw:
            decision = decide_update(None, descriptor)
        else:
            record = reconcile(raw, descriptor, update_defaults(self.session))
            decision = decide_update(record, descriptor)
            self.cache.set(decision)

        self.audit.update_checked(decision)
        return decision

    def plugin_information(self) -> PluginInfo:
        """Details view. Falls back to local metadata when the server is unreachable."""
        raw = self.fetcher.fetch(self.session, ACTION_PLUGIN_INFORMATION, self.session.slug)
        if isinstance(raw, FetchFailure):
            raw = {}
        record = reconcile(raw, self.session.descriptor, info_defaults(self.session))
        info = build_info(record, self.session.descriptor)
        self.audit.plugin_information(self.plugin_id, info.allow_rollback, len(info.versions))
        return info

    def update_message(self, decision: UpdateAvailable) -> str:
        return update_message(decision, self.session.profile.license_key, self.session.strings)

    # ─── Force recheck ────────────────────────────────────────────────────

    def check_update_link(self, actor: str, base_url: str = "/v1") -> str:
        """Path of the force-recheck action with a nonce bound to ``actor``."""
        nonce = self.nonces.create(recheck_action(self.plugin_id), actor)
        return f"{base_url.rstrip('/')}/plugins/{quote(self.session.slug)}/check-update?nonce={quote(nonce)}"

    def force_update_check(self, nonce: str, actor: str, capability_ok: bool) -> bool:
        """Drop the cached decision. False when the caller may not recheck."""
        if not capability_ok:
            logger.warning("Recheck of %s refused: %s lacks capability", self.plugin_id, actor)
            return False
        if not self.nonces.verify(nonce, recheck_action(self.plugin_id), actor):
            logger.warning("Recheck of %s refused: invalid nonce", self.plugin_id)
            return False
        self.cache.invalidate(self.plugin_id)
        self.audit.cache_invalidated(self.plugin_id, "force_recheck")
        return True

    # ─── Rollback ─────────────────────────────────────────────────────────

    def rollback_orchestrator(self) -> RollbackOrchestrator:
        pipeline = InstallPipeline(self.installer, self.host, self.session.plugins_dir, self.backup_dir)
        return RollbackOrchestrator(
            self.session,
            self.fetcher,
            pipeline,
            self.host,
            self.nonces,
            cache=self.cache,
            audit=self.audit,
            debug=self.cfg.debug,
            enforce_origin=self.cfg.enforce_package_origin,
            trusted_hosts=list(self.cfg.trusted_package_hosts),
        )

    def rollback_page(self, actor: str) -> RollbackPage:
        return self.rollback_orchestrator().rollback_page(actor)

    def rollback(self, request: RollbackRequest) -> RollbackResult:
        return self.rollback_orchestrator().run(request)
