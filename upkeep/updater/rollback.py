"""Rollback orchestrator.

One pass through ``Validate -> ResolvePackage -> Install -> Reactivate -> Done``.
Any stage can end the run with a failed :class:`RollbackResult`; nothing after
the failing stage runs. The orchestrator is the only place that turns
failures into the payload the interactive caller sees.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Union
from urllib.parse import urlsplit

from upkeep.auth.nonce import NonceManager, rollback_action
from upkeep.callbacks.logging import AuditLogger
from upkeep.exceptions import RollbackUnavailable
from upkeep.types import (
    FetchFailure,
    InstallResult,
    InstallStatus,
    PluginInfo,
    RollbackErrorCode,
    RollbackPage,
    RollbackRequest,
    RollbackResult,
)
from upkeep.updater.cache import UpdateCache
from upkeep.updater.decision import build_info, info_defaults, rollback_catalog
from upkeep.updater.fetcher import ACTION_PLUGIN_INFORMATION, RemoteMetadataFetcher
from upkeep.updater.host import PluginHost
from upkeep.updater.installer import InstallPipeline
from upkeep.updater.reconciler import reconcile
from upkeep.updater.sanitize import sanitize_text
from upkeep.updater.session import UpdateSession

logger = logging.getLogger(__name__)

_PACKAGE_SCHEMES = ("http", "https", "file")


class RollbackStage(str, Enum):
    IDLE = "idle"
    VALIDATE = "validate"
    RESOLVE_PACKAGE = "resolve_package"
    INSTALL = "install"
    REACTIVATE = "reactivate"
    DONE = "done"
    FAILED = "failed"


class RollbackOrchestrator:
    """Drive one rollback for the plugin bound to ``session``.

    Args:
        session: The plugin being rolled back.
        fetcher: Used once per run to load the version catalog.
        pipeline: Install pipeline adapter.
        host: Plugin host for presence checks and the fallback reactivation.
        nonces: Verifies the request nonce against ``rollback:<plugin_id>``.
        cache: Update cache entry to drop after the files changed.
        audit: Audit event sink.
        debug: Attach installer messages to results. Defaults to ``config.debug``.
        enforce_origin: Only accept packages from the update host or
            ``trusted_hosts``. Defaults to ``config.enforce_package_origin``.
    """

    def __init__(
        self,
        session: UpdateSession,
        fetcher: RemoteMetadataFetcher,
        pipeline: InstallPipeline,
        host: PluginHost,
        nonces: NonceManager,
        cache: Optional[UpdateCache] = None,
        audit: Optional[AuditLogger] = None,
        debug: Optional[bool] = None,
        enforce_origin: Optional[bool] = None,
        trusted_hosts: Optional[list[str]] = None,
    ) -> None:
        from upkeep.config import config

        self.session = session
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.host = host
        self.nonces = nonces
        self.cache = cache
        self.audit = audit or AuditLogger()
        self.debug = config.debug if debug is None else debug
        self.enforce_origin = config.enforce_package_origin if enforce_origin is None else enforce_origin
        hosts = config.trusted_package_hosts if trusted_hosts is None else trusted_hosts
        self.trusted_hosts = {h.strip().lower() for h in hosts if h.strip()}
        self.stage = RollbackStage.IDLE

    @property
    def strings(self) -> dict[str, str]:
        return self.session.strings

    # ─── Catalog ──────────────────────────────────────────────────────────

    def load_info(self) -> Union[PluginInfo, FetchFailure]:
        """Details projection from the update server. Never raises."""
        raw = self.fetcher.fetch(self.session, ACTION_PLUGIN_INFORMATION, self.session.slug)
        if isinstance(raw, FetchFailure):
            return raw
        record = reconcile(raw, self.session.descriptor, info_defaults(self.session))
        return build_info(record, self.session.descriptor)

    def rollback_page(self, actor: str) -> RollbackPage:
        """Version list and a fresh nonce for ``actor``.

        Raises:
            RollbackUnavailable: Plugin missing, server unreachable, or the
                server does not allow rollback.
        """
        descriptor = self.session.descriptor
        if not self.host.validate(self.session.plugin_id):
            raise RollbackUnavailable(self.strings["rollback_plugin_not_available"], plugin_name=descriptor.name)

        info = self.load_info()
        if isinstance(info, FetchFailure):
            raise RollbackUnavailable(
                self.strings["rollback_server_unreachable"],
                plugin_name=descriptor.name,
                details={"reason": info.reason, "status_code": info.status_code},
            )
        if not info.allow_rollback:
            raise RollbackUnavailable(
                self.strings["rollback_not_available"] % info.name,
                plugin_name=info.name,
            )

        return RollbackPage(
            plugin=self.session.plugin_id,
            slug=self.session.slug,
            plugin_name=descriptor.name,
            current_version=descriptor.version,
            versions=rollback_catalog(info, descriptor.version),
            changelog=info.sections.get("changelog", ""),
            last_updated=info.last_updated,
            nonce=self.nonces.create(rollback_action(self.session.plugin_id), actor),
        )

    # ─── Run ──────────────────────────────────────────────────────────────

    def _fail(
        self,
        code: RollbackErrorCode,
        message: str,
        request: RollbackRequest,
        install: Optional[InstallResult] = None,
    ) -> RollbackResult:
        logger.warning(
            "Rollback of %s to %s failed at %s: %s (%s)",
            request.plugin_id, request.target_version, self.stage.value, code.value, message,
        )
        result = self._result(False, code, message, request, install)
        self.stage = RollbackStage.FAILED
        return result

    def _result(
        self,
        success: bool,
        code: Optional[RollbackErrorCode],
        message: str,
        request: RollbackRequest,
        install: Optional[InstallResult] = None,
    ) -> RollbackResult:
        # identity fields are only reported once the request passed validation
        resolved = self.stage not in (RollbackStage.IDLE, RollbackStage.VALIDATE)
        descriptor = self.session.descriptor
        trace = list(install.messages) if (install is not None and self.debug) else None
        result = RollbackResult(
            success=success,
            error_code=code,
            message=message,
            target_version=sanitize_text(request.target_version),
            current_version=descriptor.version if resolved else "",
            plugin_name=descriptor.name if resolved else "",
            plugin=self.session.plugin_id if resolved else "",
            slug=self.session.slug if resolved else "",
            debug_trace=trace,
        )
        self.audit.rollback_finished(result, install)
        return result

    def _validate(self, request: RollbackRequest) -> Optional[RollbackResult]:
        fail = RollbackErrorCode.VALIDATION_FAILURE
        if not request.actor_capability_ok:
            return self._fail(fail, self.strings["rollback_no_access"], request)
        if not self.nonces.verify(request.nonce, rollback_action(request.plugin_id), request.actor):
            return self._fail(fail, self.strings["rollback_invalid_nonce"], request)
        if request.plugin_id != self.session.plugin_id or not self.host.validate(request.plugin_id):
            return self._fail(fail, self.strings["rollback_plugin_not_available"], request)
        if not sanitize_text(request.target_version):
            return self._fail(fail, self.strings["rollback_no_target_version"], request)
        return None

    def _package_allowed(self, package_url: str) -> bool:
        parts = urlsplit(package_url)
        if parts.scheme.lower() not in _PACKAGE_SCHEMES:
            return False
        if not self.enforce_origin:
            return True
        host = (parts.hostname or "").lower()
        return bool(host) and (host == self.session.update_server_hostname.lower() or host in self.trusted_hosts)

    def run(self, request: RollbackRequest) -> RollbackResult:
        """Roll the plugin back to ``request.target_version``."""
        self.stage = RollbackStage.VALIDATE
        self.audit.rollback_started(request)
        failed = self._validate(request)
        if failed is not None:
            return failed

        target = sanitize_text(request.target_version)

        self.stage = RollbackStage.RESOLVE_PACKAGE
        info = self.load_info()
        if isinstance(info, FetchFailure):
            return self._fail(
                RollbackErrorCode.TRANSPORT_FAILURE, self.strings["rollback_server_unreachable"], request
            )
        package_url = info.versions.get(target, "").strip()
        if not package_url:
            return self._fail(
                RollbackErrorCode.NO_TARGET_VERSION, self.strings["rollback_version_not_found"] % target, request
            )
        if not self._package_allowed(package_url):
            return self._fail(
                RollbackErrorCode.UNTRUSTED_PACKAGE, self.strings["rollback_untrusted_package"] % target, request
            )

        self.stage = RollbackStage.INSTALL
        install = self.pipeline.install(request.plugin_id, package_url)
        if install.status == InstallStatus.CONNECT_FAILED:
            return self._fail(
                RollbackErrorCode.INSTALL_FAILURE, self.strings["rollback_filesystem_unavailable"], request, install
            )
        if not install.installed:
            return self._fail(
                RollbackErrorCode.INSTALL_FAILURE, install.error or self.strings["rollback_failed"], request, install
            )

        reactivation_error = install.reactivation_error
        if install.was_active and not install.reactivation_attempted:
            self.stage = RollbackStage.REACTIVATE
            try:
                self.host.activate(request.plugin_id)
            except Exception as exc:
                reactivation_error = str(exc) or exc.__class__.__name__
                logger.warning("Reactivating %s failed: %s", request.plugin_id, reactivation_error)

        self.stage = RollbackStage.DONE
        if self.cache is not None and self.cache.invalidate(request.plugin_id):
            self.audit.cache_invalidated(request.plugin_id, "rollback")

        name = self.session.descriptor.name
        if reactivation_error:
            return self._result(
                True,
                RollbackErrorCode.REACTIVATION_FAILURE,
                self.strings["rollback_reactivation_failed"] % (name, target, reactivation_error),
                request,
                install,
            )
        logger.info("Rolled back %s to %s", request.plugin_id, target)
        return self._result(True, None, self.strings["rollback_success"] % (name, target), request, install)
