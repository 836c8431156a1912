"""Structured JSON audit lines for update and rollback events."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from upkeep.types import InstallResult, RollbackRequest, RollbackResult, UpdateDecision

logger = logging.getLogger("upkeep.audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class AuditLogger:
    """Emits one JSON object per event on the ``upkeep.audit`` logger.

    Every line carries ``event`` and ``ts`` (ISO-8601 UTC) plus event fields.
    INFO for normal events, WARNING for failed rollbacks. Nonces and package
    URLs with credentials never appear in the output.
    """

    def _emit(self, level: int, event: str, **fields: Any) -> None:
        logger.log(level, json.dumps({"event": event, "ts": _now(), **fields}))

    def update_checked(self, decision: UpdateDecision, cached: bool = False) -> None:
        self._emit(
            logging.INFO,
            "update_checked",
            plugin=decision.plugin,
            version=decision.version,
            available=decision.available,
            new_version=getattr(decision, "new_version", ""),
            reason="" if decision.available else decision.reason.value,
            cached=cached,
        )

    def plugin_information(self, plugin_id: str, allow_rollback: bool, version_count: int) -> None:
        self._emit(
            logging.INFO,
            "plugin_information",
            plugin=plugin_id,
            allow_rollback=allow_rollback,
            versions=version_count,
        )

    def rollback_started(self, request: RollbackRequest) -> None:
        self._emit(
            logging.INFO,
            "rollback_started",
            plugin=request.plugin_id,
            target_version=request.target_version,
            actor=request.actor,
        )

    def rollback_finished(self, result: RollbackResult, install: InstallResult = None) -> None:
        self._emit(
            logging.INFO if result.success else logging.WARNING,
            "rollback_finished",
            plugin=result.plugin,
            success=result.success,
            error_code=result.error_code.value if result.error_code else "",
            current_version=result.current_version,
            target_version=result.target_version,
            install_status=install.status.value if install is not None else "",
        )

    def cache_invalidated(self, plugin_id: str, reason: str) -> None:
        self._emit(logging.INFO, "cache_invalidated", plugin=plugin_id, reason=reason)
