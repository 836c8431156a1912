"""Update-availability cache: one entry per plugin in a JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from upkeep.types import CachedDecision, UpdateDecision

logger = logging.getLogger(__name__)

CACHE_FILENAME = "update_cache.json"


class UpdateCache:
    """Last known decision per plugin, stored at ``<state_dir>/update_cache.json``.

    A corrupt or unreadable file is treated as empty; the next write replaces it.
    """

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / CACHE_FILENAME

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable update cache %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, entries: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(entries, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, plugin_id: str) -> Optional[CachedDecision]:
        entry = self._load().get(plugin_id)
        if entry is None:
            return None
        try:
            return CachedDecision.model_validate(entry)
        except ValidationError as exc:
            logger.warning("Dropping malformed cache entry for %s: %s", plugin_id, exc)
            return None

    def set(self, decision: UpdateDecision) -> CachedDecision:
        record = decision.record
        cached = CachedDecision(
            plugin=decision.plugin,
            available=decision.available,
            new_version=record.new_version if record is not None else "",
            allow_rollback=record.allow_rollback if record is not None else False,
            record=record.model_dump(mode="json") if record is not None else None,
        )
        entries = self._load()
        entries[decision.plugin] = cached.model_dump(mode="json")
        self._save(entries)
        return cached

    def invalidate(self, plugin_id: str) -> bool:
        """Drop the entry for ``plugin_id``. Returns whether one existed."""
        entries = self._load()
        if plugin_id not in entries:
            return False
        del entries[plugin_id]
        self._save(entries)
        logger.debug("Invalidated update cache for %s", plugin_id)
        return True

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def all(self) -> dict[str, CachedDecision]:
        result = {}
        for plugin_id in self._load():
            cached = self.get(plugin_id)
            if cached is not None:
                result[plugin_id] = cached
        return result
