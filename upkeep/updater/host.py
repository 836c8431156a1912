"""Plugin host: which plugins are installed and active.

The engine only needs four questions answered, captured by :class:`PluginHost`.
:class:`JsonPluginHost` keeps the active set in ``<plugins_dir>/.upkeep/active.json``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class PluginHost(Protocol):
    def is_active(self, plugin_id: str) -> bool: ...

    def activate(self, plugin_id: str) -> None:
        """Raise on failure."""
        ...

    def deactivate(self, plugin_id: str) -> None: ...

    def validate(self, plugin_id: str) -> bool:
        """Whether ``plugin_id`` names an installed plugin."""
        ...


class JsonPluginHost:
    """Plugins directory plus a JSON file listing active plugin basenames."""

    def __init__(self, plugins_dir: Path):
        self.plugins_dir = Path(plugins_dir)
        self.state_file = self.plugins_dir / ".upkeep" / "active.json"

    def _read(self) -> list[str]:
        if not self.state_file.exists():
            return []
        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Active plugin list %s unreadable: %s", self.state_file, exc)
            return []
        return [str(item) for item in data] if isinstance(data, list) else []

    def _write(self, active: list[str]) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(json.dumps(sorted(set(active)), indent=2), encoding="utf-8")

    def validate(self, plugin_id: str) -> bool:
        if not plugin_id or ".." in Path(plugin_id).parts:
            return False
        return (self.plugins_dir / plugin_id).is_file()

    def is_active(self, plugin_id: str) -> bool:
        return plugin_id in self._read()

    def activate(self, plugin_id: str) -> None:
        if not self.validate(plugin_id):
            raise FileNotFoundError(f"Plugin file does not exist: {plugin_id}")
        active = self._read()
        if plugin_id not in active:
            active.append(plugin_id)
            self._write(active)
        logger.info("Activated %s", plugin_id)

    def deactivate(self, plugin_id: str) -> None:
        active = self._read()
        if plugin_id in active:
            active.remove(plugin_id)
            self._write(active)
            logger.info("Deactivated %s", plugin_id)
