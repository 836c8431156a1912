"""One update/rollback invocation's view of a plugin.

The session reads the plugin descriptor once when it is opened and hands the
same instance to every component for the rest of the invocation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from upkeep.config import PluginProfileYAML
from upkeep.updater.descriptor import read_descriptor, validate_descriptor
from upkeep.updater.strings import localize_strings
from upkeep.types import PluginDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateSession:
    descriptor: PluginDescriptor
    profile: PluginProfileYAML
    plugins_dir: Path
    site_url: str = "http://localhost"
    default_requires: str = "6.4"
    default_requires_php: str = "7.4"
    strings: dict[str, str] = field(default_factory=dict)

    @classmethod
    def open(
        cls,
        profile: PluginProfileYAML,
        plugins_dir: Optional[Path] = None,
        cfg: Any = None,
    ) -> "UpdateSession":
        """Read the plugin descriptor and bind it to ``profile``.

        Raises:
            DescriptorError: The plugin file is missing or has no header.
        """
        if cfg is None:
            from upkeep.config import config as cfg
        root = Path(plugins_dir if plugins_dir is not None else cfg.plugins_dir)
        descriptor = read_descriptor(root / profile.plugin_file, root)
        for problem in validate_descriptor(descriptor):
            logger.warning("%s: %s", descriptor.basename, problem)
        return cls(
            descriptor=descriptor,
            profile=profile,
            plugins_dir=root,
            site_url=cfg.site_url,
            default_requires=cfg.default_requires,
            default_requires_php=cfg.default_requires_php,
            strings=localize_strings(profile.strings),
        )

    @property
    def plugin_id(self) -> str:
        return self.descriptor.basename

    @property
    def slug(self) -> str:
        return self.descriptor.slug

    @property
    def can_check_updates(self) -> bool:
        return not validate_descriptor(self.descriptor)

    @property
    def update_server_hostname(self) -> str:
        return urlsplit(self.descriptor.update_uri.strip().rstrip("/")).hostname or ""

    @property
    def update_server_uri(self) -> str:
        """``scheme://host(update_uri)`` + profile path. Empty when no Update URI."""
        uri = self.descriptor.update_uri.strip().rstrip("/")
        parts = urlsplit(uri)
        if not parts.scheme or not parts.hostname:
            return ""
        host = parts.hostname if parts.port is None else f"{parts.hostname}:{parts.port}"
        return f"{parts.scheme}://{host}{self.profile.update_server_path}"

    @property
    def client_hostname(self) -> str:
        return urlsplit(self.site_url).hostname or ""

    def banners(self) -> dict[str, str]:
        return dict(self.profile.banners)

    def icons(self) -> dict[str, str]:
        return dict(self.profile.icons)
