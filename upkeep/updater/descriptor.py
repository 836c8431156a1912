"""Read plugin header fields from the installed plugin file."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from upkeep.exceptions import DescriptorError
from upkeep.types import PluginDescriptor

logger = logging.getLogger(__name__)

# Headers live in the first comment block; nothing past 8 KiB is scanned.
_HEADER_READ_BYTES = 8 * 1024

# descriptor field → header label
_HEADERS = {
    "name": "Plugin Name",
    "plugin_uri": "Plugin URI",
    "version": "Version",
    "description": "Description",
    "author": "Author",
    "author_uri": "Author URI",
    "update_uri": "Update URI",
    "tested_up_to": "Tested up to",
    "requires_php": "Requires PHP",
    "requires_at_least": "Requires at least",
}


def _header_pattern(label: str) -> re.Pattern:
    return re.compile(
        r"^(?:[ \t]*<\?php)?[ \t/*#@]*" + re.escape(label) + r":(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )


_PATTERNS = {field: _header_pattern(label) for field, label in _HEADERS.items()}


def _clean_header_value(value: str) -> str:
    """Strip a trailing comment close and surrounding whitespace."""
    return re.sub(r"\s*(?:\*/|\?>).*", "", value).strip()


def parse_headers(text: str) -> dict[str, str]:
    """Extract known header fields from plugin file text.

    Only the first occurrence of each header counts. Unknown headers are ignored.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    headers: dict[str, str] = {}
    for field, pattern in _PATTERNS.items():
        match = pattern.search(text)
        if match:
            headers[field] = _clean_header_value(match.group(1))
    return headers


def plugin_basename(plugin_file: Path, plugins_dir: Path) -> str:
    """Path of ``plugin_file`` relative to ``plugins_dir`` with forward slashes."""
    try:
        relative = Path(plugin_file).resolve().relative_to(Path(plugins_dir).resolve())
    except ValueError:
        relative = Path(Path(plugin_file).name)
    return relative.as_posix()


def plugin_slug(basename: str) -> str:
    """``my-plugin/my-plugin.php`` → ``my-plugin``; ``hello.php`` → ``hello``."""
    head, _, tail = basename.partition("/")
    return head if tail else head.rsplit(".", 1)[0]


def read_descriptor(plugin_file: Path, plugins_dir: Path) -> PluginDescriptor:
    """Read the header block of ``plugin_file``.

    Raises:
        DescriptorError: File missing/unreadable, or no ``Plugin Name`` header.
    """
    path = Path(plugin_file)
    try:
        with path.open("rb") as fh:
            head = fh.read(_HEADER_READ_BYTES)
    except OSError as exc:
        raise DescriptorError(f"Cannot read plugin file: {exc}", plugin_file=str(path)) from exc

    headers = parse_headers(head.decode("utf-8", errors="replace"))
    if not headers.get("name"):
        raise DescriptorError(
            f"'{path.name}' has no 'Plugin Name' header.", plugin_file=str(path)
        )

    basename = plugin_basename(path, plugins_dir)
    return PluginDescriptor(
        **headers,
        basename=basename,
        slug=plugin_slug(basename),
        plugin_file=str(path.resolve()),
    )


def validate_descriptor(descriptor: PluginDescriptor) -> list[str]:
    """Return the problems that prevent update checks for this plugin.

    Empty list means the plugin can be checked against its update server.
    """
    problems: list[str] = []
    if not descriptor.update_uri:
        problems.append(
            'Plugin "Update URI" is not available. Please add "Update URI" field on plugin file header.'
        )
    if not descriptor.tested_up_to:
        problems.append(
            'Plugin "Tested up to" is not available. Please add "Tested up to" field on plugin file header.'
        )
    return problems
