"""Metadata reconciler: raw update-server payload to CanonicalUpdateRecord.

Pure functions: no I/O, inputs are never mutated. Each rule reads only its own
raw keys, so an absent key leaves the canonical field to the local defaults.
"""

from __future__ import annotations

import copy
import html as html_lib
from typing import Any, Mapping

from upkeep.types import CanonicalUpdateRecord, PluginDescriptor
from upkeep.updater.sanitize import absint, safe_url, sanitize_html, string_to_boolean

_SECTION_KEYS = ("description", "installation", "faq", "changelog")
_COUNTER_KEYS = ("active_installs", "rating", "support_threads", "support_threads_resolved")

# raw key → canonical key, copied without transformation
_TEXT_KEYS = (
    "tested",
    "requires",
    "requires_php",
    "last_updated",
    "preview_link",
    "added",
    "homepage",
    "commercial_support_url",
    "support_url",
    "author_profile",
)
_STRUCTURED_KEYS = (
    "upgrade_notice",
    "ratings",
    "num_ratings",
    "tags",
)
_MAP_KEYS = ("banners", "banners_rtl", "icons")


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


def screenshots_html(screenshots: list[Mapping[str, Any]]) -> str:
    """Render ``[{src, caption}, ...]`` as an ordered gallery list."""
    items = []
    for shot in screenshots:
        if not isinstance(shot, Mapping):
            continue
        src = html_lib.escape(safe_url(shot.get("src")), quote=True)
        caption = html_lib.escape(_text(shot.get("caption")), quote=True)
        items.append(f'<li><a target="_blank" href="{src}"><img src="{src}" alt="{caption}"></a></li>')
    return "<ol>" + "".join(items) + "</ol>"


def _author_link(author: Any, profile: Any) -> str:
    return '<a target="_blank" href="{}">{}</a>'.format(
        html_lib.escape(safe_url(profile), quote=True),
        html_lib.escape(_text(author), quote=False),
    )


def prepare_remote_item(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Apply the per-field rules to ``raw``. Returns a new dict.

    Keys the rules do not produce are absent, so :func:`deep_merge` falls
    back to the local defaults for them.
    """
    item: dict[str, Any] = {}
    if not raw:
        return item

    sections: dict[str, str] = {}
    for key in _SECTION_KEYS:
        if key in raw and raw[key] is not None:
            sections[key] = sanitize_html(raw[key])

    shots = raw.get("screenshots")
    if isinstance(shots, list) and shots:
        item["screenshots"] = {index + 1: copy.deepcopy(shot) for index, shot in enumerate(shots)}
        sections["screenshots"] = sanitize_html(screenshots_html(shots))

    if sections:
        item["sections"] = sections

    if "allow_rollback" in raw:
        item["allow_rollback"] = string_to_boolean(raw["allow_rollback"])

    # new_version wins over version
    if raw.get("version") is not None:
        item["new_version"] = _text(raw["version"])
    if raw.get("new_version") is not None:
        item["new_version"] = _text(raw["new_version"])

    versions = raw.get("versions")
    if isinstance(versions, Mapping):
        item["versions"] = {
            _text(version): _text(package).strip()
            for version, package in versions.items()
            if _text(package).strip()
        }

    package = None
    for key in ("download_link", "package"):
        if _text(raw.get(key)).strip():
            package = _text(raw[key]).strip()
            break
    if package:
        item["package_url"] = package
        item["download_link"] = package
        item.setdefault("versions", {})["trunk"] = package
    else:
        # no rollback or update target without a resolvable package
        item["versions"] = {}

    for key in _TEXT_KEYS:
        if key in raw and raw[key] is not None:
            item[key] = _text(raw[key])

    for key in _STRUCTURED_KEYS:
        if key in raw and raw[key] is not None:
            item[key] = copy.deepcopy(raw[key])

    for key in _MAP_KEYS:
        if isinstance(raw.get(key), Mapping):
            item[key] = {str(k): v for k, v in copy.deepcopy(dict(raw[key])).items()}

    requires_plugins = raw.get("requires_plugins")
    if isinstance(requires_plugins, (list, tuple)):
        item["requires_plugins"] = list(requires_plugins)
    elif isinstance(requires_plugins, str) and requires_plugins.strip():
        item["requires_plugins"] = [p.strip() for p in requires_plugins.split(",") if p.strip()]

    for key in _COUNTER_KEYS:
        if key in raw:
            item[key] = absint(raw[key])

    if "business_model" in raw:
        item["business_model"] = "commercial" if string_to_boolean(raw["business_model"]) else ""

    if raw.get("author") is not None:
        if raw.get("author_profile"):
            item["author"] = _author_link(raw["author"], raw["author_profile"])
        else:
            item["author"] = _text(raw["author"])

    return item


def deep_merge(primary: Mapping[str, Any], fallback: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two mappings; ``primary`` wins, nested mappings merge key by key.

    Neither input is modified.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(fallback))
    for key, value in primary.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = deep_merge(value, current)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def reconcile(
    raw: Mapping[str, Any],
    descriptor: PluginDescriptor,
    defaults: Mapping[str, Any],
) -> CanonicalUpdateRecord:
    """Normalize ``raw`` and merge it over ``defaults``.

    ``descriptor`` fills identity fields the defaults leave out, so a record
    always names the plugin it describes.
    """
    merged = deep_merge(prepare_remote_item(raw), defaults)
    merged.setdefault("plugin", descriptor.basename)
    merged.setdefault("slug", descriptor.slug)
    merged.setdefault("name", descriptor.name)
    merged.setdefault("version", descriptor.version)
    if not merged.get("package_url"):
        merged["versions"] = {}
    return CanonicalUpdateRecord.model_validate(merged)
