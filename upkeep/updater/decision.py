"""Update decision and details projection.

Turns a reconciled record into what the host shows: an update offer (or the
reason there is none), the details view, the rollback version list, and the
notices rendered under an available update.
"""

from __future__ import annotations

import functools
import html as html_lib
import logging
import re
from typing import Any, Optional

from packaging.version import InvalidVersion, Version

from upkeep.types import (
    CanonicalUpdateRecord,
    NoUpdate,
    NoUpdateReason,
    PluginDescriptor,
    PluginInfo,
    RollbackVersion,
    UpdateAvailable,
    UpdateDecision,
)
from upkeep.updater.sanitize import sanitize_text
from upkeep.updater.session import UpdateSession
from upkeep.updater.strings import DEFAULT_STRINGS

logger = logging.getLogger(__name__)


# ─── Version comparison ───────────────────────────────────────────────────────

def _numeric_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version)) or (0,)


def compare_versions(left: str, right: str) -> int:
    """-1, 0 or 1. PEP 440 when both parse, numeric segments otherwise."""
    try:
        a, b = Version(left), Version(right)
    except InvalidVersion:
        a, b = _numeric_key(left), _numeric_key(right)
        # pad so "2.0" == "2.0.0"
        width = max(len(a), len(b))
        a = a + (0,) * (width - len(a))
        b = b + (0,) * (width - len(b))
    return (a > b) - (a < b)


# ─── Local defaults ───────────────────────────────────────────────────────────

def _url_shorten(url: str, length: int = 150) -> str:
    short = re.sub(r"^https?://", "", url.strip())
    short = re.sub(r"^www\.", "", short).rstrip("/")
    if len(short) > length:
        short = short[: length - 3] + "..."
    return short


def update_defaults(session: UpdateSession) -> dict[str, Any]:
    """Installed state the update-check record falls back to."""
    descriptor = session.descriptor
    return {
        "id": _url_shorten(descriptor.plugin_uri),
        "slug": session.slug,
        "plugin": session.plugin_id,
        "version": descriptor.version,
        "url": descriptor.plugin_uri,
        "icons": session.icons(),
        "banners": session.banners(),
        "banners_rtl": {},
        "requires": session.default_requires,
        "tested": descriptor.tested_up_to,
        "requires_php": descriptor.requires_php or session.default_requires_php,
        "requires_plugins": [],
        "package_url": None,
        "allow_rollback": False,
    }


def info_defaults(session: UpdateSession) -> dict[str, Any]:
    """Descriptive metadata the details record falls back to."""
    descriptor = session.descriptor
    description = session.profile.description.strip() or descriptor.description
    defaults: dict[str, Any] = {
        "name": descriptor.name,
        "version": descriptor.version,
        "slug": session.slug,
        "plugin": session.plugin_id,
        "banners": session.banners(),
        "banners_rtl": {},
        "icons": session.icons(),
        "author": descriptor.author,
        "homepage": descriptor.plugin_uri,
        "requires_php": descriptor.requires_php or session.default_requires_php,
        "sections": {"description": description},
        "requires_plugins": [],
        "versions": {},
        "allow_rollback": False,
    }
    if descriptor.tested_up_to:
        defaults["tested"] = descriptor.tested_up_to
    return defaults


# ─── Projections ──────────────────────────────────────────────────────────────

def decide_update(
    record: Optional[CanonicalUpdateRecord],
    descriptor: PluginDescriptor,
) -> UpdateDecision:
    """Offer an update only when the server names a newer version."""
    if record is None:
        return NoUpdate(
            plugin=descriptor.basename,
            version=descriptor.version,
            reason=NoUpdateReason.TRANSPORT_FAILURE,
        )

    if not record.new_version:
        return NoUpdate(
            plugin=descriptor.basename,
            version=descriptor.version,
            reason=NoUpdateReason.NO_NEW_VERSION,
            record=record,
        )

    if compare_versions(record.new_version, descriptor.version) <= 0:
        return NoUpdate(
            plugin=descriptor.basename,
            version=descriptor.version,
            reason=NoUpdateReason.UP_TO_DATE,
            record=record,
        )

    logger.info("Update available for %s: %s -> %s", descriptor.basename, descriptor.version, record.new_version)
    return UpdateAvailable(
        plugin=record.plugin or descriptor.basename,
        slug=record.slug or descriptor.slug,
        version=descriptor.version,
        new_version=record.new_version,
        package=record.package_url or "",
        url=record.url,
        tested=record.tested,
        requires=record.requires,
        requires_php=record.requires_php,
        icons=dict(record.icons),
        banners=dict(record.banners),
        upgrade_notice=record.upgrade_notice,
        allow_rollback=record.allow_rollback,
        record=record,
    )


def build_info(record: CanonicalUpdateRecord, descriptor: PluginDescriptor) -> PluginInfo:
    """Details view. The version catalog is hidden unless rollback is allowed."""
    data = record.model_dump()
    if not data.get("name"):
        data["name"] = descriptor.name
    if not data.get("slug"):
        data["slug"] = descriptor.slug
    if not record.allow_rollback:
        data["versions"] = {}
    return PluginInfo.model_validate(data)


def rollback_catalog(info: PluginInfo, current_version: str = "") -> list[RollbackVersion]:
    """Versions offered on the rollback page, newest first, without ``trunk``."""
    current = current_version or info.version
    entries = [(version, package) for version, package in info.versions.items() if version != "trunk"]
    entries.sort(key=functools.cmp_to_key(lambda a, b: compare_versions(b[0], a[0])))
    return [
        RollbackVersion(version=version, package=package, is_current=version == current)
        for version, package in entries
    ]


# ─── Notices ──────────────────────────────────────────────────────────────────

def update_message(
    update: UpdateAvailable,
    license_key: str,
    strings: Optional[dict[str, str]] = None,
) -> str:
    """HTML notice appended to an available update.

    Adds a license warning when no key is configured, then the upgrade
    notice: either a plain string or a map keyed by version, in which case
    only the entry for ``new_version`` is shown.
    """
    strings = strings or DEFAULT_STRINGS
    parts: list[str] = []

    if not license_key.strip():
        parts.append(" <strong>%s</strong>" % html_lib.escape(strings["license_key_empty_message"]))

    notice = update.upgrade_notice
    if isinstance(notice, dict):
        notice = notice.get(sanitize_text(update.new_version), "")
    if isinstance(notice, str) and notice.strip():
        parts.append(" <br /><br /><strong><em>%s</em></strong>" % html_lib.escape(notice))

    return "".join(parts)


def compatibility_notice(
    descriptor: PluginDescriptor,
    required_version: str,
    strings: Optional[dict[str, str]] = None,
) -> Optional[str]:
    """Notice for an installed version older than ``required_version``, else ``None``."""
    if compare_versions(descriptor.version, required_version) >= 0:
        return None
    strings = strings or DEFAULT_STRINGS
    return strings["incompatible_version_notice"] % (
        html_lib.escape(descriptor.name),
        html_lib.escape(descriptor.version),
        html_lib.escape(required_version),
    )
