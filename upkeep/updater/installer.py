"""Install pipeline adapter around a package installer primitive.

The primitive (``PackageInstaller``) physically replaces plugin files. The
pipeline builds three phase callbacks for each call and hands them straight
to ``run()``; nothing is registered anywhere, so a phase can only ever fire
for the install that created it.

    pre_install        record whether the plugin is active, then deactivate it
    clear_destination  move the current install aside and return the backup path
    post_install       reactivate the plugin if it was active
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx

from upkeep.exceptions import InstallerError
from upkeep.types import InstallerOutcome, InstallResult, InstallStatus
from upkeep.updater.descriptor import plugin_slug
from upkeep.updater.host import PluginHost

logger = logging.getLogger(__name__)


def is_single_file(plugin_id: str) -> bool:
    """``hello.php`` lives directly in the plugins directory; it has no folder of its own."""
    return "/" not in plugin_id


def _remove(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)
    elif path.exists():
        path.unlink()


@dataclass(frozen=True)
class InstallPhaseCallbacks:
    pre_install: Callable[[], None]
    clear_destination: Callable[[Path], Optional[Path]]
    post_install: Callable[[], None]


class PackageInstaller(Protocol):
    def connect(self, paths: list[Path]) -> bool:
        """Whether every path is reachable and writable."""
        ...

    def run(
        self,
        package_url: str,
        destination: Path,
        extra: dict[str, Any],
        callbacks: InstallPhaseCallbacks,
    ) -> InstallerOutcome:
        """Install ``package_url`` into ``destination``.

        Must call the phases in order: ``pre_install``, ``clear_destination``,
        ``post_install``. May raise :class:`InstallerError`.
        """
        ...


@dataclass
class _PhaseState:
    was_active: bool = False
    reactivation_attempted: bool = False
    reactivation_error: str = ""
    backup: Optional[Path] = None
    messages: list[str] = field(default_factory=list)


class InstallPipeline:
    """Run one package install for one plugin.

    Args:
        installer: The package installer primitive.
        host: Answers active/inactive and (de)activates plugins.
        plugins_dir: Root all plugin directories live under.
        backup_dir: Where ``clear_destination`` moves the previous install.
    """

    def __init__(
        self,
        installer: PackageInstaller,
        host: PluginHost,
        plugins_dir: Path,
        backup_dir: Path,
    ) -> None:
        self.installer = installer
        self.host = host
        self.plugins_dir = Path(plugins_dir)
        self.backup_dir = Path(backup_dir)

    def destination_for(self, plugin_id: str) -> Path:
        """The plugin's directory, or the plugin file itself for a single-file plugin."""
        if is_single_file(plugin_id):
            return self.plugins_dir / plugin_id
        return self.plugins_dir / plugin_slug(plugin_id)

    def _callbacks(self, plugin_id: str, state: _PhaseState) -> InstallPhaseCallbacks:
        def pre_install() -> None:
            state.was_active = self.host.is_active(plugin_id)
            if state.was_active:
                self.host.deactivate(plugin_id)
                state.messages.append(f"Deactivated {plugin_id}")

        def clear_destination(target: Path) -> Optional[Path]:
            target = Path(target)
            if not target.exists():
                return None
            stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
            backup = self.backup_dir / f"{target.name}.{stamp}"
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(target), str(backup))
            state.backup = backup
            state.messages.append(f"Moved {target} to {backup}")
            return backup

        def post_install() -> None:
            if not state.was_active:
                return
            state.reactivation_attempted = True
            try:
                self.host.activate(plugin_id)
                state.messages.append(f"Reactivated {plugin_id}")
            except Exception as exc:
                state.reactivation_error = str(exc) or exc.__class__.__name__
                logger.warning("Reactivating %s failed: %s", plugin_id, state.reactivation_error)

        return InstallPhaseCallbacks(pre_install, clear_destination, post_install)

    def install(self, plugin_id: str, package_url: str) -> InstallResult:
        destination = self.destination_for(plugin_id)

        if not self.installer.connect([self.plugins_dir, self.backup_dir]):
            logger.warning("Installer could not connect to %s", self.plugins_dir)
            return InstallResult(
                status=InstallStatus.CONNECT_FAILED,
                error="Unable to connect to the filesystem.",
            )

        state = _PhaseState()
        extra = {
            "plugin": plugin_id,
            "single_file": is_single_file(plugin_id),
            "temp_backup": {"slug": plugin_slug(plugin_id), "dir": "plugins"},
        }
        try:
            outcome = self.installer.run(package_url, destination, extra, self._callbacks(plugin_id, state))
        except InstallerError as exc:
            outcome = InstallerOutcome(success=False, error=str(exc))
        except Exception as exc:
            logger.warning("Installer raised for %s: %s", plugin_id, exc)
            outcome = InstallerOutcome(success=False, error=f"{exc.__class__.__name__}: {exc}")

        messages = state.messages + list(outcome.messages)
        if not outcome.success:
            logger.warning("Install of %s from %s failed: %s", plugin_id, package_url, outcome.error)
            return InstallResult(
                status=InstallStatus.FAILED,
                was_active=state.was_active,
                reactivation_attempted=state.reactivation_attempted,
                reactivation_error=state.reactivation_error,
                error=outcome.error or "Installer reported failure.",
                messages=messages,
            )

        logger.info("Installed %s from %s", plugin_id, package_url)
        return InstallResult(
            status=InstallStatus.INSTALLED,
            was_active=state.was_active,
            reactivation_attempted=state.reactivation_attempted,
            reactivation_error=state.reactivation_error,
            messages=messages,
        )


# ─── Local reference primitive ────────────────────────────────────────────────

class LocalPackageInstaller:
    """Install plugin zips into a local plugins directory.

    Downloads ``http(s)`` packages with httpx and reads ``file://`` URLs or
    plain paths from disk. The archive is extracted to a staging directory
    before anything on disk is touched; if the swap into place fails, the
    backup made by ``clear_destination`` is moved back. For a single-file
    plugin only the matching file from the archive replaces the live one.
    """

    def __init__(self, download_timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        if download_timeout is None:
            from upkeep.config import config
            download_timeout = config.download_timeout
        self._timeout = download_timeout
        self._transport = transport

    def connect(self, paths: list[Path]) -> bool:
        for path in paths:
            try:
                Path(path).mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logger.warning("Cannot create %s: %s", path, exc)
                return False
            if not os.access(path, os.W_OK):
                logger.warning("%s is not writable", path)
                return False
        return True

    def run(
        self,
        package_url: str,
        destination: Path,
        extra: dict[str, Any],
        callbacks: InstallPhaseCallbacks,
    ) -> InstallerOutcome:
        destination = Path(destination)
        messages: list[str] = []

        with tempfile.TemporaryDirectory(prefix="upkeep-") as tmp:
            archive = self._fetch(package_url, Path(tmp) / "package.zip")
            messages.append(f"Downloaded {package_url}")
            source = self._extract(archive, Path(tmp) / "staged", package_url)
            if extra.get("single_file"):
                source = self._single_file(source, destination.name, package_url)
            messages.append("Unpacked the package")

            callbacks.pre_install()
            backup = callbacks.clear_destination(destination)
            try:
                shutil.move(str(source), str(destination))
            except OSError as exc:
                if backup is not None and backup.exists():
                    _remove(destination)
                    shutil.move(str(backup), str(destination))
                    messages.append(f"Restored {destination} from backup")
                raise InstallerError(f"Could not move package into place: {exc}", package_url=package_url)
            messages.append(f"Installed into {destination}")

            callbacks.post_install()

        if backup is not None:
            _remove(backup)
        return InstallerOutcome(success=True, messages=messages)

    def _single_file(self, source: Path, name: str, package_url: str) -> Path:
        candidate = source / name
        if not candidate.is_file():
            raise InstallerError(f"Package does not contain {name}", package_url=package_url)
        return candidate

    def _fetch(self, package_url: str, target: Path) -> Path:
        parts = urlsplit(package_url)
        if parts.scheme in ("http", "https"):
            try:
                with httpx.Client(
                    timeout=self._timeout, transport=self._transport, follow_redirects=True
                ) as client:
                    with client.stream("GET", package_url) as response:
                        if response.status_code != 200:
                            raise InstallerError(
                                f"Download failed: HTTP {response.status_code}", package_url=package_url
                            )
                        with target.open("wb") as fh:
                            for chunk in response.iter_bytes():
                                fh.write(chunk)
            except httpx.HTTPError as exc:
                raise InstallerError(f"Download failed: {exc}", package_url=package_url)
            return target

        if parts.scheme == "file":
            local = Path(url2pathname(parts.path))
        elif parts.scheme == "":
            local = Path(package_url)
        else:
            raise InstallerError(f"Unsupported package URL scheme '{parts.scheme}'", package_url=package_url)

        if not local.is_file():
            raise InstallerError(f"Package not found: {local}", package_url=package_url)
        shutil.copyfile(local, target)
        return target

    def _extract(self, archive: Path, staging: Path, package_url: str) -> Path:
        """Unzip into ``staging`` and return the plugin directory inside it."""
        staging.mkdir(parents=True)
        root = staging.resolve()
        try:
            with zipfile.ZipFile(archive) as zf:
                for member in zf.namelist():
                    target = (staging / member).resolve()
                    if target != root and root not in target.parents:
                        raise InstallerError(f"Archive entry escapes target: {member}", package_url=package_url)
                zf.extractall(staging)
        except zipfile.BadZipFile as exc:
            raise InstallerError(f"Package is not a zip archive: {exc}", package_url=package_url)

        entries = [entry for entry in staging.iterdir() if entry.name != "__MACOSX"]
        if not entries:
            raise InstallerError("Package is empty", package_url=package_url)
        if len(entries) == 1 and entries[0].is_dir():
            return entries[0]
        return staging
