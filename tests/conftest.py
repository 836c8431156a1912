"""Test fixtures: a plugins directory with one installed plugin, config, session, fakes.

All tests should use these fixtures for consistency.
"""

from pathlib import Path
from typing import Optional

import pytest

from upkeep.auth.nonce import NonceManager
from upkeep.config import PluginProfileYAML, UpkeepConfig
from upkeep.types import InstallerOutcome
from upkeep.updater.session import UpdateSession

SECRET = "test-secret-key-with-at-least-32-bytes!"
UPDATE_URL = "https://updates.acme.test/wp-json/updater/v1/check"
PLUGIN_ID = "acme-widgets/acme-widgets.php"

PLUGIN_HEADER = """<?php
/**
 * Plugin Name: Acme Widgets
 * Plugin URI: https://acme.test/plugins/acme-widgets/
 * Description: Widgets for the Acme storefront.
 * Version: {version}
 * Author: Acme Inc
 * Author URI: https://acme.test
 * Update URI: https://updates.acme.test
 * Tested up to: 6.5
 * Requires PHP: 8.0
 */
"""


def write_plugin(plugins_dir: Path, version: str = "2.0.0", header: Optional[str] = None) -> Path:
    """Write ``acme-widgets/acme-widgets.php`` under ``plugins_dir``."""
    plugin_file = plugins_dir / "acme-widgets" / "acme-widgets.php"
    plugin_file.parent.mkdir(parents=True, exist_ok=True)
    plugin_file.write_text((header or PLUGIN_HEADER).format(version=version))
    return plugin_file


class FakeHost:
    """In-memory plugin host that counts activations."""

    def __init__(self, active: bool = True, valid: bool = True, activate_error: Exception = None):
        self.active = {PLUGIN_ID} if active else set()
        self.valid = valid
        self.activate_error = activate_error
        self.activate_calls = 0
        self.deactivate_calls = 0

    def is_active(self, plugin_id):
        return plugin_id in self.active

    def activate(self, plugin_id):
        self.activate_calls += 1
        if self.activate_error is not None:
            raise self.activate_error
        self.active.add(plugin_id)

    def deactivate(self, plugin_id):
        self.deactivate_calls += 1
        self.active.discard(plugin_id)

    def validate(self, plugin_id):
        return self.valid and plugin_id == PLUGIN_ID


class FakeInstaller:
    """Package installer that runs the phases without touching packages."""

    def __init__(
        self,
        success: bool = True,
        can_connect: bool = True,
        raises: Exception = None,
        run_post_install: bool = True,
    ):
        self.success = success
        self.can_connect = can_connect
        self.raises = raises
        self.run_post_install = run_post_install
        self.calls = []

    def connect(self, paths):
        return self.can_connect

    def run(self, package_url, destination, extra, callbacks):
        self.calls.append((package_url, destination, extra))
        if self.raises is not None:
            raise self.raises
        callbacks.pre_install()
        callbacks.clear_destination(destination)
        if not self.success:
            return InstallerOutcome(success=False, error="Download failed.", messages=["Downloading"])
        if self.run_post_install:
            callbacks.post_install()
        return InstallerOutcome(success=True, messages=["Downloading", "Unpacking"])


@pytest.fixture
def plugins_dir(tmp_path):
    root = tmp_path / "plugins"
    write_plugin(root)
    return root


@pytest.fixture
def config(tmp_path, plugins_dir):
    """Test configuration with safe defaults."""
    return UpkeepConfig(
        _env_file=None,
        secret_key=SECRET,
        site_url="https://shop.example.com",
        plugins_dir=str(plugins_dir),
        state_dir=str(tmp_path / "state"),
        profiles_file=str(tmp_path / "plugins.yaml"),
        debug=False,
    )


@pytest.fixture
def profile():
    return PluginProfileYAML(
        plugin_file=PLUGIN_ID,
        license_key="LIC-123",
        product_id=42,
        update_server_path="wp-json/updater/v1/check",
        banners={"low": "https://acme.test/banner-772x250.png"},
        icons={"1x": "https://acme.test/icon-128x128.png"},
    )


@pytest.fixture
def session(profile, plugins_dir, config):
    return UpdateSession.open(profile, plugins_dir, config)


@pytest.fixture
def nonces():
    return NonceManager(secret_key=SECRET, algorithm="HS256", ttl_minutes=5)
