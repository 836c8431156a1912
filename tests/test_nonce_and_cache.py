"""Action nonces, JWT tokens, update cache and the JSON plugin host."""

import json

import pytest
from freezegun import freeze_time

from upkeep.auth.jwt import JWTManager
from upkeep.auth.nonce import NonceManager, recheck_action, rollback_action
from upkeep.exceptions import NonceError, UpkeepError
from upkeep.types import NoUpdate, NoUpdateReason
from upkeep.updater.cache import CACHE_FILENAME, UpdateCache
from upkeep.updater.decision import decide_update, update_defaults
from upkeep.updater.host import JsonPluginHost
from upkeep.updater.reconciler import reconcile

from tests.conftest import PLUGIN_ID, SECRET


class TestNonceManager:
    def test_round_trip(self, nonces):
        nonce = nonces.create(rollback_action(PLUGIN_ID), "alice")
        nonces.check(nonce, rollback_action(PLUGIN_ID), "alice")
        assert nonces.verify(nonce, rollback_action(PLUGIN_ID), "alice") is True

    def test_bound_to_action(self, nonces):
        nonce = nonces.create(rollback_action(PLUGIN_ID), "alice")
        assert nonces.verify(nonce, recheck_action(PLUGIN_ID), "alice") is False
        assert nonces.verify(nonce, rollback_action("other/other.php"), "alice") is False

    def test_bound_to_actor(self, nonces):
        nonce = nonces.create(rollback_action(PLUGIN_ID), "alice")
        with pytest.raises(NonceError, match="another actor"):
            nonces.check(nonce, rollback_action(PLUGIN_ID), "mallory")

    def test_empty_and_garbage(self, nonces):
        assert nonces.verify("", rollback_action(PLUGIN_ID), "alice") is False
        assert nonces.verify("not-a-token", rollback_action(PLUGIN_ID), "alice") is False

    def test_other_secret_rejected(self, nonces):
        other = NonceManager(secret_key="x" * 40, algorithm="HS256", ttl_minutes=5)
        nonce = other.create(rollback_action(PLUGIN_ID), "alice")
        assert nonces.verify(nonce, rollback_action(PLUGIN_ID), "alice") is False

    def test_expires(self, nonces):
        stale = NonceManager(secret_key=SECRET, algorithm="HS256", ttl_minutes=-1)
        nonce = stale.create(rollback_action(PLUGIN_ID), "alice")
        with pytest.raises(NonceError, match="expired"):
            nonces.check(nonce, rollback_action(PLUGIN_ID), "alice")

    def test_valid_until_ttl_elapses(self, nonces):
        with freeze_time("2026-01-01 12:00:00"):
            nonce = nonces.create(rollback_action(PLUGIN_ID), "alice")
        with freeze_time("2026-01-01 12:04:30"):
            assert nonces.verify(nonce, rollback_action(PLUGIN_ID), "alice") is True
        with freeze_time("2026-01-01 12:06:00"):
            assert nonces.verify(nonce, rollback_action(PLUGIN_ID), "alice") is False

    def test_api_token_is_not_a_nonce(self, nonces, monkeypatch):
        from upkeep.config import config
        monkeypatch.setattr(config, "secret_key", SECRET)
        token = JWTManager().create_token("alice", ["update_plugins"])
        assert nonces.verify(token, rollback_action(PLUGIN_ID), "alice") is False


class TestJWTManager:
    def test_round_trip(self, monkeypatch):
        from upkeep.config import config
        monkeypatch.setattr(config, "secret_key", SECRET)
        manager = JWTManager()
        payload = manager.verify_token(manager.create_token("alice", ["update_plugins"]))
        assert payload == {"actor": "alice", "capabilities": ["update_plugins"]}

    def test_nonce_is_not_an_api_token(self, monkeypatch):
        from upkeep.config import config
        monkeypatch.setattr(config, "secret_key", SECRET)
        nonce = NonceManager(secret_key=SECRET).create(rollback_action(PLUGIN_ID), "alice")
        with pytest.raises(UpkeepError, match="Invalid token"):
            JWTManager().verify_token(nonce)

    def test_invalid_token(self):
        with pytest.raises(UpkeepError, match="Invalid token"):
            JWTManager().verify_token("garbage")


class TestUpdateCache:
    def _decision(self, session, raw):
        return decide_update(reconcile(raw, session.descriptor, update_defaults(session)), session.descriptor)

    def test_set_and_get(self, session, tmp_path):
        cache = UpdateCache(tmp_path)
        decision = self._decision(session, {
            "new_version": "2.1.0", "package": "https://cdn/2.1.0.zip", "allow_rollback": "yes",
            "screenshots": [{"src": "https://c.test/1.png", "caption": "One"}],
        })
        cache.set(decision)
        cached = cache.get(PLUGIN_ID)
        assert cached.available is True
        assert cached.new_version == "2.1.0"
        assert cached.allow_rollback is True
        assert cached.record["package_url"] == "https://cdn/2.1.0.zip"
        assert (tmp_path / CACHE_FILENAME).exists()

    def test_get_missing(self, tmp_path):
        assert UpdateCache(tmp_path).get(PLUGIN_ID) is None

    def test_no_record_decision(self, tmp_path):
        cache = UpdateCache(tmp_path)
        cache.set(NoUpdate(plugin=PLUGIN_ID, version="2.0.0", reason=NoUpdateReason.TRANSPORT_FAILURE))
        cached = cache.get(PLUGIN_ID)
        assert cached.available is False
        assert cached.record is None

    def test_invalidate(self, session, tmp_path):
        cache = UpdateCache(tmp_path)
        cache.set(self._decision(session, {"new_version": "2.1.0"}))
        assert cache.invalidate(PLUGIN_ID) is True
        assert cache.get(PLUGIN_ID) is None
        assert cache.invalidate(PLUGIN_ID) is False

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        (tmp_path / CACHE_FILENAME).write_text("{not json")
        cache = UpdateCache(tmp_path)
        assert cache.get(PLUGIN_ID) is None
        assert cache.all() == {}

    def test_clear(self, session, tmp_path):
        cache = UpdateCache(tmp_path)
        cache.set(self._decision(session, {"new_version": "2.1.0"}))
        cache.clear()
        assert not (tmp_path / CACHE_FILENAME).exists()


class TestJsonPluginHost:
    def test_activate_and_deactivate(self, plugins_dir):
        host = JsonPluginHost(plugins_dir)
        assert host.is_active(PLUGIN_ID) is False
        host.activate(PLUGIN_ID)
        assert host.is_active(PLUGIN_ID) is True
        assert json.loads((plugins_dir / ".upkeep" / "active.json").read_text()) == [PLUGIN_ID]
        host.deactivate(PLUGIN_ID)
        assert host.is_active(PLUGIN_ID) is False

    def test_validate(self, plugins_dir):
        host = JsonPluginHost(plugins_dir)
        assert host.validate(PLUGIN_ID) is True
        assert host.validate("missing/missing.php") is False
        assert host.validate("../etc/passwd") is False
        assert host.validate("") is False

    def test_activate_missing_plugin_raises(self, plugins_dir):
        with pytest.raises(FileNotFoundError):
            JsonPluginHost(plugins_dir).activate("missing/missing.php")
