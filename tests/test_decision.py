"""Update decision, details projection, rollback catalog and notices."""

import pytest

from upkeep.types import NoUpdateReason, PluginInfo
from upkeep.updater.decision import (
    build_info,
    compare_versions,
    compatibility_notice,
    decide_update,
    info_defaults,
    rollback_catalog,
    update_defaults,
    update_message,
)
from upkeep.updater.reconciler import reconcile


def _record(session, raw, defaults=None):
    return reconcile(raw, session.descriptor, defaults if defaults is not None else update_defaults(session))


class TestCompareVersions:
    @pytest.mark.parametrize("left,right,expected", [
        ("2.1.0", "2.0.0", 1),
        ("2.0", "2.0.0", 0),
        ("1.10.0", "1.9.9", 1),
        ("2.0.0-beta.1", "2.0.0", -1),
        ("1.0.0", "1.0.1", -1),
    ])
    def test_ordering(self, left, right, expected):
        assert compare_versions(left, right) == expected

    def test_falls_back_to_numeric_segments(self):
        assert compare_versions("v2 build 7", "v2 build 10") == -1
        assert compare_versions("release-3", "2.9") == 1


class TestDecideUpdate:
    def test_scenario_newer_version_available(self, session):
        record = _record(session, {
            "new_version": "2.1.0",
            "package": "https://cdn/2.1.0.zip",
            "allow_rollback": "yes",
        })
        decision = decide_update(record, session.descriptor)
        assert decision.available is True
        assert decision.new_version == "2.1.0"
        assert decision.version == "2.0.0"
        assert decision.package == "https://cdn/2.1.0.zip"
        assert decision.allow_rollback is True

    def test_missing_record_is_transport_failure(self, session):
        decision = decide_update(None, session.descriptor)
        assert decision.available is False
        assert decision.reason == NoUpdateReason.TRANSPORT_FAILURE
        assert decision.record is None

    def test_no_new_version(self, session):
        decision = decide_update(_record(session, {"tested": "6.6"}), session.descriptor)
        assert decision.reason == NoUpdateReason.NO_NEW_VERSION
        assert decision.record is not None

    @pytest.mark.parametrize("new_version", ["2.0.0", "1.9.0"])
    def test_same_or_older_is_up_to_date(self, session, new_version):
        decision = decide_update(_record(session, {"new_version": new_version}), session.descriptor)
        assert decision.reason == NoUpdateReason.UP_TO_DATE

    def test_no_update_keeps_rollback_flag_on_record(self, session):
        record = _record(session, {"new_version": "2.0.0", "package": "https://cdn/2.0.0.zip", "allow_rollback": "1"})
        decision = decide_update(record, session.descriptor)
        assert decision.record.allow_rollback is True


class TestDefaults:
    def test_update_defaults(self, session):
        defaults = update_defaults(session)
        assert defaults["plugin"] == "acme-widgets/acme-widgets.php"
        assert defaults["requires"] == "6.4"
        assert defaults["package_url"] is None
        assert defaults["allow_rollback"] is False
        assert defaults["banners_rtl"] == {}

    def test_requires_php_falls_back_to_config_default(self, session):
        bare = session.descriptor.model_copy(update={"requires_php": ""})
        defaults = update_defaults(session.__class__(**{**session.__dict__, "descriptor": bare}))
        assert defaults["requires_php"] == "7.4"

    def test_info_defaults_description_from_header(self, session):
        defaults = info_defaults(session)
        assert defaults["sections"] == {"description": "Widgets for the Acme storefront."}
        assert defaults["versions"] == {}
        assert defaults["tested"] == "6.5"
        assert defaults["homepage"] == "https://acme.test/plugins/acme-widgets/"

    def test_info_defaults_profile_description_wins(self, session):
        profile = session.profile.model_copy(update={"description": "<p>Long form.</p>"})
        custom = session.__class__(**{**session.__dict__, "profile": profile})
        assert info_defaults(custom)["sections"]["description"] == "<p>Long form.</p>"


class TestBuildInfo:
    VERSIONS = {"1.8.0": "https://cdn/1.8.0.zip", "1.9.0": "https://cdn/1.9.0.zip"}

    @pytest.mark.parametrize("flag", [None, "", "no", "0", False])
    def test_versions_hidden_without_rollback(self, session, flag):
        raw = {"new_version": "2.1.0", "package": "https://cdn/2.1.0.zip", "versions": self.VERSIONS}
        if flag is not None:
            raw["allow_rollback"] = flag
        info = build_info(_record(session, raw, info_defaults(session)), session.descriptor)
        assert isinstance(info, PluginInfo)
        assert info.versions == {}

    def test_versions_shown_with_rollback(self, session):
        raw = {"package": "https://cdn/2.1.0.zip", "versions": self.VERSIONS, "allow_rollback": "yes"}
        info = build_info(_record(session, raw, info_defaults(session)), session.descriptor)
        assert info.versions == {**self.VERSIONS, "trunk": "https://cdn/2.1.0.zip"}

    def test_always_populated(self, session):
        info = build_info(_record(session, {}, info_defaults(session)), session.descriptor)
        assert info.name == "Acme Widgets"
        assert info.slug == "acme-widgets"
        assert info.sections["description"] == "Widgets for the Acme storefront."


class TestRollbackCatalog:
    def test_newest_first_without_trunk(self, session):
        raw = {
            "package": "https://cdn/2.1.0.zip",
            "allow_rollback": "yes",
            "versions": {"1.10.0": "https://cdn/1.10.zip", "2.0.0": "https://cdn/2.0.zip", "1.9.0": "https://cdn/1.9.zip"},
        }
        info = build_info(_record(session, raw, info_defaults(session)), session.descriptor)
        catalog = rollback_catalog(info, "2.0.0")
        assert [entry.version for entry in catalog] == ["2.0.0", "1.10.0", "1.9.0"]
        assert [entry.is_current for entry in catalog] == [True, False, False]


class TestNotices:
    def _available(self, session, **raw):
        record = _record(session, {"new_version": "2.1.0", "package": "https://cdn/2.1.0.zip", **raw})
        return decide_update(record, session.descriptor)

    def test_license_warning_when_key_empty(self, session):
        message = update_message(self._available(session), "", session.strings)
        assert message == " <strong>License key is not available.</strong>"

    def test_string_upgrade_notice(self, session):
        message = update_message(self._available(session, upgrade_notice="Back up first & test."), "LIC", session.strings)
        assert message == " <br /><br /><strong><em>Back up first &amp; test.</em></strong>"

    def test_notice_map_picks_new_version(self, session):
        notices = {"2.1.0": "Database migration.", "2.0.0": "Old."}
        message = update_message(self._available(session, upgrade_notice=notices), "LIC", session.strings)
        assert "Database migration." in message
        assert "Old." not in message

    def test_notice_map_without_entry(self, session):
        message = update_message(self._available(session, upgrade_notice={"3.0.0": "Later"}), "LIC")
        assert message == ""

    def test_compatibility_notice(self, session):
        notice = compatibility_notice(session.descriptor, "2.5.0", session.strings)
        assert "<strong>Acme Widgets - (2.0.0)</strong>" in notice
        assert "<strong>2.5.0</strong>" in notice
        assert compatibility_notice(session.descriptor, "2.0.0") is None
