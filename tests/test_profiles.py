"""Tests for linkinject.profiles — effective dictionary and preferences."""

from linkinject.models import IGNORE_SENTINEL, DeviceProfile, RoutePreference
from linkinject.profiles import (
    EffectiveDictionary,
    active_dictionary,
    is_suppressed,
    merged_preference,
    preference_for,
    profile_for_path,
    suppressed_keys,
)


class TestEffectiveDictionary:
    def test_lookup_any_casing(self):
        d = EffectiveDictionary({"Dev": "x"})
        assert d.lookup("dev") == "x"
        assert d.lookup("DEV") == "x"
        assert d.canonical_key("dEV") == "Dev"

    def test_missing(self):
        assert EffectiveDictionary({}).lookup("a") is None

    def test_mapping_protocol_keeps_casing(self):
        d = EffectiveDictionary({"Dev": "x", "B": "y"})
        assert list(d) == ["Dev", "B"]
        assert len(d) == 2
        assert d["Dev"] == "x"

    def test_last_inserted_casing_wins(self):
        d = EffectiveDictionary({"Dev": "default", "DEV": "override"})
        assert d.lookup("dev") == "override"


class TestActiveDictionary:
    def test_defaults_only(self):
        assert dict(active_dictionary({"A": "1"})) == {"A": "1"}

    def test_override_wins(self):
        merged = active_dictionary({"A": "1", "B": "2"}, {"B": "20", "C": "30"})
        assert dict(merged) == {"A": "1", "B": "20", "C": "30"}

    def test_sentinel_removes_key(self):
        merged = active_dictionary({"A": "1", "B": "2"}, {"B": IGNORE_SENTINEL})
        assert "B" not in merged
        assert merged.lookup("b") is None

    def test_sentinel_in_defaults_removes_key(self):
        assert dict(active_dictionary({"A": IGNORE_SENTINEL})) == {}

    def test_overlay_is_case_sensitive(self):
        merged = active_dictionary({"Dev": "a"}, {"DEV": "b"})
        assert dict(merged) == {"Dev": "a", "DEV": "b"}
        assert merged.lookup("dev") == "b"

    def test_sentinel_is_exact_match(self):
        merged = active_dictionary({"A": "1"}, {"A": "@@IGNORE@@ "})
        assert merged.lookup("A") == "@@IGNORE@@ "


class TestSuppression:
    def test_is_suppressed_case_insensitive(self):
        override = {"Rclone": IGNORE_SENTINEL}
        assert is_suppressed("RCLONE", override)
        assert is_suppressed("rclone", override)

    def test_not_suppressed(self):
        assert not is_suppressed("A", {"A": "value"})
        assert not is_suppressed("A", None)
        assert not is_suppressed("A", {})

    def test_suppressed_keys_lowercased(self):
        assert suppressed_keys({"A": IGNORE_SENTINEL, "B": "x", "Cc": IGNORE_SENTINEL}) == {"a", "cc"}


class TestPreferences:
    def test_default_is_both(self):
        assert preference_for("x", {}) == RoutePreference(rich=True, plain=True)

    def test_lookup_folds_case(self):
        table = {"api": RoutePreference(rich=False, plain=True)}
        assert preference_for("API", table).rich is False

    def test_merge_empty(self):
        assert merged_preference([], {}) == RoutePreference(True, True)

    def test_merge_is_logical_and(self):
        table = {
            "a": RoutePreference(rich=False, plain=True),
            "b": RoutePreference(rich=True, plain=False),
        }
        assert merged_preference(["A"], table) == RoutePreference(False, True)
        assert merged_preference(["A", "B"], table) == RoutePreference(False, False)
        assert merged_preference(["A", "unknown"], table) == RoutePreference(False, True)


class TestProfileForPath:
    def test_exact_match(self):
        profiles = [DeviceProfile("laptop", "/v/a"), DeviceProfile("desk", "/v/b")]
        assert profile_for_path(profiles, "/v/b").name == "desk"
        assert profile_for_path(profiles, "/v/b/") is None


class TestSuppressionAcrossCasing:
    def test_override_casing_removes_default_casing(self):
        merged = active_dictionary({"Rclone": "Remote/rclone"}, {"RCLONE": IGNORE_SENTINEL})
        assert dict(merged) == {}
        assert merged.lookup("rclone") is None
        assert is_suppressed("rclone", {"RCLONE": IGNORE_SENTINEL})

    def test_other_keys_survive(self):
        merged = active_dictionary({"Rclone": "r", "DL": "d"}, {"rclone": IGNORE_SENTINEL})
        assert dict(merged) == {"DL": "d"}
