"""
Tests for spam policy and settings parsing.

Tests:
- Defaults and field-by-field fallback
- camelCase and snake_case keys
- Group overrides and whitelist
- SettingsHolder update/load/save
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from floodguard.core.policy import (
    GroupConfig,
    ModAction,
    Settings,
    SettingsHolder,
    SpamPolicy,
    parse_policy,
    parse_settings,
)


class TestParsePolicy:
    """Tests for parse_policy."""

    def test_non_dict_gives_defaults(self) -> None:
        """Test that garbage input yields the default policy."""
        assert parse_policy(None) == SpamPolicy()
        assert parse_policy("repeatCount=2") == SpamPolicy()
        assert parse_policy([1, 2]) == SpamPolicy()

    def test_camel_case_keys(self) -> None:
        """Test the API's camelCase layout."""
        policy = parse_policy({"repeatWindow": 15, "repeatCount": 2, "atSingleLimit": 3})

        assert policy.repeat_window == 15
        assert policy.repeat_count == 2
        assert policy.at_single_limit == 3
        assert policy.frequency_count == SpamPolicy().frequency_count

    def test_snake_case_keys(self) -> None:
        """Test that snake_case keys are accepted too."""
        policy = parse_policy({"link_window": 120, "link_count": 5})

        assert policy.link_window == 120
        assert policy.link_count == 5

    @pytest.mark.parametrize("key, value", [
        ("repeatCount", 0),
        ("repeatCount", -3),
        ("repeatCount", 2.5),
        ("repeatCount", "3"),
        ("repeatCount", True),
        ("repeatWindow", -1),
        ("repeatWindow", float("nan")),
        ("repeatWindow", float("inf")),
        ("similarityThreshold", 1.5),
        ("similarityThreshold", -0.1),
        ("mediaCount", None),
    ])
    def test_invalid_values_fall_back(self, key: str, value: object) -> None:
        """Test that each invalid value reverts to its own default."""
        policy = parse_policy({key: value, "linkCount": 7})

        assert policy.link_count == 7
        assert policy.to_dict()[key] == SpamPolicy().to_dict()[key]

    def test_integral_float_counts_accepted(self) -> None:
        """Test that 3.0 is accepted as a count and stored as an int."""
        policy = parse_policy({"repeatCount": 3.0})

        assert policy.repeat_count == 3
        assert isinstance(policy.repeat_count, int)

    def test_threshold_bounds_inclusive(self) -> None:
        """Test that 0 and 1 are valid similarity thresholds."""
        assert parse_policy({"similarityThreshold": 0}).similarity_threshold == 0
        assert parse_policy({"similarityThreshold": 1}).similarity_threshold == 1

    def test_to_dict_round_trips(self) -> None:
        """Test that a serialized policy parses back to itself."""
        policy = SpamPolicy(repeat_count=2, similarity_threshold=0.6, at_window=45)

        assert parse_policy(policy.to_dict()) == policy

    def test_max_window(self) -> None:
        """Test the retention horizon is the longest window in ms."""
        policy = SpamPolicy(repeat_window=5, frequency_window=2, link_window=90)

        assert policy.max_window_ms() == 90_000


class TestParseSettings:
    """Tests for parse_settings."""

    def test_defaults(self) -> None:
        """Test that empty input gives default settings."""
        settings = parse_settings({})

        assert settings == Settings()
        assert settings.enabled is True
        assert settings.action is ModAction.MUTE
        assert settings.mute_duration == 600

    def test_full_document(self) -> None:
        """Test a complete settings file."""
        settings = parse_settings({
            "enabled": False,
            "debug": True,
            "action": "kick",
            "muteDuration": 120,
            "warnMessage": "{user}: slow down ({reason})",
            "whitelist": ["10001", 10002],
            "groupConfigs": {"123": {"enabled": False}, 456: {}},
            "spam": {"repeatCount": 2},
        })

        assert settings.enabled is False
        assert settings.debug is True
        assert settings.action is ModAction.KICK
        assert settings.mute_duration == 120
        assert settings.warn_message == "{user}: slow down ({reason})"
        assert settings.whitelist == ("10001", "10002")
        assert settings.group_configs == {"123": GroupConfig(False), "456": GroupConfig(None)}
        assert settings.spam.repeat_count == 2

    def test_invalid_fields_fall_back(self) -> None:
        """Test that each bad field keeps its default independently."""
        settings = parse_settings({
            "enabled": "yes",
            "action": "ban",
            "muteDuration": 0,
            "warnMessage": 42,
            "whitelist": {"a": 1},
            "debug": True,
        })

        defaults = Settings()
        assert settings.enabled is defaults.enabled
        assert settings.action is defaults.action
        assert settings.mute_duration == defaults.mute_duration
        assert settings.warn_message == defaults.warn_message
        assert settings.whitelist == defaults.whitelist
        assert settings.debug is True

    def test_whitelist_from_comma_string(self) -> None:
        """Test the comma-separated whitelist form."""
        settings = parse_settings({"whitelist": " 1, 2 ,,3 "})

        assert settings.whitelist == ("1", "2", "3")
        assert settings.is_whitelisted("2")
        assert settings.is_whitelisted(3)
        assert not settings.is_whitelisted("4")

    def test_group_enablement(self) -> None:
        """Test global switch and per-group overrides."""
        settings = parse_settings({"groupConfigs": {"1": {"enabled": False}, "2": {"enabled": True}}})

        assert settings.is_group_enabled("1") is False
        assert settings.is_group_enabled("2") is True
        assert settings.is_group_enabled("3") is True

        disabled = parse_settings({"enabled": False, "groupConfigs": {"2": {"enabled": True}}})
        assert disabled.is_group_enabled("2") is False

    def test_group_configs_are_read_only(self) -> None:
        """Test that a snapshot's group overrides cannot be changed in place."""
        source = {"1": GroupConfig(enabled=False)}
        settings = Settings(group_configs=source)

        with pytest.raises(TypeError):
            settings.group_configs["2"] = GroupConfig(enabled=False)

        source["1"] = GroupConfig(enabled=True)
        assert settings.is_group_enabled("1") is False
        assert settings.group_configs == {"1": GroupConfig(enabled=False)}

    def test_to_dict_round_trips(self) -> None:
        """Test that to_dict output parses back to the same settings."""
        settings = Settings(
            debug=True,
            action=ModAction.WARN,
            whitelist=("7",),
            group_configs={"9": GroupConfig(False)},
            spam=SpamPolicy(link_count=9),
        )

        assert parse_settings(settings.to_dict()) == settings
        assert json.loads(json.dumps(settings.to_dict())) == settings.to_dict()


class TestSettingsHolder:
    """Tests for SettingsHolder."""

    def test_update_merges_nested(self) -> None:
        """Test that a partial spam update keeps the other policy fields."""
        holder = SettingsHolder(Settings(spam=SpamPolicy(repeat_count=2)))

        settings = holder.update({"action": "warn", "spam": {"linkCount": 9}})

        assert settings is holder.current
        assert settings.action is ModAction.WARN
        assert settings.spam.link_count == 9
        assert settings.spam.repeat_count == 2

    def test_update_keeps_old_snapshot_intact(self) -> None:
        """Test that readers holding the old snapshot are unaffected."""
        holder = SettingsHolder()
        before = holder.current

        holder.update({"debug": True})

        assert before.debug is False
        assert holder.current.debug is True

    def test_update_with_invalid_values(self) -> None:
        """Test that invalid updates fall back to defaults, not errors."""
        holder = SettingsHolder()

        settings = holder.update({"spam": {"repeatCount": -1}, "muteDuration": "long"})

        assert settings.spam.repeat_count == SpamPolicy().repeat_count
        assert settings.mute_duration == Settings().mute_duration

    @pytest.mark.parametrize("partial", [
        {"spam": "oops"},
        {"spam": None},
        {"groupConfigs": ["123"]},
        {"action": "warn", "spam": 5},
    ])
    def test_update_rejects_non_object_sections(self, partial: dict) -> None:
        """Test that a nested section must be an object and nothing is applied otherwise."""
        holder = SettingsHolder(Settings(spam=SpamPolicy(repeat_count=2)))
        before = holder.current

        with pytest.raises(ValueError, match="must be an object"):
            holder.update(partial)

        assert holder.current is before
        assert holder.current.spam.repeat_count == 2

    def test_save_and_load(self, tmp_path: Path) -> None:
        """Test that saved settings are loaded by a fresh holder."""
        path = tmp_path / "nested" / "settings.json"
        holder = SettingsHolder(path=path)
        holder.update({"action": "kick", "whitelist": ["5"], "spam": {"atWindow": 30}})

        assert holder.save() is True
        assert path.exists()

        fresh = SettingsHolder(path=path)
        loaded = fresh.load()

        assert loaded == holder.current
        assert fresh.current.action is ModAction.KICK

    def test_load_missing_file_keeps_current(self, tmp_path: Path) -> None:
        """Test that a missing file is not an error."""
        holder = SettingsHolder(Settings(debug=True), path=tmp_path / "missing.json")

        assert holder.load().debug is True

    def test_load_broken_file_keeps_current(self, tmp_path: Path) -> None:
        """Test that unparseable JSON keeps the current settings."""
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        holder = SettingsHolder(Settings(action=ModAction.WARN), path=path)

        assert holder.load().action is ModAction.WARN

    def test_save_without_path(self) -> None:
        """Test that an in-memory holder does not persist."""
        assert SettingsHolder().save() is False
