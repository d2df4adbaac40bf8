"""
Spam policy and service settings.

Settings arrive as loosely-typed JSON (admin API, settings file). They are
parsed exactly once, field by field, into frozen dataclasses; anything missing
or invalid falls back to its default so the classifier never sees a partially
valid policy. The active settings live in a SettingsHolder, which swaps whole
snapshots so in-flight classifications never see a mix of old and new values.
"""

from __future__ import annotations

import json
import math
import threading
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from floodguard.utils.logging import get_logger

logger = get_logger(__name__)


class ModAction(Enum):
    """Moderation action taken on a positive classification."""
    WARN = "warn"
    MUTE = "mute"
    KICK = "kick"


@dataclass(frozen=True)
class SpamPolicy:
    """
    Windows (seconds) and thresholds for the eight heuristics.

    Counts are "the Nth message including the current one triggers".
    """
    repeat_window: float = 30
    repeat_count: int = 3
    frequency_window: float = 10
    frequency_count: int = 8
    similarity_threshold: float = 0.8
    similarity_window: float = 60
    similarity_count: int = 4
    keyword_window: float = 60
    keyword_count: int = 5
    media_window: float = 30
    media_count: int = 4
    at_single_limit: int = 5
    at_window: float = 60
    at_window_limit: int = 10
    link_window: float = 60
    link_count: int = 3

    def windows(self) -> tuple[float, ...]:
        return (
            self.repeat_window,
            self.frequency_window,
            self.similarity_window,
            self.keyword_window,
            self.media_window,
            self.at_window,
            self.link_window,
        )

    def max_window_ms(self) -> int:
        """Retention horizon for the store: the longest heuristic window."""
        return int(max(self.windows()) * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {_CAMEL_NAMES[f.name]: getattr(self, f.name) for f in fields(self)}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


_CAMEL_NAMES: dict[str, str] = {f.name: _camel(f.name) for f in fields(SpamPolicy)}

# (minimum, integer-only) per field; ratios are additionally capped at 1
_POLICY_RULES: dict[str, tuple[float, bool]] = {
    "repeat_window": (0, False),
    "repeat_count": (1, True),
    "frequency_window": (0, False),
    "frequency_count": (1, True),
    "similarity_threshold": (0, False),
    "similarity_window": (0, False),
    "similarity_count": (1, True),
    "keyword_window": (0, False),
    "keyword_count": (1, True),
    "media_window": (0, False),
    "media_count": (1, True),
    "at_single_limit": (1, True),
    "at_window": (0, False),
    "at_window_limit": (1, True),
    "link_window": (0, False),
    "link_count": (1, True),
}


def _coerce_number(value: Any, minimum: float, integer: bool) -> Optional[float]:
    """Return a valid number or None. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < minimum:
        return None
    if integer:
        if float(value) != int(value):
            return None
        return int(value)
    return value


def parse_policy(raw: Any) -> SpamPolicy:
    """
    Build a SpamPolicy from a JSON-like mapping.

    Accepts both camelCase (``repeatWindow``) and snake_case
    (``repeat_window``) keys. Every field falls back to its default on its own
    when missing or invalid; this never raises.
    """
    if not isinstance(raw, dict):
        return SpamPolicy()

    defaults = SpamPolicy()
    values: dict[str, Any] = {}
    for name, (minimum, integer) in _POLICY_RULES.items():
        camel = _CAMEL_NAMES[name]
        if camel in raw:
            supplied = raw[camel]
        elif name in raw:
            supplied = raw[name]
        else:
            continue

        number = _coerce_number(supplied, minimum, integer)
        if number is not None and name == "similarity_threshold" and number > 1:
            number = None
        if number is None:
            logger.warning(
                "Invalid policy value %s=%r, using default %r",
                camel, supplied, getattr(defaults, name),
            )
            continue
        values[name] = number

    return replace(defaults, **values)


@dataclass(frozen=True)
class GroupConfig:
    """Per-group overrides. ``None`` means inherit the global setting."""
    enabled: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        return {} if self.enabled is None else {"enabled": self.enabled}


@dataclass(frozen=True)
class Settings:
    """
    Complete service settings snapshot.

    Attributes:
        enabled: Global on/off switch
        debug: Verbose logging (does not change classification)
        action: What to do with a spammer
        mute_duration: Mute length in seconds
        warn_message: Template for warnings, supports {user} and {reason}
        whitelist: User IDs that are never checked
        group_configs: Per-group overrides keyed by group ID
        spam: Heuristic windows and thresholds
    """
    enabled: bool = True
    debug: bool = False
    action: ModAction = ModAction.MUTE
    mute_duration: int = 600
    warn_message: str = "Please stop flooding the chat ({reason})"
    whitelist: tuple[str, ...] = ()
    group_configs: Mapping[str, GroupConfig] = field(default_factory=dict)
    spam: SpamPolicy = field(default_factory=SpamPolicy)

    def __post_init__(self) -> None:
        # Read-only copy so a snapshot cannot be changed through a shared dict
        object.__setattr__(self, "group_configs", MappingProxyType(dict(self.group_configs)))

    def is_group_enabled(self, group_id: str) -> bool:
        if not self.enabled:
            return False
        group = self.group_configs.get(str(group_id))
        if group is None or group.enabled is None:
            return True
        return group.enabled

    def is_whitelisted(self, user_id: str) -> bool:
        return str(user_id) in self.whitelist

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the camelCase layout used by the settings file and API."""
        return {
            "enabled": self.enabled,
            "debug": self.debug,
            "action": self.action.value,
            "muteDuration": self.mute_duration,
            "warnMessage": self.warn_message,
            "whitelist": list(self.whitelist),
            "groupConfigs": {gid: cfg.to_dict() for gid, cfg in self.group_configs.items()},
            "spam": self.spam.to_dict(),
        }


def _parse_whitelist(value: Any) -> Optional[tuple[str, ...]]:
    if isinstance(value, str):
        return tuple(s.strip() for s in value.split(",") if s.strip())
    if isinstance(value, list):
        # Numeric QQ IDs are common in hand-written files
        return tuple(
            str(item) for item in value
            if isinstance(item, (str, int)) and not isinstance(item, bool) and str(item)
        )
    return None


def parse_settings(raw: Any) -> Settings:
    """Build Settings from a JSON-like mapping, defaulting field by field."""
    defaults = Settings()
    if not isinstance(raw, dict):
        return defaults

    values: dict[str, Any] = {"spam": parse_policy(raw.get("spam"))}

    if isinstance(raw.get("enabled"), bool):
        values["enabled"] = raw["enabled"]
    if isinstance(raw.get("debug"), bool):
        values["debug"] = raw["debug"]

    action = raw.get("action")
    if action is not None:
        try:
            values["action"] = ModAction(action)
        except ValueError:
            logger.warning("Unknown action %r, using %s", action, defaults.action.value)

    mute_duration = _coerce_number(raw.get("muteDuration"), 1, True)
    if mute_duration is not None:
        values["mute_duration"] = mute_duration

    if isinstance(raw.get("warnMessage"), str):
        values["warn_message"] = raw["warnMessage"]

    whitelist = _parse_whitelist(raw.get("whitelist"))
    if whitelist is not None:
        values["whitelist"] = whitelist

    group_configs = raw.get("groupConfigs")
    if isinstance(group_configs, dict):
        parsed: dict[str, GroupConfig] = {}
        for group_id, group_raw in group_configs.items():
            if isinstance(group_raw, dict):
                enabled = group_raw.get("enabled")
                parsed[str(group_id)] = GroupConfig(enabled if isinstance(enabled, bool) else None)
        values["group_configs"] = parsed

    return replace(defaults, **values)


# Sections merged key by key; replacing them wholesale would reset every field
_NESTED_SECTIONS = ("spam", "groupConfigs")


def _merge(base: dict[str, Any], partial: dict[str, Any]) -> dict[str, Any]:
    """Merge ``partial`` onto ``base``; nested dicts merge, everything else replaces."""
    merged = dict(base)
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class SettingsHolder:
    """
    Owner of the one active Settings snapshot.

    Readers take ``current`` once per operation and keep using that object.
    Writers build a new snapshot and swap the reference under a lock.
    """

    def __init__(self, settings: Optional[Settings] = None, path: str | Path | None = None) -> None:
        self._settings = settings or Settings()
        self._lock = threading.Lock()
        self.path = Path(path) if path else None

    @property
    def current(self) -> Settings:
        return self._settings

    def replace(self, settings: Settings) -> Settings:
        with self._lock:
            self._settings = settings
        logger.info("Settings replaced")
        return settings

    def update(self, partial: dict[str, Any]) -> Settings:
        """
        Apply a partial update and swap in the re-parsed result.

        Args:
            partial: camelCase fields to change; ``spam`` and
                ``groupConfigs`` merge key by key

        Returns:
            Settings: The new snapshot

        Raises:
            ValueError: If a nested section is given as anything but an object;
                the current settings are left untouched
        """
        for key in _NESTED_SECTIONS:
            if key in partial and not isinstance(partial[key], dict):
                raise ValueError(f"{key} must be an object, got {type(partial[key]).__name__}")

        with self._lock:
            merged = _merge(self._settings.to_dict(), partial)
            self._settings = parse_settings(merged)
            settings = self._settings
        logger.info("Settings updated: %s", ", ".join(sorted(partial)) or "nothing")
        return settings

    def load(self) -> Settings:
        """Load settings from the JSON file. Missing or broken files keep the current settings."""
        if self.path is None or not self.path.exists():
            return self.current
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Failed to load settings from %s: %s", self.path, e)
            return self.current
        logger.info("Loaded settings from %s", self.path)
        return self.replace(parse_settings(raw))

    def save(self) -> bool:
        if self.path is None:
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(self.current.to_dict(), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as e:
            logger.error("Failed to save settings to %s: %s", self.path, e)
            return False
        logger.debug("Settings saved to %s", self.path)
        return True
