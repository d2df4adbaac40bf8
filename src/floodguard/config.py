"""
Process configuration for FloodGuard.

Read once at startup from the environment (and a ``.env`` file if present).
This covers how the service runs: where OneBot lives, which tokens to use,
where to listen and log. What counts as spam and what to do about it is
runtime-editable and lives in the settings file instead
(see ``floodguard.core.policy``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """
    Immutable process configuration.

    Attributes:
        onebot_api_url: Base URL of the OneBot v11 HTTP API
        onebot_access_token: Bearer token for the OneBot API
        api_token: Bearer token required on /api/* routes (empty disables)
        host: Address the HTTP server binds to
        port: Port the HTTP server listens on
        log_level: Logging level (default: INFO)
        log_file: Optional log file path
        settings_file: JSON file holding spam policy and moderation settings
        sweep_interval: Seconds between eviction sweeps
        action_cooldown: Seconds before the same user can be actioned again
        request_timeout: OneBot API request timeout in seconds
        dry_run: Classify and log only, never call the OneBot API
    """

    onebot_api_url: str

    onebot_access_token: str = ""
    api_token: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_file: str | None = None
    settings_file: str = "data/settings.json"
    sweep_interval: int = 60
    action_cooldown: int = 30
    request_timeout: int = 10
    dry_run: bool = False

    _secrets: list[str] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        tokens = [t for t in (self.onebot_access_token, self.api_token) if t]
        object.__setattr__(self, "_secrets", tokens)

    @property
    def secrets(self) -> list[str]:
        """Values the log filter must mask."""
        return self._secrets


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def _parse_int(value: str | None, default: int) -> int:
    """Integer from an env string; unset or unparseable gives ``default``."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _check(onebot_api_url: str, port: int, sweep_interval: int) -> list[str]:
    problems: list[str] = []
    if not onebot_api_url:
        problems.append("ONEBOT_API_URL is required")
    elif not onebot_api_url.startswith(("http://", "https://")):
        problems.append(f"ONEBOT_API_URL must be an http(s) URL, got {onebot_api_url!r}")
    if not 1 <= port <= 65535:
        problems.append(f"PORT must be between 1 and 65535, got {port}")
    if sweep_interval <= 0:
        problems.append(f"SWEEP_INTERVAL must be positive, got {sweep_interval}")
    return problems


def load_config(env_file: str | Path | None = None) -> Config:
    """
    Build the Config from the environment.

    Args:
        env_file: Explicit .env path; by default a .env is searched for
            upwards from the working directory. Real environment variables
            win over the file.

    Returns:
        Config: Validated configuration

    Raises:
        ValueError: Listing every invalid or missing variable at once
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    env = os.environ

    onebot_api_url = env.get("ONEBOT_API_URL", "").strip().rstrip("/")
    port = _parse_int(env.get("PORT"), 8080)
    sweep_interval = _parse_int(env.get("SWEEP_INTERVAL"), 60)

    problems = _check(onebot_api_url, port, sweep_interval)
    if problems:
        raise ValueError("Configuration errors:\n" + "\n".join(f"  - {p}" for p in problems))

    log_level = env.get("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        log_level = "INFO"

    return Config(
        onebot_api_url=onebot_api_url,
        onebot_access_token=env.get("ONEBOT_ACCESS_TOKEN", ""),
        api_token=env.get("API_TOKEN", ""),
        host=env.get("HOST", "0.0.0.0"),
        port=port,
        log_level=log_level,
        log_file=env.get("LOG_FILE") or None,
        settings_file=env.get("SETTINGS_FILE") or "data/settings.json",
        sweep_interval=sweep_interval,
        action_cooldown=max(0, _parse_int(env.get("ACTION_COOLDOWN"), 30)),
        request_timeout=max(1, _parse_int(env.get("REQUEST_TIMEOUT"), 10)),
        dry_run=_parse_bool(env.get("DRY_RUN")),
    )
