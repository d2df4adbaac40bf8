"""
Moderation actions for flagged users.

Turns a positive classification into one OneBot v11 API call:
- warn: mention the user with the configured warning message
- mute: timed group ban, followed by a short notice
- kick: remove the user from the group

A per-(group, user) cooldown keeps a burst of flagged messages from producing
a burst of actions.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Optional, Protocol

import requests

from floodguard.core.models import SpamResult
from floodguard.core.policy import ModAction, Settings
from floodguard.utils.logging import get_logger

logger = get_logger(__name__)


class ActionDispatcher(Protocol):
    """Anything that can act on a flagged user."""

    def dispatch(self, group_id: str, user_id: str, result: SpamResult, settings: Settings) -> bool:
        ...


class OneBotError(Exception):
    """The OneBot API answered with a failure status."""


def render_warning(template: str, user_id: str, reason: str) -> str:
    """Fill ``{user}`` and ``{reason}`` in a warning template; other braces are left alone."""
    return template.replace("{user}", str(user_id)).replace("{reason}", reason)


class ActionCooldown:
    """Tracks when each (group, user) was last actioned."""

    def __init__(self, seconds: float = 30) -> None:
        self.seconds = seconds
        self._last: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def acquire(self, group_id: str, user_id: str) -> bool:
        """
        Claim the right to act on a user.

        Returns:
            bool: False if the user was actioned within the cooldown
        """
        now = time.monotonic()
        key = (group_id, user_id)
        with self._lock:
            last = self._last.get(key)
            if last is not None and now - last < self.seconds:
                return False
            self._last[key] = now

            # Cleanup old entries
            cutoff = now - max(self.seconds, 300)
            self._last = {k: ts for k, ts in self._last.items() if ts > cutoff}
        return True


class OneBotDispatcher:
    """
    Executes moderation actions through the OneBot v11 HTTP API.

    Attributes:
        api_url: Base URL, e.g. ``http://127.0.0.1:3000``
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_url: str,
        access_token: str = "",
        timeout: float = 10,
        cooldown_seconds: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.cooldown = ActionCooldown(cooldown_seconds)
        self.session = session or requests.Session()
        if access_token:
            self.session.headers["Authorization"] = f"Bearer {access_token}"

    def call(self, action: str, **params: Any) -> Any:
        """
        Call a OneBot API action.

        Returns:
            The ``data`` field of the response

        Raises:
            requests.RequestException: On transport or HTTP errors
            OneBotError: If OneBot reports a failure
        """
        response = self.session.post(f"{self.api_url}/{action}", json=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if payload.get("status") == "failed" or payload.get("retcode", 0) != 0:
            raise OneBotError(
                f"{action} failed: retcode={payload.get('retcode')} {payload.get('message') or payload.get('wording', '')}"
            )
        return payload.get("data")

    def send_group_message(self, group_id: str, message: str) -> None:
        self.call("send_group_msg", group_id=group_id, message=message)

    def mute(self, group_id: str, user_id: str, duration: int) -> None:
        self.call("set_group_ban", group_id=group_id, user_id=user_id, duration=duration)

    def kick(self, group_id: str, user_id: str) -> None:
        self.call("set_group_kick", group_id=group_id, user_id=user_id, reject_add_request=False)

    def dispatch(self, group_id: str, user_id: str, result: SpamResult, settings: Settings) -> bool:
        """
        Act on a flagged user according to the settings.

        Returns:
            bool: True if the action was carried out
        """
        if not result.is_spam:
            return False

        if not self.cooldown.acquire(group_id, user_id):
            logger.debug("Skipping action on %s in %s - on cooldown", user_id, group_id)
            return False

        action = settings.action
        mention = f"[CQ:at,qq={user_id}]"
        try:
            if action is ModAction.WARN:
                text = render_warning(settings.warn_message, user_id, result.detail)
                self.send_group_message(group_id, f"{mention} {text}")

            elif action is ModAction.MUTE:
                self.mute(group_id, user_id, settings.mute_duration)
                self.send_group_message(
                    group_id,
                    f"{mention} muted for {settings.mute_duration}s: {result.detail}",
                )

            elif action is ModAction.KICK:
                self.kick(group_id, user_id)
                self.send_group_message(group_id, f"{user_id} was removed for flooding: {result.detail}")

        except (requests.RequestException, OneBotError, ValueError) as e:
            logger.warning("Failed to %s %s in %s: %s", action.value, user_id, group_id, e)
            return False

        logger.info("[%s] %s in %s: %s", action.value.upper(), user_id, group_id, result.reason)
        return True

    def close(self) -> None:
        self.session.close()


class DryRunDispatcher:
    """Logs what would have been done without calling any API."""

    def dispatch(self, group_id: str, user_id: str, result: SpamResult, settings: Settings) -> bool:
        logger.info(
            "[DRY RUN] would %s %s in %s: %s",
            settings.action.value, user_id, group_id, result.reason,
        )
        return False

    def close(self) -> None:
        pass
