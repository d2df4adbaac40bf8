"""
Message handler for OneBot group message events.

For every group message:
- skip disabled groups and whitelisted users
- normalize the event into an EventRecord
- classify it against the sender's history
- store it
- hand positive results to the moderation dispatcher
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from floodguard.core.detector import SpamDetector
from floodguard.core.models import EventRecord, Segment, SegmentKind, SpamResult
from floodguard.core.policy import SettingsHolder
from floodguard.core.store import RecordStore, now_ms
from floodguard.services.actions import ActionDispatcher
from floodguard.utils.logging import get_logger, set_debug

logger = get_logger(__name__)


def parse_segments(event: dict[str, Any]) -> list[Segment]:
    """
    Extract message segments from a OneBot event.

    Uses the ``message`` array when present, otherwise treats ``raw_message``
    as a single text segment.
    """
    message = event.get("message")
    if isinstance(message, list):
        return [Segment.from_onebot(raw) for raw in message]
    if isinstance(message, str) and message:
        return [Segment(SegmentKind.TEXT, text=message)]
    raw_message = event.get("raw_message")
    if isinstance(raw_message, str) and raw_message:
        return [Segment(SegmentKind.TEXT, text=raw_message)]
    return []


class MessageHandler:
    """
    Glue between inbound events and the spam core.

    Attributes:
        processed: Group messages classified since start
        flagged: Messages classified as spam since start
    """

    def __init__(
        self,
        store: RecordStore,
        settings: SettingsHolder,
        detector: SpamDetector,
        dispatcher: ActionDispatcher,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.settings = settings
        self.detector = detector
        self.dispatcher = dispatcher
        self._clock = clock
        self._counter_lock = threading.Lock()
        self.processed = 0
        self.flagged = 0

    def handle_event(self, event: dict[str, Any]) -> Optional[SpamResult]:
        """
        Process one OneBot event.

        Returns:
            SpamResult: The classification, or None if the event was skipped
        """
        if event.get("post_type") != "message" or event.get("message_type") != "group":
            return None

        group_id = event.get("group_id")
        user_id = event.get("user_id")
        if group_id is None or user_id is None:
            logger.debug("Ignoring group message without group_id/user_id")
            return None
        group_id, user_id = str(group_id), str(user_id)

        settings = self.settings.current
        set_debug(settings.debug)

        if not settings.is_group_enabled(group_id):
            return None
        if settings.is_whitelisted(user_id):
            return None

        segments = parse_segments(event)

        # Stamped under the key lock so each history stays in timestamp order
        with self.store.key_lock(group_id, user_id):
            record = EventRecord.from_segments(group_id, user_id, segments, self._clock())
            history = self.store.lookup(group_id, user_id)
            result = self.detector.classify(record, history)
            self.store.append(record)

        with self._counter_lock:
            self.processed += 1
            if result.is_spam:
                self.flagged += 1

        if settings.debug:
            logger.debug(
                "[%s] %s: %r -> %s",
                group_id, user_id, record.content[:50], result.reason or "clean",
            )

        if result.is_spam:
            logger.info("Spam from %s in %s: %s", user_id, group_id, result.reason)
            try:
                self.dispatcher.dispatch(group_id, user_id, result, settings)
            except Exception as e:
                logger.error("Error dispatching action for %s in %s: %s", user_id, group_id, e)

        return result
