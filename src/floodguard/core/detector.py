"""
Flood/spam classifier for group chat.

Eight heuristics are evaluated in a fixed order against the sender's recent
history in the same group; the first that fires decides the result:

1. repeat      - identical messages
2. frequency   - any messages
3. similarity  - near-identical messages (edit distance)
4. keyword     - the same keyword across messages
5. media       - images/videos
6. at_single   - mentions in one message
7. at_window   - mentions across messages
8. link        - messages with links

Each heuristic only looks at prior records inside its own window, measured
back from the new record's timestamp. Thresholds count the new message too,
so ``repeat_count = 3`` fires on the third identical message.

A record with no text, media, link or mentions is only ever counted for
frequency; every other record runs the full list. Media and link checks
additionally require the record to carry one.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from floodguard.core.models import EventRecord, SpamKind, SpamResult
from floodguard.core.policy import SettingsHolder, SpamPolicy
from floodguard.utils.logging import get_logger
from floodguard.utils.text import extract_keywords, similarity

logger = get_logger(__name__)


def _within(history: Iterable[EventRecord], now: int, window: float) -> list[EventRecord]:
    limit = window * 1000
    return [r for r in history if now - r.timestamp < limit]


def _fmt_window(window: float) -> str:
    return f"{window:g}s"


def _is_empty(record: EventRecord) -> bool:
    return not (record.content or record.has_media or record.mention_count or record.has_link)


def check_spam(record: EventRecord, history: Sequence[EventRecord], policy: SpamPolicy) -> SpamResult:
    """
    Classify a record against the sender's history.

    Args:
        record: The new message, not yet part of ``history``
        history: Prior records of the same (group, user), oldest first
        policy: Active windows and thresholds

    Returns:
        SpamResult: The first heuristic that fired, or a clean result
    """
    now = record.timestamp
    empty = _is_empty(record)

    if not empty:
        repeats = [r for r in _within(history, now, policy.repeat_window) if r.content == record.content]
        if len(repeats) + 1 >= policy.repeat_count:
            return SpamResult.spam(
                SpamKind.REPEAT,
                f"{len(repeats) + 1} identical messages within {_fmt_window(policy.repeat_window)}",
            )

    recent = _within(history, now, policy.frequency_window)
    if len(recent) + 1 >= policy.frequency_count:
        return SpamResult.spam(
            SpamKind.FREQUENCY,
            f"{len(recent) + 1} messages within {_fmt_window(policy.frequency_window)}",
        )

    if not empty:
        similar = [
            r for r in _within(history, now, policy.similarity_window)
            if similarity(r.content, record.content) >= policy.similarity_threshold
        ]
        if len(similar) + 1 >= policy.similarity_count:
            return SpamResult.spam(
                SpamKind.SIMILARITY,
                f"{len(similar) + 1} similar messages within {_fmt_window(policy.similarity_window)}",
            )

    keyword_history = _within(history, now, policy.keyword_window)
    for keyword in extract_keywords(record.content):
        hits = sum(1 for r in keyword_history if keyword in r.content)
        if hits + 1 >= policy.keyword_count:
            return SpamResult.spam(
                SpamKind.KEYWORD,
                f"keyword '{keyword}' seen {hits + 1} times within {_fmt_window(policy.keyword_window)}",
            )

    if record.has_media:
        media = [r for r in _within(history, now, policy.media_window) if r.has_media]
        if len(media) + 1 >= policy.media_count:
            return SpamResult.spam(
                SpamKind.MEDIA,
                f"{len(media) + 1} images/videos within {_fmt_window(policy.media_window)}",
            )

    if record.mention_count >= policy.at_single_limit:
        return SpamResult.spam(
            SpamKind.AT_SINGLE,
            f"{record.mention_count} mentions in one message",
        )

    if not empty:
        total_mentions = sum(r.mention_count for r in _within(history, now, policy.at_window))
        total_mentions += record.mention_count
        if total_mentions >= policy.at_window_limit:
            return SpamResult.spam(
                SpamKind.AT_WINDOW,
                f"{total_mentions} mentions within {_fmt_window(policy.at_window)}",
            )

    if record.has_link:
        links = [r for r in _within(history, now, policy.link_window) if r.has_link]
        if len(links) + 1 >= policy.link_count:
            return SpamResult.spam(
                SpamKind.LINK,
                f"{len(links) + 1} links within {_fmt_window(policy.link_window)}",
            )

    return SpamResult.clean()


class SpamDetector:
    """Classifier bound to the live settings; reads one snapshot per call."""

    def __init__(self, settings: SettingsHolder) -> None:
        self.settings = settings

    def classify(self, record: EventRecord, history: Sequence[EventRecord]) -> SpamResult:
        policy = self.settings.current.spam
        result = check_spam(record, history, policy)
        if result.is_spam:
            logger.debug(
                "Record from %s in %s classified as %s",
                record.user_id, record.group_id, result.reason,
            )
        return result
