"""
Data model for spam classification.

Message segments are normalized into a closed set of kinds, and every fact the
classifier needs (text, media, mentions, links) is derived from them by a
function that handles each kind explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from floodguard.utils.text import contains_link


class SegmentKind(Enum):
    """Kinds of message segment the classifier distinguishes."""
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    MENTION = "at"
    OTHER = "other"


@dataclass(frozen=True)
class Segment:
    """One piece of a chat message."""
    kind: SegmentKind
    text: str = ""
    target: str = ""

    @classmethod
    def from_onebot(cls, raw: Any) -> Segment:
        """
        Build a segment from a OneBot v11 segment dict.

        Unknown or malformed segments become ``OTHER`` instead of failing.
        """
        if not isinstance(raw, dict):
            return cls(SegmentKind.OTHER)

        data = raw.get("data")
        if not isinstance(data, dict):
            data = {}

        seg_type = raw.get("type")
        if seg_type == "text":
            return cls(SegmentKind.TEXT, text=str(data.get("text", "")))
        if seg_type == "image":
            return cls(SegmentKind.IMAGE)
        if seg_type == "video":
            return cls(SegmentKind.VIDEO)
        if seg_type == "at":
            return cls(SegmentKind.MENTION, target=str(data.get("qq", "")))
        return cls(SegmentKind.OTHER)


def text_content(segments: Iterable[Segment]) -> str:
    parts: list[str] = []
    for segment in segments:
        if segment.kind is SegmentKind.TEXT:
            parts.append(segment.text)
        elif segment.kind in (SegmentKind.IMAGE, SegmentKind.VIDEO, SegmentKind.MENTION, SegmentKind.OTHER):
            continue
        else:
            raise ValueError(f"Unhandled segment kind: {segment.kind}")
    return "".join(parts).strip()


def has_media(segments: Iterable[Segment]) -> bool:
    for segment in segments:
        if segment.kind in (SegmentKind.IMAGE, SegmentKind.VIDEO):
            return True
        if segment.kind not in (SegmentKind.TEXT, SegmentKind.MENTION, SegmentKind.OTHER):
            raise ValueError(f"Unhandled segment kind: {segment.kind}")
    return False


def mention_count(segments: Iterable[Segment]) -> int:
    count = 0
    for segment in segments:
        if segment.kind is SegmentKind.MENTION:
            count += 1
        elif segment.kind not in (SegmentKind.TEXT, SegmentKind.IMAGE, SegmentKind.VIDEO, SegmentKind.OTHER):
            raise ValueError(f"Unhandled segment kind: {segment.kind}")
    return count


def has_link(segments: Iterable[Segment]) -> bool:
    """Links only count when they appear in text segments."""
    return contains_link(text_content(segments))


@dataclass(frozen=True)
class EventRecord:
    """
    Immutable fact about one observed group message.

    Attributes:
        group_id: Group the message was sent in
        user_id: Sender
        content: Normalized text body, may be empty
        timestamp: Ingestion time in milliseconds
        has_media: An image or video was attached
        mention_count: Number of @-mentions
        has_link: The text contains a URL
    """
    group_id: str
    user_id: str
    content: str
    timestamp: int
    has_media: bool = False
    mention_count: int = 0
    has_link: bool = False

    @classmethod
    def from_segments(
        cls,
        group_id: str,
        user_id: str,
        segments: list[Segment],
        timestamp: int,
    ) -> EventRecord:
        return cls(
            group_id=str(group_id),
            user_id=str(user_id),
            content=text_content(segments),
            timestamp=timestamp,
            has_media=has_media(segments),
            mention_count=mention_count(segments),
            has_link=has_link(segments),
        )


class SpamKind(Enum):
    """Heuristic that classified a message as spam, in evaluation order."""
    REPEAT = "repeat"
    FREQUENCY = "frequency"
    SIMILARITY = "similarity"
    KEYWORD = "keyword"
    MEDIA = "media"
    AT_SINGLE = "at_single"
    AT_WINDOW = "at_window"
    LINK = "link"


@dataclass(frozen=True)
class SpamResult:
    """Result of classifying one record."""
    is_spam: bool
    kind: Optional[SpamKind] = None
    detail: str = ""

    @classmethod
    def clean(cls) -> SpamResult:
        return cls(is_spam=False)

    @classmethod
    def spam(cls, kind: SpamKind, detail: str) -> SpamResult:
        return cls(is_spam=True, kind=kind, detail=detail)

    @property
    def reason(self) -> str:
        """Short ``kind: detail`` string for logs and notices."""
        if not self.is_spam or self.kind is None:
            return ""
        return f"{self.kind.value}: {self.detail}"
