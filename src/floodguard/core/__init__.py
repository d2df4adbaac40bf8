"""
Spam classification core.

Provides:
- models: Message segments, event records and classification results
- policy: Spam policy, service settings and the settings holder
- store: Per-(group, user) record history
- scheduler: Background eviction of expired records
- detector: The eight-heuristic classifier
"""

from floodguard.core.detector import SpamDetector, check_spam
from floodguard.core.models import EventRecord, Segment, SegmentKind, SpamKind, SpamResult
from floodguard.core.policy import (
    GroupConfig,
    ModAction,
    Settings,
    SettingsHolder,
    SpamPolicy,
    parse_policy,
    parse_settings,
)
from floodguard.core.scheduler import EvictionScheduler
from floodguard.core.store import RecordStore, StoreStats

__all__ = [
    "SpamDetector",
    "check_spam",
    "EventRecord",
    "Segment",
    "SegmentKind",
    "SpamKind",
    "SpamResult",
    "GroupConfig",
    "ModAction",
    "Settings",
    "SettingsHolder",
    "SpamPolicy",
    "parse_policy",
    "parse_settings",
    "EvictionScheduler",
    "RecordStore",
    "StoreStats",
]
