#!/usr/bin/env python3
"""
Deduplicate watch log entries into work items

Every play of the same title collapses into one WorkItem keyed by
make_key(). Keys keep first-seen order; timestamps accumulate across the
whole log.

Same-title entries without a year share a key even when they are different
releases. This is intended.
"""

import bisect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from watchlog.normalizer import CleanedTitle


@dataclass
class WorkItem:
    """One logical viewing subject with every time it was watched"""
    key: str
    cleaned_title: CleanedTitle
    raw_title: str  # source URI of the most recently seen entry
    watch_timestamps: List[datetime] = field(default_factory=list)

    def add_watch(self, watched_at: Optional[datetime]):
        """Insert a timestamp in chronological order, ignoring exact duplicates"""
        if watched_at is None:
            return
        idx = bisect.bisect_left(self.watch_timestamps, watched_at)
        if idx < len(self.watch_timestamps) and self.watch_timestamps[idx] == watched_at:
            return
        self.watch_timestamps.insert(idx, watched_at)

    @property
    def last_watched(self) -> Optional[datetime]:
        return self.watch_timestamps[-1] if self.watch_timestamps else None

    @property
    def watch_count(self) -> int:
        return len(self.watch_timestamps)


def make_key(cleaned: CleanedTitle) -> str:
    """Lowercased title, with '|year' appended when the year is known"""
    key = cleaned.text.strip().lower()
    if cleaned.extracted_year is not None:
        key = f"{key}|{cleaned.extracted_year}"
    return key


def group_entries(pairs: Iterable[Tuple[object, CleanedTitle]]) -> Dict[str, WorkItem]:
    """
    Collapse (RawEntry, CleanedTitle) pairs into work items.

    Args:
        pairs: Entries in log order, each with its normalized title

    Returns:
        Dict of key → WorkItem in first-seen key order
    """
    items: Dict[str, WorkItem] = {}
    for entry, cleaned in pairs:
        key = make_key(cleaned)
        item = items.get(key)
        if item is None:
            item = WorkItem(key=key, cleaned_title=cleaned, raw_title=entry.source_uri)
            items[key] = item
        else:
            item.raw_title = entry.source_uri
        item.add_watch(entry.watched_at)
    return items
