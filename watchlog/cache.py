#!/usr/bin/env python3
"""
Persistent JSON metadata cache

Owns every CacheRecord. Layout on disk:

    {
      "version": 1,
      "entries": {
        "amores perros|2000": {
          "provider_status": "hit",
          "metadata": {"tmdb_id": 55, "title": "Amores perros", ...},
          "fetched_at": "2025-01-01T10:00:00+00:00",
          "error_reason": null
        }
      }
    }

A missing file is a cold start. An unreadable file is reported through
load_warning and the cache starts empty; it is never fatal. Failing to
write the file is fatal (CacheWriteError).
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

from watchlog.constants import CACHE_FORMAT_VERSION, STATUS_ERROR, STATUS_HIT, STATUS_MISS
from watchlog.errors import CacheWriteError

logger = logging.getLogger(__name__)

_VALID_STATUSES = (STATUS_HIT, STATUS_MISS, STATUS_ERROR)


@dataclass
class CacheRecord:
    """Outcome of one provider lookup"""
    key: str
    metadata: Optional[Dict]  # None for miss/error records
    fetched_at: datetime
    provider_status: str  # hit | miss | error
    error_reason: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'provider_status': self.provider_status,
            'metadata': self.metadata,
            'fetched_at': self.fetched_at.isoformat(),
            'error_reason': self.error_reason,
        }

    @classmethod
    def from_dict(cls, key: str, data: Dict) -> 'CacheRecord':
        """Raises ValueError/KeyError/TypeError on malformed records"""
        status = data['provider_status']
        if status not in _VALID_STATUSES:
            raise ValueError(f"unknown provider_status {status!r}")
        metadata = data.get('metadata')
        if metadata is not None and not isinstance(metadata, dict):
            raise TypeError("metadata must be an object or null")
        fetched_at = datetime.fromisoformat(data['fetched_at'])
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        return cls(
            key=key,
            metadata=metadata,
            fetched_at=fetched_at,
            provider_status=status,
            error_reason=data.get('error_reason'),
        )

    def is_stale(self, max_age_days: Optional[int], now: Optional[datetime] = None) -> bool:
        """True when a refresh policy is set and the record is older than it"""
        if max_age_days is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now - self.fetched_at > timedelta(days=max_age_days)


class MetadataCache:
    """Key → CacheRecord store backed by a JSON file"""

    def __init__(self, cache_path: Path):
        self.cache_path = Path(cache_path)
        self.load_warning: Optional[str] = None
        self.dirty = False
        self.records: Dict[str, CacheRecord] = self._load_cache()

    def _load_cache(self) -> Dict[str, CacheRecord]:
        """Load cache from JSON file"""
        if not self.cache_path.exists():
            logger.info(f"No metadata cache at {self.cache_path}, starting cold")
            return {}

        try:
            with open(self.cache_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            return self._start_fresh(e)

        if not isinstance(data, dict) or not isinstance(data.get('entries'), dict):
            return self._start_fresh('unexpected document layout')

        records = {}
        dropped = 0
        for key, raw in data['entries'].items():
            try:
                records[key] = CacheRecord.from_dict(key, raw)
            except (KeyError, TypeError, ValueError) as e:
                dropped += 1
                logger.warning(f"Dropping malformed cache record '{key}': {e}")

        if dropped:
            # Rewrite on save so the bad records do not linger
            self.dirty = True
        logger.info(f"Loaded metadata cache with {len(records)} entries")
        return records

    def _start_fresh(self, reason) -> Dict[str, CacheRecord]:
        logger.warning(f"Could not load metadata cache {self.cache_path}: {reason}. Starting fresh.")
        self.load_warning = (
            f"Metadata cache at {self.cache_path} was unreadable and has been reset; "
            f"titles will be looked up again."
        )
        # Overwrite the unreadable file on the next save
        self.dirty = True
        return {}

    def save(self):
        """
        Write the cache atomically.

        Raises:
            CacheWriteError: the cache file or its directory is not writable
        """
        payload = {
            'version': CACHE_FORMAT_VERSION,
            'entries': {key: record.to_dict() for key, record in sorted(self.records.items())},
        }
        tmp_path = self.cache_path.with_name(self.cache_path.name + '.tmp')
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.cache_path)
        except OSError as e:
            logger.error(f"Could not save metadata cache {self.cache_path}: {e}")
            raise CacheWriteError(f"Could not write metadata cache {self.cache_path}: {e}") from e

        self.dirty = False
        logger.debug(f"Saved metadata cache with {len(self.records)} entries")

    def get(self, key: str) -> Optional[CacheRecord]:
        return self.records.get(key)

    def put(self, record: CacheRecord):
        self.records[record.key] = record
        self.dirty = True

    def remove(self, key: str) -> bool:
        if key in self.records:
            del self.records[key]
            self.dirty = True
            return True
        return False

    def record_hit(self, key: str, metadata: Dict, now: Optional[datetime] = None) -> CacheRecord:
        record = CacheRecord(key, metadata, now or datetime.now(timezone.utc), STATUS_HIT)
        self.put(record)
        return record

    def record_miss(self, key: str, now: Optional[datetime] = None) -> CacheRecord:
        record = CacheRecord(key, None, now or datetime.now(timezone.utc), STATUS_MISS)
        self.put(record)
        return record

    def record_error(self, key: str, reason: str, now: Optional[datetime] = None) -> CacheRecord:
        record = CacheRecord(key, None, now or datetime.now(timezone.utc), STATUS_ERROR, reason)
        self.put(record)
        return record

    def get_stats(self) -> Dict:
        """Count records by provider status"""
        stats = {STATUS_HIT: 0, STATUS_MISS: 0, STATUS_ERROR: 0}
        for record in self.records.values():
            stats[record.provider_status] += 1
        stats['total'] = len(self.records)
        return stats

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, key: str) -> bool:
        return key in self.records
