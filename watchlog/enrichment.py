#!/usr/bin/env python3
"""
watchlog/enrichment.py — Attach TMDb metadata to grouped work items

Two lookup layers, checked in order:
  1. Per-run memo: one answer per key for the lifetime of this run
  2. MetadataCache: durable records from previous runs

Only keys that neither layer can answer reach the provider, and each of
those is looked up exactly once per run.

Provider failures degrade the affected entries to provenance 'unavailable'
and produce ONE run-level warning per failure class. They never abort the
run and never destroy a previously cached hit.
"""

import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from watchlog.cache import CacheRecord, MetadataCache
from watchlog.constants import (
    DEFAULT_MAX_WORKERS, DEFAULT_POSTER_SIZE, PROVENANCE_CACHE, PROVENANCE_FETCHED,
    PROVENANCE_UNAVAILABLE, STATUS_HIT, STATUS_MISS,
)
from watchlog.errors import ProviderAuthError, ProviderError, ProviderUnavailableError
from watchlog.grouping import WorkItem
from watchlog.tmdb import poster_url, tmdb_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichedEntry:
    """A work item with whatever metadata this run could attach"""
    work_item: WorkItem
    metadata: Optional[Dict]
    provenance: str  # cache | fetched | unavailable

    @property
    def display_title(self) -> str:
        if self.metadata and self.metadata.get('title'):
            return self.metadata['title']
        return self.work_item.cleaned_title.text

    @property
    def release_year(self) -> Optional[int]:
        """Year from the filename, else from TMDb"""
        year = self.work_item.cleaned_title.extracted_year
        if year is None and self.metadata:
            year = self.metadata.get('release_year')
        return year

    @property
    def tmdb_url(self) -> Optional[str]:
        return tmdb_url(self.metadata)

    def poster_url(self, size: str = DEFAULT_POSTER_SIZE) -> Optional[str]:
        return poster_url(self.metadata, size)

    def to_dict(self, poster_size: str = DEFAULT_POSTER_SIZE) -> Dict:
        """JSON-ready view for the UI and --json output"""
        item = self.work_item
        return {
            'key': item.key,
            'raw_title': item.raw_title,
            'cleaned_title': item.cleaned_title.text,
            'release_year': self.release_year,
            'title': self.display_title,
            'watched_at': [ts.isoformat() for ts in item.watch_timestamps],
            'provenance': self.provenance,
            'movie': self.metadata,
            'tmdb_url': self.tmdb_url,
            'poster_url': self.poster_url(poster_size),
        }


# Run-level warning classes, most actionable first
WARN_CREDENTIALS = 'credentials'
WARN_NETWORK = 'network'
WARN_PROVIDER = 'provider'
WARN_CACHE = 'cache'
_WARNING_ORDER = (WARN_CREDENTIALS, WARN_NETWORK, WARN_PROVIDER, WARN_CACHE)

_SKIPPED = object()


class Enricher:
    """Resolve metadata for work items through the memo, the cache, then TMDb"""

    def __init__(self, cache: MetadataCache, provider=None,
                 max_workers: int = DEFAULT_MAX_WORKERS,
                 refresh_after_days: Optional[int] = None):
        self.cache = cache
        self.provider = provider
        self.max_workers = max(1, max_workers)
        self.refresh_after_days = refresh_after_days
        self.stats = defaultdict(int)
        self.warnings: Dict[str, str] = {}
        self._memo: Dict[str, Tuple[Optional[Dict], str]] = {}

    def enrich(self, work_items: Sequence[WorkItem]) -> Tuple[List[EnrichedEntry], Optional[str]]:
        """
        Enrich work items, persisting every new definitive answer.

        Returns:
            (entries in work item order, single warning string or None)

        Raises:
            CacheWriteError: new records could not be persisted
        """
        if self.cache.load_warning:
            self.warnings[WARN_CACHE] = self.cache.load_warning

        now = datetime.now(timezone.utc)
        pending: Dict[str, WorkItem] = {}
        stale: Dict[str, CacheRecord] = {}

        for item in work_items:
            key = item.key
            if key in self._memo or key in pending:
                self.stats['memo_hits'] += 1
                continue

            record = self.cache.get(key)
            if record is not None and not record.is_stale(self.refresh_after_days, now):
                if record.provider_status == STATUS_HIT:
                    logger.debug(f"Cache hit: {key}")
                    self._memo[key] = (record.metadata, PROVENANCE_CACHE)
                    self.stats['cache_hits'] += 1
                    continue
                if record.provider_status == STATUS_MISS:
                    logger.debug(f"Cached no-match: {key}")
                    self._memo[key] = (None, PROVENANCE_UNAVAILABLE)
                    self.stats['cached_misses'] += 1
                    continue
                # Prior error records are retried

            if record is not None and record.provider_status == STATUS_HIT:
                stale[key] = record
            logger.debug(f"Cache miss: {key}")
            pending[key] = item

        if pending:
            self._fetch_all(pending, stale)

        if self.cache.dirty:
            self.cache.save()

        entries = [EnrichedEntry(item, *self._memo[item.key]) for item in work_items]
        return entries, self.render_warning()

    # ── provider calls ──────────────────────────────────────────────────────

    def _fetch_all(self, pending: Dict[str, WorkItem], stale: Dict[str, CacheRecord]):
        if self.provider is None:
            logger.info(f"Offline run; {len(pending)} uncached title(s) left without metadata")
            for key in pending:
                self._degrade(key, stale)
                self.stats['skipped_offline'] += 1
            return

        if not getattr(self.provider, 'has_credentials', True):
            logger.warning(f"No TMDb API key; skipping {len(pending)} lookup(s)")
            self.warnings[WARN_CREDENTIALS] = (
                "TMDb API key is missing, so titles are shown without metadata. "
                "Add a key to enable lookups."
            )
            for key in pending:
                self._degrade(key, stale)
                self.stats['skipped_no_credentials'] += 1
            return

        auth_failed = threading.Event()
        outcomes = self._run_lookups(pending, auth_failed)

        network_failures = 0
        provider_failures = []
        for key in pending:
            result, error = outcomes[key]

            if result is _SKIPPED:
                self.stats['skipped_auth'] += 1
                self._degrade(key, stale)
            elif isinstance(error, ProviderAuthError):
                self.stats['auth_failures'] += 1
                self._degrade(key, stale)
            elif isinstance(error, ProviderUnavailableError):
                network_failures += 1
                self._degrade(key, stale)
            elif error is not None:
                provider_failures.append(str(error))
                if key in stale:
                    self._degrade(key, stale)
                else:
                    self.cache.record_error(key, str(error))
                    self._memo[key] = (None, PROVENANCE_UNAVAILABLE)
            elif result is None:
                self.stats['not_found'] += 1
                if key in stale:
                    # Keep the earlier match rather than overwrite it with a miss
                    self._degrade(key, stale)
                else:
                    self.cache.record_miss(key)
                    self._memo[key] = (None, PROVENANCE_UNAVAILABLE)
            else:
                self.stats['fetched'] += 1
                self.cache.record_hit(key, result)
                self._memo[key] = (result, PROVENANCE_FETCHED)

        if auth_failed.is_set():
            self.warnings[WARN_CREDENTIALS] = (
                "TMDb rejected the API key, so titles are shown without metadata. "
                "Check the key in your settings."
            )
        if network_failures:
            self.stats['network_failures'] = network_failures
            self.warnings[WARN_NETWORK] = (
                f"Could not reach TMDb for {network_failures} title(s); "
                f"they will be retried on the next run."
            )
        if provider_failures:
            self.stats['provider_errors'] = len(provider_failures)
            self.warnings[WARN_PROVIDER] = (
                f"TMDb refused {len(provider_failures)} lookup(s): {provider_failures[0]}"
            )

    def _run_lookups(self, pending: Dict[str, WorkItem], auth_failed: threading.Event) -> Dict:
        """Call the provider once per pending key, on a small worker pool"""

        def lookup(item: WorkItem):
            if auth_failed.is_set():
                return _SKIPPED, None
            title = item.cleaned_title
            try:
                return self.provider.search_film(title.text, title.extracted_year), None
            except ProviderAuthError as e:
                auth_failed.set()
                logger.warning(f"TMDb authentication failed: {e}")
                return None, e
            except ProviderError as e:
                logger.warning(f"TMDb lookup failed for '{title.text}' ({title.extracted_year}): {e}")
                return None, e

        workers = min(self.max_workers, len(pending))
        if workers == 1:
            return {key: lookup(item) for key, item in pending.items()}

        outcomes = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {executor.submit(lookup, item): key for key, item in pending.items()}
            for future in as_completed(future_map):
                outcomes[future_map[future]] = future.result()
        return outcomes

    def _degrade(self, key: str, stale: Dict[str, CacheRecord]):
        """No fresh answer: serve the stale hit if there is one"""
        if key in stale:
            self._memo[key] = (stale[key].metadata, PROVENANCE_CACHE)
            self.stats['stale_served'] += 1
        else:
            self._memo[key] = (None, PROVENANCE_UNAVAILABLE)

    def render_warning(self) -> Optional[str]:
        """All warning classes of this run as one banner, most actionable first"""
        parts = [self.warnings[name] for name in _WARNING_ORDER if name in self.warnings]
        return ' '.join(parts) if parts else None


def enrich(work_items: Sequence[WorkItem], cache: MetadataCache, provider=None,
           max_workers: int = DEFAULT_MAX_WORKERS,
           refresh_after_days: Optional[int] = None) -> Tuple[List[EnrichedEntry], Optional[str]]:
    """Convenience wrapper around Enricher for a single batch"""
    enricher = Enricher(cache, provider, max_workers=max_workers,
                        refresh_after_days=refresh_after_days)
    return enricher.enrich(work_items)
