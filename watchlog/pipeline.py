#!/usr/bin/env python3
"""
End-to-end pipeline: watch log → enriched history

    parse → normalize → group → enrich

run() is the one seam the UI and CLI call. It returns a best-effort result
plus at most one warning; only an unwritable cache store is fatal.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from watchlog.cache import MetadataCache
from watchlog.constants import (
    DEFAULT_CACHE_FILENAME, DEFAULT_LOG_FILENAME, DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT, LOG_PATH_ENV,
)
from watchlog.enrichment import EnrichedEntry, Enricher
from watchlog.grouping import WorkItem, group_entries
from watchlog.log_reader import read_watch_log
from watchlog.normalizer import TitleNormalizer
from watchlog.tmdb import TMDbClient

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Output of one pipeline run"""
    entries: List[EnrichedEntry]
    warning: Optional[str]
    cache_path: Path
    stats: Dict[str, int] = field(default_factory=dict)


def build_work_items(log_path: Path, normalizer: Optional[TitleNormalizer] = None) -> List[WorkItem]:
    """Parse, normalize and group the whole log"""
    normalizer = normalizer or TitleNormalizer()
    watch_log = read_watch_log(log_path)
    pairs = ((entry, normalizer.normalize(entry.source_uri)) for entry in watch_log)
    items = group_entries(pairs)
    logger.info(f"Grouped watch log into {len(items)} title(s)")
    return list(items.values())


def run(log_path: Path, cache_path: Optional[Path], credential: Optional[str],
        provider=None, max_workers: int = DEFAULT_MAX_WORKERS,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        refresh_after_days: Optional[int] = None, offline: bool = False) -> RunResult:
    """
    Build the enriched watch history.

    Args:
        log_path: Watch log written by the VLC logger
        cache_path: Metadata cache file (default: beside the log)
        credential: TMDb API key; None serves cached metadata and warns
        provider: Metadata client override (tests); built from credential if None
        max_workers: Concurrent provider lookups
        request_timeout: Seconds per provider call
        refresh_after_days: Re-check cached records older than this
        offline: Serve cached metadata only, without calling the provider

    Raises:
        CacheWriteError: the cache store could not be written
    """
    log_path = Path(log_path)
    cache_path = Path(cache_path) if cache_path else default_cache_path(log_path)

    work_items = build_work_items(log_path)

    cache = MetadataCache(cache_path)
    if provider is None and not offline:
        provider = TMDbClient(credential, timeout=request_timeout)

    enricher = Enricher(cache, None if offline else provider, max_workers=max_workers,
                        refresh_after_days=refresh_after_days)
    entries, warning = enricher.enrich(work_items)
    if warning:
        logger.warning(warning)

    return RunResult(entries=entries, warning=warning, cache_path=cache_path,
                     stats=dict(enricher.stats))


def default_log_path() -> Optional[Path]:
    """
    Where the VLC logger writes by default.

    WATCHLOG_LOG_PATH wins; otherwise the first existing VLC data directory,
    falling back to the home directory.
    """
    override = os.environ.get(LOG_PATH_ENV)
    if override:
        return Path(override)

    if sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if not appdata:
            return None
        vlc_dir = Path(appdata) / 'vlc'
        base = vlc_dir if vlc_dir.exists() else Path(appdata)
        return base / DEFAULT_LOG_FILENAME

    home = os.environ.get('HOME')
    if not home:
        return None
    home = Path(home)
    for base in (home / '.local' / 'share' / 'vlc', home / '.config' / 'vlc', home):
        if base.exists():
            return base / DEFAULT_LOG_FILENAME
    return home / DEFAULT_LOG_FILENAME


def default_cache_path(log_path: Path) -> Path:
    """Cache file beside the log"""
    return Path(log_path).parent / DEFAULT_CACHE_FILENAME
