#!/usr/bin/env python3
"""
Watch log reader

Parses the append-only playback log written by the VLC logger:

    2025-01-01T10:00:00Z|__activated__
    2025-01-01T10:02:13Z|file:///C:/Movies/Alien.1979.720p.mkv

Malformed lines are skipped, never fatal. A missing or unreadable log is
"no history yet", not an error.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import unquote, urlparse

from watchlog.constants import ACTIVATION_MARKER, LOG_DELIMITERS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawEntry:
    """One playback event from the log"""
    watched_at: Optional[datetime]  # UTC, timezone-aware
    source_uri: str


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO8601 timestamp, assuming UTC when no offset is given"""
    value = value.strip()
    if not value:
        return None
    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def decode_uri(uri: str) -> str:
    """
    Turn a file:// URI into a display path; other schemes pass through.

    file:///C:/Movies/Amores%20Perros.mkv → C:/Movies/Amores Perros.mkv
    file:///home/me/Alien.mkv             → /home/me/Alien.mkv
    """
    if not uri.lower().startswith('file:'):
        return uri

    parsed = urlparse(uri)
    path = unquote(parsed.path)
    # Windows drive letters arrive as /C:/...
    if len(path) >= 3 and path[0] == '/' and path[2] == ':' and path[1].isalpha():
        path = path[1:]
    if parsed.netloc and parsed.netloc.lower() != 'localhost':
        # UNC share: file://server/share/file.mkv
        path = f"//{parsed.netloc}{path}"
    return path or uri


def _split_line(line: str):
    for delimiter in LOG_DELIMITERS:
        if delimiter in line:
            left, right = line.split(delimiter, 1)
            return left.strip(), right.strip()
    return None


def parse_log_line(line: str) -> Optional[RawEntry]:
    """
    Parse one log line.

    Returns None for blank lines, activation markers and anything that does
    not have the <timestamp>|<uri> shape.
    """
    trimmed = line.strip()
    if not trimmed:
        return None

    fields = _split_line(trimmed)
    if fields is None:
        logger.debug(f"Skipping log line without delimiter: {trimmed!r}")
        return None

    stamp, uri = fields
    if not uri:
        logger.debug(f"Skipping log line with empty URI: {trimmed!r}")
        return None
    if uri == ACTIVATION_MARKER:
        return None

    watched_at = parse_timestamp(stamp)
    if watched_at is None:
        logger.debug(f"Skipping log line with bad timestamp: {trimmed!r}")
        return None

    return RawEntry(watched_at=watched_at, source_uri=decode_uri(uri))


class WatchLog:
    """
    Lazy, restartable view over the log text.

    Every iteration re-scans the text from the start, in file (append) order.
    """

    def __init__(self, text: str):
        self.text = text
        self.skipped = 0

    def __iter__(self) -> Iterator[RawEntry]:
        skipped = 0
        for line in self.text.splitlines():
            entry = parse_log_line(line)
            if entry is None:
                stripped = line.strip()
                if stripped and not stripped.endswith(ACTIVATION_MARKER):
                    skipped += 1
                continue
            yield entry
        self.skipped = skipped
        if skipped:
            logger.info(f"Skipped {skipped} malformed log line(s)")


def read_log_text(log_path: Path) -> str:
    """Read the log, treating a missing or unreadable file as empty"""
    if not log_path.exists():
        logger.info(f"No watch log at {log_path} yet")
        return ''
    try:
        with open(log_path, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()
    except OSError as e:
        logger.warning(f"Could not read watch log {log_path}: {e}. Treating as empty.")
        return ''


def read_watch_log(log_path: Path) -> WatchLog:
    """Load the log file into a WatchLog"""
    return WatchLog(read_log_text(Path(log_path)))


def remove_entries(log_path: Path, key: str, normalizer=None) -> int:
    """
    Remove every log line whose grouping key equals `key`.

    Other lines (malformed ones and activation markers included) are kept
    untouched. Returns the number of lines removed.

    Args:
        log_path: Watch log to rewrite
        key: Grouping key, as produced by grouping.make_key()
        normalizer: TitleNormalizer used to build keys (default vocabularies if None)
    """
    from watchlog.grouping import make_key
    from watchlog.normalizer import TitleNormalizer

    normalizer = normalizer or TitleNormalizer()
    log_path = Path(log_path)
    if not log_path.exists():
        return 0

    # Undecodable bytes and CRLF endings round-trip unchanged through the rewrite
    with open(log_path, 'r', encoding='utf-8', errors='surrogateescape', newline='') as f:
        lines = f.read().splitlines(keepends=True)

    kept = []
    removed = 0
    for line in lines:
        # Match on the text read_log_text() would produce
        readable = line.encode('utf-8', 'surrogateescape').decode('utf-8', 'replace')
        entry = parse_log_line(readable)
        if entry is not None and make_key(normalizer.normalize(entry.source_uri)) == key:
            removed += 1
            continue
        kept.append(line)

    if not removed:
        return 0

    tmp_path = log_path.with_name(log_path.name + '.tmp')
    with open(tmp_path, 'w', encoding='utf-8', errors='surrogateescape', newline='') as f:
        f.write(''.join(kept))
    os.replace(tmp_path, log_path)

    logger.info(f"Removed {removed} log line(s) for '{key}' from {log_path}")
    return removed


def delete_log(log_path: Path) -> bool:
    """Delete the watch log. Returns False when there was nothing to delete."""
    try:
        Path(log_path).unlink()
    except FileNotFoundError:
        return False
    logger.info(f"Deleted watch log {log_path}")
    return True
