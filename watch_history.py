#!/usr/bin/env python3
"""
watch_history.py - Enriched VLC watch history

NEVER touches media files. Reads the watch log, writes only the metadata
cache (and the log itself with --forget / --clear-log).

Pipeline:
1. Parse the watch log (malformed lines skipped)
2. Normalize filenames into searchable titles
3. Group repeated plays of the same title
4. Enrich from the metadata cache, then TMDb for anything uncached
"""

import sys
import json
import logging
import argparse
from pathlib import Path

from watchlog.config import load_config, resolve_api_key
from watchlog.errors import CacheWriteError, ConfigError
from watchlog.grouping import make_key
from watchlog.log_reader import delete_log, remove_entries
from watchlog.normalizer import CleanedTitle
from watchlog.pipeline import default_log_path, run

logger = logging.getLogger(__name__)


def format_entry(entry) -> str:
    """One history line: last watched, title (year), play count, provenance"""
    item = entry.work_item
    last = item.last_watched.strftime('%Y-%m-%d %H:%M') if item.last_watched else '-'
    title = entry.display_title
    if entry.release_year:
        title = f"{title} ({entry.release_year})"
    plays = f"x{item.watch_count}" if item.watch_count > 1 else ''
    return f"{last}  {title:50s} {plays:>4s}  [{entry.provenance}]"


def print_history(result):
    """Newest first"""
    entries = sorted(
        result.entries,
        key=lambda e: e.work_item.last_watched.timestamp() if e.work_item.last_watched else 0,
        reverse=True,
    )

    if result.warning:
        print(f"\n⚠️  {result.warning}\n")

    print("=" * 72)
    print(f"WATCH HISTORY ({len(entries)} titles)")
    print("=" * 72)
    for entry in entries:
        print(format_entry(entry))

    stats = result.stats
    print("-" * 72)
    print(f"Cache hits: {stats.get('cache_hits', 0)}, "
          f"fetched: {stats.get('fetched', 0)}, "
          f"not found: {stats.get('not_found', 0) + stats.get('cached_misses', 0)}, "
          f"network failures: {stats.get('network_failures', 0)}")
    print(f"Cache: {result.cache_path}")


def main():
    parser = argparse.ArgumentParser(
        description='Show the enriched VLC watch history',
        epilog="""
Examples:
  python watch_history.py
  python watch_history.py ~/.local/share/vlc/.goo_watch_log.txt --json
  python watch_history.py --no-api
  python watch_history.py --forget "Amores Perros" --year 2000
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('log_path', type=Path, nargs='?',
                        help='Watch log (default: config log_path, then VLC data dir)')
    parser.add_argument('--cache', type=Path,
                        help='Metadata cache file (default: .goo_cache.json beside the log)')
    parser.add_argument('--config', type=Path, default=Path('config.yaml'),
                        help='Configuration file (default: config.yaml)')
    parser.add_argument('--no-api', action='store_true', dest='offline',
                        help='Use cached metadata only, never call TMDb')
    parser.add_argument('--json', action='store_true',
                        help='Print entries as JSON instead of a table')
    parser.add_argument('--forget', metavar='TITLE',
                        help='Remove every log line for TITLE (as shown in the history)')
    parser.add_argument('--year', type=int,
                        help='Release year for --forget')
    parser.add_argument('--clear-log', action='store_true',
                        help='Delete the whole watch log')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    log_path = args.log_path or config.get('log_path') or default_log_path()
    if not log_path:
        logger.error("Log path not found. Set WATCHLOG_LOG_PATH or pass a path.")
        return 1
    log_path = Path(log_path).expanduser()

    if args.clear_log:
        if delete_log(log_path):
            print(f"Deleted {log_path}")
        else:
            print(f"No watch log at {log_path}")
        return 0

    if args.forget:
        key = make_key(CleanedTitle(args.forget.strip(), args.year))
        removed = remove_entries(log_path, key)
        print(f"Removed {removed} log line(s) for '{key}'")
        return 0

    cache_path = args.cache or config.get('cache_path')
    if cache_path:
        cache_path = Path(cache_path).expanduser()

    try:
        result = run(
            log_path,
            cache_path,
            resolve_api_key(config),
            max_workers=int(config['max_workers']),
            request_timeout=config['request_timeout'],
            refresh_after_days=config['refresh_after_days'],
            offline=args.offline,
        )
    except CacheWriteError as e:
        logger.error(str(e))
        return 1

    if args.json:
        payload = {
            'entries': [e.to_dict(config['poster_size']) for e in result.entries],
            'cache_warning': result.warning,
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print_history(result)

    return 0


if __name__ == '__main__':
    sys.exit(main())
