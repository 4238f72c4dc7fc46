#!/usr/bin/env python3
"""
Drop negative / error / stale records from the metadata cache so the next
run looks those titles up again. Run this after improving the normalizer
vocabularies, or when TMDb has since added a film that used to be missing.

Usage:
    python scripts/prune_cache.py ~/.local/share/vlc/.goo_cache.json --misses
    python scripts/prune_cache.py CACHE --errors --older-than 90
    python scripts/prune_cache.py CACHE --misses --dry-run

A timestamped backup is written to cache_backups/ beside the cache first.
"""

import sys
import shutil
import argparse
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from watchlog.cache import MetadataCache
from watchlog.constants import STATUS_ERROR, STATUS_MISS


def backup_cache(cache_path: Path) -> Path:
    """Backup cache to cache_backups/ before modification"""
    backup_dir = cache_path.parent / 'cache_backups'
    backup_dir.mkdir(exist_ok=True, parents=True)

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    backup_path = backup_dir / f"{cache_path.stem}_backup_{timestamp}.json"

    shutil.copy2(cache_path, backup_path)
    print(f"✓ Backed up to {backup_path}")
    return backup_path


def select_keys(cache: MetadataCache, misses: bool = False, errors: bool = False,
                older_than_days=None):
    """Keys matching any of the requested criteria"""
    now = datetime.now(timezone.utc)
    selected = []
    for key, record in cache.records.items():
        if misses and record.provider_status == STATUS_MISS:
            selected.append(key)
        elif errors and record.provider_status == STATUS_ERROR:
            selected.append(key)
        elif older_than_days is not None and record.is_stale(older_than_days, now):
            selected.append(key)
    return selected


def prune(cache_path: Path, misses: bool = False, errors: bool = False,
          older_than_days=None, dry_run: bool = False):
    """Remove matching records. Returns the removed keys."""
    cache = MetadataCache(cache_path)
    if cache.load_warning:
        print(f"⚠️  {cache.load_warning}")
        return []

    keys = select_keys(cache, misses, errors, older_than_days)
    original_count = len(cache)

    if dry_run:
        for key in keys:
            print(f"  would remove: {key} ({cache.get(key).provider_status})")
        print(f"\n{len(keys)} of {original_count} entries would be removed (dry run)")
        return keys

    if not keys:
        print("Nothing to remove.")
        return keys

    backup_cache(cache_path)
    for key in keys:
        cache.remove(key)
    cache.save()

    print(f"✓ Removed {len(keys)} entries from {cache_path}")
    print(f"  Before: {original_count} entries")
    print(f"  After: {len(cache)} entries")
    return keys


def main():
    parser = argparse.ArgumentParser(description='Prune metadata cache records')
    parser.add_argument('cache_path', type=Path, help='Metadata cache JSON file')
    parser.add_argument('--misses', action='store_true',
                        help='Remove "no match" records')
    parser.add_argument('--errors', action='store_true',
                        help='Remove provider error records')
    parser.add_argument('--older-than', type=int, metavar='DAYS', dest='older_than',
                        help='Remove records fetched more than DAYS ago')
    parser.add_argument('--dry-run', action='store_true',
                        help='Only list what would be removed')
    args = parser.parse_args()

    if not (args.misses or args.errors or args.older_than is not None):
        parser.error('choose at least one of --misses, --errors, --older-than')

    if not args.cache_path.exists():
        print(f"Cache not found at {args.cache_path}")
        return 1

    prune(args.cache_path, args.misses, args.errors, args.older_than, args.dry_run)
    return 0


if __name__ == '__main__':
    sys.exit(main())
