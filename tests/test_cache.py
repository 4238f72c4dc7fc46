#!/usr/bin/env python3
"""
Test suite for watchlog/cache.py — persistent metadata records
"""

import json
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from watchlog.cache import CacheRecord, MetadataCache
from watchlog.constants import STATUS_ERROR, STATUS_HIT, STATUS_MISS
from watchlog.errors import CacheWriteError

AMORES = {'tmdb_id': 55, 'title': 'Amores perros', 'release_year': 2000, 'poster_path': '/a.jpg'}


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / '.goo_cache.json'


class TestColdStart:

    def test_missing_file(self, cache_path):
        cache = MetadataCache(cache_path)
        assert len(cache) == 0
        assert cache.load_warning is None
        assert not cache.dirty

    def test_save_creates_file(self, cache_path):
        cache = MetadataCache(cache_path)
        cache.record_hit('amores perros|2000', AMORES)
        cache.save()
        data = json.loads(cache_path.read_text(encoding='utf-8'))
        assert data['version'] == 1
        assert data['entries']['amores perros|2000']['provider_status'] == STATUS_HIT


class TestPersistence:

    def test_records_survive_reload(self, cache_path):
        cache = MetadataCache(cache_path)
        cache.record_hit('amores perros|2000', AMORES)
        cache.record_miss('obscure home video')
        cache.record_error('weird|1999', 'TMDb returned status 422')
        cache.save()

        reloaded = MetadataCache(cache_path)
        assert reloaded.get('amores perros|2000').metadata == AMORES
        assert reloaded.get('obscure home video').provider_status == STATUS_MISS
        assert reloaded.get('weird|1999').error_reason == 'TMDb returned status 422'
        assert reloaded.get_stats() == {STATUS_HIT: 1, STATUS_MISS: 1, STATUS_ERROR: 1, 'total': 3}

    def test_fetched_at_is_aware(self, cache_path):
        cache = MetadataCache(cache_path)
        cache.record_miss('heat')
        cache.save()
        assert MetadataCache(cache_path).get('heat').fetched_at.tzinfo is not None

    def test_no_temp_file_left(self, cache_path):
        cache = MetadataCache(cache_path)
        cache.record_miss('heat')
        cache.save()
        assert [p.name for p in cache_path.parent.iterdir()] == [cache_path.name]

    def test_remove(self, cache_path):
        cache = MetadataCache(cache_path)
        cache.record_miss('heat')
        assert cache.remove('heat') is True
        assert cache.remove('heat') is False
        assert 'heat' not in cache


class TestCorruption:

    def test_invalid_json_starts_fresh_with_warning(self, cache_path):
        cache_path.write_text("{not json", encoding='utf-8')
        cache = MetadataCache(cache_path)
        assert len(cache) == 0
        assert "unreadable" in cache.load_warning
        assert cache.dirty

    def test_wrong_layout(self, cache_path):
        cache_path.write_text(json.dumps(["a", "b"]), encoding='utf-8')
        cache = MetadataCache(cache_path)
        assert cache.load_warning is not None

    def test_corrupt_file_replaced_on_save(self, cache_path):
        cache_path.write_text("{not json", encoding='utf-8')
        cache = MetadataCache(cache_path)
        cache.save()
        assert MetadataCache(cache_path).load_warning is None

    def test_malformed_record_dropped(self, cache_path):
        cache_path.write_text(json.dumps({
            'version': 1,
            'entries': {
                'bad': {'provider_status': 'maybe', 'fetched_at': '2025-01-01T00:00:00+00:00'},
                'heat|1995': {'provider_status': 'miss', 'metadata': None,
                              'fetched_at': '2025-01-01T00:00:00+00:00'},
            },
        }), encoding='utf-8')
        cache = MetadataCache(cache_path)
        assert list(cache.records) == ['heat|1995']
        assert cache.load_warning is None
        assert cache.dirty


class TestWriteFailure:

    def test_unwritable_location_raises(self, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text("a file, not a directory", encoding='utf-8')
        cache = MetadataCache(blocker / 'cache.json')
        cache.record_miss('heat')
        with pytest.raises(CacheWriteError):
            cache.save()


class TestStaleness:

    def test_no_policy_never_stale(self):
        record = CacheRecord('heat', None, datetime(2000, 1, 1, tzinfo=timezone.utc), STATUS_MISS)
        assert not record.is_stale(None)

    def test_old_record_stale(self):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        record = CacheRecord('heat', None, now - timedelta(days=31), STATUS_MISS)
        assert record.is_stale(30, now)
        assert not record.is_stale(60, now)
