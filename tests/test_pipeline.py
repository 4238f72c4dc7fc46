#!/usr/bin/env python3
"""
Test suite for watchlog/pipeline.py — log file in, enriched history out
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from watchlog.constants import DEFAULT_CACHE_FILENAME, DEFAULT_LOG_FILENAME
from watchlog.pipeline import build_work_items, default_cache_path, default_log_path, run

AMORES = {
    'tmdb_id': 55, 'title': 'Amores perros', 'original_title': 'Amores perros',
    'overview': None, 'release_date': '2000-06-16', 'poster_path': '/a.jpg',
    'release_year': 2000,
}

TWO_PLAYS = """\
2025-01-01T10:00:00Z|__activated__
2025-01-01T21:00:00Z|file:///C:/Movies/Amores.Perros.2000.1080p.BluRay.x264.AAC5.1-[YTS.MX].mp4
this line is junk
2025-01-05T22:30:00Z|file:///D:/Backup/Amores%20Perros%20(2000)/Amores.Perros.2000.720p.mkv
"""


@pytest.fixture
def log_path(tmp_path):
    path = tmp_path / DEFAULT_LOG_FILENAME
    path.write_text(TWO_PLAYS, encoding='utf-8')
    return path


@pytest.fixture
def provider():
    stub = MagicMock()
    stub.search_film.return_value = AMORES
    return stub


class TestBuildWorkItems:

    def test_two_plays_one_item(self, log_path):
        items = build_work_items(log_path)
        assert len(items) == 1
        assert items[0].key == 'amores perros|2000'
        assert items[0].watch_count == 2
        assert items[0].raw_title == "D:/Backup/Amores Perros (2000)/Amores.Perros.2000.720p.mkv"

    def test_missing_log(self, tmp_path):
        assert build_work_items(tmp_path / 'nope.txt') == []


class TestRun:

    def test_single_lookup_for_repeated_title(self, log_path, provider):
        result = run(log_path, None, 'test_key', provider=provider)

        provider.search_film.assert_called_once_with('Amores Perros', 2000)
        assert len(result.entries) == 1
        entry = result.entries[0]
        assert entry.provenance == 'fetched'
        assert entry.display_title == 'Amores perros'
        assert len(entry.work_item.watch_timestamps) == 2
        assert result.warning is None

    def test_cache_written_beside_log(self, log_path, provider):
        result = run(log_path, None, 'test_key', provider=provider)
        assert result.cache_path == log_path.parent / DEFAULT_CACHE_FILENAME
        assert result.cache_path.exists()

    def test_second_run_served_from_cache(self, log_path, provider):
        run(log_path, None, 'test_key', provider=provider)
        provider.search_film.reset_mock()

        result = run(log_path, None, 'test_key', provider=provider)

        provider.search_film.assert_not_called()
        assert result.entries[0].provenance == 'cache'

    def test_repeat_runs_identical(self, log_path, provider):
        first = run(log_path, None, 'test_key', provider=provider)
        second = run(log_path, None, 'test_key', provider=provider)
        assert [e.to_dict() for e in second.entries] == [
            dict(e.to_dict(), provenance='cache') for e in first.entries
        ]

    def test_deleted_cache_refetches(self, log_path, provider):
        result = run(log_path, None, 'test_key', provider=provider)
        result.cache_path.unlink()
        provider.search_film.reset_mock()

        run(log_path, None, 'test_key', provider=provider)

        assert provider.search_film.call_count == 1

    def test_explicit_cache_path(self, log_path, provider, tmp_path):
        cache_path = tmp_path / 'elsewhere' / 'cache.json'
        run(log_path, cache_path, 'test_key', provider=provider)
        assert cache_path.exists()

    def test_offline_never_calls_provider(self, log_path, provider):
        result = run(log_path, None, 'test_key', provider=provider, offline=True)
        provider.search_film.assert_not_called()
        assert result.entries[0].provenance == 'unavailable'
        assert result.warning is None

    def test_no_credential_no_network(self, log_path):
        with patch('requests.get') as mock_get:
            result = run(log_path, None, None)
            mock_get.assert_not_called()
        assert "API key is missing" in result.warning
        assert result.entries[0].display_title == 'Amores Perros'

    def test_malformed_provider_body_does_not_abort(self, log_path):
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = {'results': {'page': 1}}
        with patch('requests.get') as mock_get:
            mock_get.return_value = response
            result = run(log_path, None, 'test_key')

        assert len(result.entries) == 1
        assert result.entries[0].provenance == 'unavailable'
        assert "Could not reach TMDb" in result.warning

    def test_stats_reported(self, log_path, provider):
        result = run(log_path, None, 'test_key', provider=provider)
        assert result.stats['fetched'] == 1


class TestDefaultPaths:

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv('WATCHLOG_LOG_PATH', str(tmp_path / 'custom.txt'))
        assert default_log_path() == tmp_path / 'custom.txt'

    def test_vlc_data_dir(self, monkeypatch, tmp_path):
        monkeypatch.delenv('WATCHLOG_LOG_PATH', raising=False)
        monkeypatch.setattr(sys, 'platform', 'linux')
        monkeypatch.setenv('HOME', str(tmp_path))
        vlc_dir = tmp_path / '.local' / 'share' / 'vlc'
        vlc_dir.mkdir(parents=True)
        assert default_log_path() == vlc_dir / DEFAULT_LOG_FILENAME

    def test_home_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv('WATCHLOG_LOG_PATH', raising=False)
        monkeypatch.setattr(sys, 'platform', 'linux')
        monkeypatch.setenv('HOME', str(tmp_path))
        assert default_log_path() == tmp_path / DEFAULT_LOG_FILENAME

    def test_windows_appdata(self, monkeypatch, tmp_path):
        monkeypatch.delenv('WATCHLOG_LOG_PATH', raising=False)
        monkeypatch.setattr(sys, 'platform', 'win32')
        monkeypatch.setenv('APPDATA', str(tmp_path))
        (tmp_path / 'vlc').mkdir()
        assert default_log_path() == tmp_path / 'vlc' / DEFAULT_LOG_FILENAME

    def test_cache_beside_log(self, tmp_path):
        assert default_cache_path(tmp_path / 'log.txt') == tmp_path / DEFAULT_CACHE_FILENAME
