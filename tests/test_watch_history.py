#!/usr/bin/env python3
"""
Test suite for watch_history.py — command-line entry point
"""

import json
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import watch_history
from watchlog.cache import MetadataCache
from watchlog.constants import DEFAULT_CACHE_FILENAME

LOG = """\
2025-01-01T21:00:00Z|file:///C:/Movies/Alien.1979.720p.mkv
2025-01-02T21:00:00Z|file:///C:/Movies/Heat.1995.1080p.mkv
2025-01-03T21:00:00Z|file:///C:/Movies/Alien.1979.1080p.mkv
"""


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv('TMDB_API_KEY', raising=False)
    log_path = tmp_path / 'watch_log.txt'
    log_path.write_text(LOG, encoding='utf-8')
    cache = MetadataCache(tmp_path / DEFAULT_CACHE_FILENAME)
    cache.record_hit('alien|1979', {'tmdb_id': 348, 'title': 'Alien', 'release_year': 1979,
                                    'poster_path': '/alien.jpg'})
    cache.save()
    return log_path


def _main(monkeypatch, *args):
    monkeypatch.setattr(sys, 'argv', ['watch_history.py', *args])
    return watch_history.main()


class TestOutput:

    def test_json_output(self, workspace, monkeypatch, capsys):
        assert _main(monkeypatch, str(workspace), '--no-api', '--json') == 0
        payload = json.loads(capsys.readouterr().out)

        by_key = {e['key']: e for e in payload['entries']}
        assert by_key['alien|1979']['provenance'] == 'cache'
        assert len(by_key['alien|1979']['watched_at']) == 2
        assert by_key['heat|1995']['provenance'] == 'unavailable'
        assert payload['cache_warning'] is None

    def test_table_newest_first(self, workspace, monkeypatch, capsys):
        assert _main(monkeypatch, str(workspace), '--no-api') == 0
        out = capsys.readouterr().out
        assert out.index('Alien') < out.index('Heat')
        assert 'x2' in out

    def test_missing_key_warning_shown(self, workspace, monkeypatch, capsys):
        assert _main(monkeypatch, str(workspace)) == 0
        assert "API key is missing" in capsys.readouterr().out


class TestLogMaintenance:

    def test_forget(self, workspace, monkeypatch, capsys):
        assert _main(monkeypatch, str(workspace), '--forget', 'Alien', '--year', '1979') == 0
        assert 'Alien' not in workspace.read_text(encoding='utf-8')
        assert "Removed 2 log line(s)" in capsys.readouterr().out

    def test_clear_log(self, workspace, monkeypatch):
        assert _main(monkeypatch, str(workspace), '--clear-log') == 0
        assert not workspace.exists()


class TestErrors:

    def test_bad_config(self, workspace, monkeypatch):
        (workspace.parent / 'config.yaml').write_text("max_workers: 0\n", encoding='utf-8')
        assert _main(monkeypatch, str(workspace), '--no-api') == 1

    def test_unwritable_cache(self, workspace, monkeypatch, tmp_path):
        """A directory where the cache file should be can be neither read nor replaced"""
        cache_dir = tmp_path / 'cache_is_a_directory'
        cache_dir.mkdir()
        assert _main(monkeypatch, str(workspace), '--no-api', '--cache', str(cache_dir)) == 1
