#!/usr/bin/env python3
"""
TMDb API client

Thin adapter over /search/movie. Caching lives in watchlog.cache; this
module only talks to the provider and classifies its failures:

    ProviderAuthError         401, 403, no key     → stop calling for this run
    ProviderUnavailableError  timeout, 5xx, 429    → retry on a later run
    ProviderError             any other rejection  → recorded, retried later
    None                      no results           → negative cache entry
"""

import logging
import threading
from typing import Dict, Optional

import requests

from watchlog.constants import (
    DEFAULT_POSTER_SIZE, DEFAULT_REQUEST_TIMEOUT, TMDB_API_BASE,
    TMDB_IMAGE_BASE, TMDB_MOVIE_BASE,
)
from watchlog.errors import ProviderAuthError, ProviderError, ProviderUnavailableError

logger = logging.getLogger(__name__)


class TMDbClient:
    """Interface to The Movie Database search API"""

    def __init__(self, api_key: Optional[str], timeout: float = DEFAULT_REQUEST_TIMEOUT,
                 base_url: str = TMDB_API_BASE):
        self.api_key = (api_key or '').strip()
        self.base_url = base_url
        self.timeout = timeout
        self.calls = 0
        self.failures = 0
        self._lock = threading.Lock()

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def search_film(self, title: str, year: Optional[int] = None) -> Optional[Dict]:
        """
        Search for a film and return the best match.

        Returns dict with keys: tmdb_id, title, original_title, overview,
        release_date, poster_path, release_year
        or None if TMDb has no result for the query.

        Raises:
            ProviderAuthError: no API key, or TMDb rejected it
            ProviderUnavailableError: network failure, timeout, 5xx, 429
            ProviderError: any other non-success response
        """
        if not self.has_credentials:
            raise ProviderAuthError("TMDb API key is missing")

        query = title.strip()
        if not query:
            return None

        with self._lock:
            self.calls += 1
        try:
            result = self._query_api(query, year)
        except ProviderError:
            with self._lock:
                self.failures += 1
            raise

        if result is None:
            logger.debug(f"No TMDb results for '{query}' ({year})")
        else:
            logger.info(f"TMDb: '{query}' ({year}) → '{result['title']}' id:{result['tmdb_id']}")
        return result

    def _query_api(self, title: str, year: Optional[int]) -> Optional[Dict]:
        """Make actual API request to TMDb"""
        params = {
            'api_key': self.api_key,
            'query': title,
            'include_adult': 'false',
        }
        if year:
            params['year'] = year

        try:
            response = requests.get(
                f"{self.base_url}/search/movie",
                params=params,
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderUnavailableError(f"TMDb request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProviderUnavailableError(f"TMDb request failed: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise ProviderAuthError(f"TMDb rejected the API key (status {status})")
        if status == 429 or status >= 500:
            raise ProviderUnavailableError(f"TMDb returned status {status}")
        if status >= 400:
            raise ProviderError(f"TMDb returned status {status}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(f"TMDb response parse failed: {e}") from e

        if not isinstance(data, dict):
            raise ProviderUnavailableError("TMDb response malformed: body is not an object")
        results = data.get('results')
        if not results:
            return None
        if not isinstance(results, list) or not isinstance(results[0], dict):
            raise ProviderUnavailableError("TMDb response malformed: unexpected results layout")
        return self._to_metadata(results[0])

    def _to_metadata(self, movie: Dict) -> Dict:
        """Keep only the fields the watch history displays"""
        release_date = movie.get('release_date') or None
        release_year = None
        if release_date:
            try:
                release_year = int(release_date[:4])
            except ValueError:
                pass  # Partial or junk date, leave year unknown

        return {
            'tmdb_id': movie.get('id'),
            'title': movie.get('title') or movie.get('original_title') or '',
            'original_title': movie.get('original_title'),
            'overview': movie.get('overview') or None,
            'release_date': release_date,
            'poster_path': movie.get('poster_path'),
            'release_year': release_year,
        }

    def get_call_stats(self) -> Dict:
        """Get provider call statistics"""
        return {
            'calls': self.calls,
            'failures': self.failures,
        }


def poster_url(metadata: Optional[Dict], size: str = DEFAULT_POSTER_SIZE) -> Optional[str]:
    """Full poster image URL, or None when TMDb has no poster"""
    if not metadata or not metadata.get('poster_path'):
        return None
    path = metadata['poster_path'].lstrip('/')
    return f"{TMDB_IMAGE_BASE}{size}/{path}"


def tmdb_url(metadata: Optional[Dict]) -> Optional[str]:
    """Public TMDb page for the film"""
    if not metadata or metadata.get('tmdb_id') is None:
        return None
    return f"{TMDB_MOVIE_BASE}{metadata['tmdb_id']}"
