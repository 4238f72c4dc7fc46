#!/usr/bin/env python3
"""
watchlog/normalizer.py — Title normalization for watch log entries

Pure text transformation. No I/O, no API calls, no clock access.

The same raw input MUST always produce the same CleanedTitle: the grouping
key and the metadata cache key are both derived from it, so any drift here
silently orphans cache records.

Passes are applied in strict order, each feeding the next:
  1. Filename component only, known media extension stripped
  2. Bracketed groups removed: [...] (...) {...}
  3. Release metadata tokens removed (constants.RELEASE_VOCABULARIES)
  4. Separators . _ - become spaces
  5. Release year extracted (last 4-digit candidate wins)
  6. Standalone numeric tokens removed
  7. Trimmed, casing preserved
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from watchlog.constants import (
    AUDIO_CHANNEL_PATTERN, MAX_YEAR, MEDIA_EXTENSIONS, MIN_YEAR,
    RELEASE_VOCABULARIES,
)


@dataclass(frozen=True)
class CleanedTitle:
    """Searchable title plus the release year found in the filename"""
    text: str
    extracted_year: Optional[int] = None


def _build_release_tag_re(vocabularies: dict) -> re.Pattern:
    """Compile every vocabulary entry into one whole-token alternation."""
    tags = {tag.lower() for entries in vocabularies.values() for tag in entries}
    # Longest first so "hdr10+" wins over "hdr", "dts-hd" over "dts"
    alternation = '|'.join(re.escape(tag) for tag in sorted(tags, key=lambda t: (-len(t), t)))
    return re.compile(
        r'(?<![a-z0-9])(?:' + alternation + r')(?![a-z0-9])',
        re.IGNORECASE,
    )


class TitleNormalizer:
    """Turn a logged path or URI into a CleanedTitle"""

    _BRACKETED_RE = re.compile(r'\[[^\]]*\]|\([^)]*\)|\{[^}]*\}')
    _AUDIO_CHANNEL_RE = re.compile(
        r'(?<![a-z0-9])' + AUDIO_CHANNEL_PATTERN + r'(?![0-9])',
        re.IGNORECASE,
    )
    _SEPARATOR_RE = re.compile(r'[._\-]+')
    _YEAR_RE = re.compile(r'^\d{4}$')
    _NUMERIC_RE = re.compile(r'^\d+$')

    def __init__(self, vocabularies: Optional[dict] = None):
        self._release_tag_re = _build_release_tag_re(vocabularies or RELEASE_VOCABULARIES)

    def normalize(self, raw: str) -> CleanedTitle:
        """
        Normalize a raw log URI or filename.

        Args:
            raw: Path, URI or bare filename as it appears in the watch log

        Returns:
            CleanedTitle whose text is never empty

        Examples:
            >>> TitleNormalizer().normalize("Amores.Perros.2000.1080p.BluRay.x264.AAC5.1-[YTS.MX].mp4")
            CleanedTitle(text='Amores Perros', extracted_year=2000)
        """
        filename = self._extract_filename(raw)

        text = self._BRACKETED_RE.sub(' ', filename)
        leading = self._SEPARATOR_RE.sub(' ', text).split()
        leads_with_year = bool(leading) and self._is_year(leading[0])
        text = self._strip_release_tags(text)
        text = ' '.join(self._SEPARATOR_RE.sub(' ', text).split())

        tokens = text.split()
        year, year_index, protected_index = self._find_year(tokens, leads_with_year)
        kept = []
        for idx, token in enumerate(tokens):
            if idx == year_index:
                continue
            if self._NUMERIC_RE.match(token) and idx != protected_index:
                continue
            kept.append(token)

        title = ' '.join(kept).strip()
        if not title:
            # Entirely noise: fall back to the bare filename, keeping any year found
            title = filename.strip() or raw.strip() or raw

        return CleanedTitle(text=title, extracted_year=year)

    def _extract_filename(self, raw: str) -> str:
        """Pass 1: last path component without a known media extension"""
        name = re.split(r'[\\/]', raw.strip())[-1]
        if not name:
            # Trailing slash: use the last non-empty component
            parts = [p for p in re.split(r'[\\/]', raw.strip()) if p]
            name = parts[-1] if parts else raw.strip()

        dot = name.rfind('.')
        if dot > 0 and name[dot:].lower() in MEDIA_EXTENSIONS:
            name = name[:dot]
        return name

    def _strip_release_tags(self, text: str) -> str:
        """Pass 3: drop audio channel layouts, then every vocabulary token"""
        text = self._AUDIO_CHANNEL_RE.sub(' ', text)
        return self._release_tag_re.sub(' ', text)

    def _is_year(self, token: str) -> bool:
        return bool(self._YEAR_RE.match(token)) and MIN_YEAR <= int(token) <= MAX_YEAR

    def _find_year(self, tokens: List[str],
                   leads_with_year: bool) -> Tuple[Optional[int], Optional[int], Optional[int]]:
        """
        Pass 5: locate the release year.

        Returns (year, index to drop, index to protect from pass 6).
        A year that opens the filename itself ("1917", "2001 A Space Odyssey")
        is title text: it is never taken as the release year and never
        dropped as a stray number. A year that only leads because release
        tags before it were stripped ("Opus.2025") is an ordinary candidate.
        """
        positions = [idx for idx, token in enumerate(tokens) if self._is_year(token)]
        if not positions:
            return None, None, None

        protected = 0 if leads_with_year and positions[0] == 0 else None
        candidates = [idx for idx in positions if idx != protected]
        if not candidates:
            return None, None, protected
        last = candidates[-1]
        return int(tokens[last]), last, protected


_default_normalizer = None


def normalize(raw: str) -> CleanedTitle:
    """Module-level shortcut using the default vocabularies"""
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = TitleNormalizer()
    return _default_normalizer.normalize(raw)
