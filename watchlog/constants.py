#!/usr/bin/env python3
"""
Shared constants for the watch history pipeline

Single source of truth for release-tag vocabularies, log format markers and
provider endpoints. DO NOT duplicate these lists in other modules - import
from here instead.
"""

# =============================================================================
# WATCH LOG FORMAT
# =============================================================================

# Written once per logger start-up in place of a URI
ACTIVATION_MARKER = '__activated__'

# Primary field delimiter; TAB is accepted for older hand-edited logs
LOG_DELIMITERS = ('|', '\t')

DEFAULT_LOG_FILENAME = '.goo_watch_log.txt'
DEFAULT_CACHE_FILENAME = '.goo_cache.json'

# Overrides every other log location when set
LOG_PATH_ENV = 'WATCHLOG_LOG_PATH'
API_KEY_ENV = 'TMDB_API_KEY'

# =============================================================================
# TITLE NORMALIZATION VOCABULARIES
# =============================================================================

# Extensions stripped in pass 1. Anything else after the last dot is kept,
# so "AAC5.1" does not lose its ".1".
MEDIA_EXTENSIONS = {
    '.mkv', '.mp4', '.avi', '.mov', '.m4v', '.mpg', '.mpeg', '.wmv',
    '.ts', '.m2ts', '.webm', '.flv', '.ogv', '.3gp', '.vob', '.divx',
    '.iso', '.mp3', '.flac', '.m4a', '.ogg', '.opus', '.wav',
}

# Release metadata removed by whole-token, case-insensitive matching.
# Grouped by category so the lists can be extended without touching the
# normalizer. Multi-part tags ("web-dl", "dts-hd") are matched before the
# separator pass, so they can be listed as they appear in filenames.
RELEASE_VOCABULARIES = {
    'resolution': [
        '240p', '360p', '480p', '540p', '576p', '720p', '1080p', '1080i',
        '1440p', '2160p', '4320p', '2k', '4k', '8k', 'uhd', 'fhd', 'hd', 'sd',
    ],
    'codec': [
        'x264', 'x265', 'h264', 'h265', 'h.264', 'h.265', 'hevc', 'avc',
        'xvid', 'divx', 'av1', 'vp9', '10bit', '8bit', '12bit',
    ],
    'audio': [
        'aac', 'ac3', 'eac3', 'ddp', 'dd', 'dts', 'dts-hd', 'truehd',
        'atmos', 'flac', 'opus', 'mp3', 'mp2', 'lpcm', '2audio',
    ],
    'source': [
        'bluray', 'blu-ray', 'bdrip', 'brrip', 'bdremux', 'web-dl', 'webdl',
        'webrip', 'hdrip', 'dvdrip', 'dvdscr', 'hdtv', 'pdtv',
        'tvrip', 'hdcam', 'remux', 'hdr', 'hdr10', 'hdr10+', 'dv',
        'sdr', 'amzn', 'nf', 'hulu', 'dsnp', 'atvp', 'hmax',
    ],
    'modifier': [
        'proper', 'repack', 'extended', 'uncut', 'unrated', 'remastered',
        'multi', 'subbed', 'dubbed',
    ],
    'group': [
        'yts', 'yify', 'rarbg', 'etrg', 'pahe', 'tigole', 'qxr',
        'sparks', 'fgt', 'ntb', 'psa', 'galaxyrg', 'ettv', 'eztv',
        'mx',
    ],
}

# Codec immediately followed by a channel layout ("AAC5.1", "DDP 7.1").
# Runs before the vocabulary pass so the channel digits go with it.
AUDIO_CHANNEL_PATTERN = (
    r'(?:aac|ac3|eac3|ddp|dd\+?|dts|truehd|atmos|flac|opus|mp3|mp2)'
    r'[\s._-]*\d\.\d'
)

# Year range accepted in pass 5
MIN_YEAR = 1900
MAX_YEAR = 2099

# =============================================================================
# METADATA PROVIDER (TMDb)
# =============================================================================

TMDB_API_BASE = 'https://api.themoviedb.org/3'
TMDB_IMAGE_BASE = 'https://image.tmdb.org/t/p/'
TMDB_MOVIE_BASE = 'https://www.themoviedb.org/movie/'
DEFAULT_POSTER_SIZE = 'w342'

# Seconds per provider call
DEFAULT_REQUEST_TIMEOUT = 10

# Small pool so the provider's rate limit is respected
DEFAULT_MAX_WORKERS = 4

# =============================================================================
# CACHE STORE
# =============================================================================

CACHE_FORMAT_VERSION = 1

# CacheRecord.provider_status values
STATUS_HIT = 'hit'
STATUS_MISS = 'miss'
STATUS_ERROR = 'error'

# EnrichedEntry.provenance values
PROVENANCE_CACHE = 'cache'
PROVENANCE_FETCHED = 'fetched'
PROVENANCE_UNAVAILABLE = 'unavailable'
