#!/usr/bin/env python3
"""
Configuration loading

YAML file merged over DEFAULT_CONFIG. Example config.yaml:

    log_path: ~/.local/share/vlc/.goo_watch_log.txt
    cache_path: null            # defaults to .goo_cache.json beside the log
    tmdb_api_key: null          # or set TMDB_API_KEY
    max_workers: 4
    request_timeout: 10
    refresh_after_days: null    # re-check cached titles older than this
    poster_size: w342
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from watchlog.constants import (
    API_KEY_ENV, DEFAULT_MAX_WORKERS, DEFAULT_POSTER_SIZE, DEFAULT_REQUEST_TIMEOUT,
)
from watchlog.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'log_path': None,
    'cache_path': None,
    'tmdb_api_key': None,
    'max_workers': DEFAULT_MAX_WORKERS,
    'request_timeout': DEFAULT_REQUEST_TIMEOUT,
    'refresh_after_days': None,
    'poster_size': DEFAULT_POSTER_SIZE,
}


def load_config(config_path: Optional[Path]) -> dict:
    """Load configuration from YAML file, falling back to defaults"""
    config = dict(DEFAULT_CONFIG)
    if config_path is None:
        return config

    config_path = Path(config_path).expanduser()
    if not config_path.exists():
        logger.debug(f"No config file at {config_path}, using defaults")
        return config

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {e}") from e

    if loaded is None:
        return config
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    unknown = set(loaded) - set(DEFAULT_CONFIG)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
    config.update({k: v for k, v in loaded.items() if k in DEFAULT_CONFIG})

    for key in ('max_workers', 'request_timeout'):
        if not isinstance(config[key], (int, float)) or config[key] <= 0:
            raise ConfigError(f"{key} must be a positive number, got {config[key]!r}")
    if config['refresh_after_days'] is not None and not isinstance(config['refresh_after_days'], int):
        raise ConfigError("refresh_after_days must be an integer or null")

    return config


def normalize_key(value: Optional[str]) -> Optional[str]:
    """Trimmed API key, or None when blank"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_api_key(config: dict) -> Optional[str]:
    """Configured TMDb key, else the TMDB_API_KEY environment variable"""
    return normalize_key(config.get('tmdb_api_key')) or normalize_key(os.environ.get(API_KEY_ENV))
