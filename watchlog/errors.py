#!/usr/bin/env python3
"""
Exception hierarchy for the watch history pipeline

Only CacheWriteError and ConfigError escape pipeline.run(); provider errors
are caught by the enrichment layer and turned into a run-level warning.
"""


class WatchlogError(Exception):
    """Base exception for watchlog errors."""


class ConfigError(WatchlogError):
    """Configuration file exists but cannot be used."""


class CacheWriteError(WatchlogError):
    """Metadata cache could not be persisted."""


class ProviderError(WatchlogError):
    """Metadata provider rejected a request (non-auth, non-transient)."""


class ProviderUnavailableError(ProviderError):
    """Provider unreachable: timeout, connection failure, 5xx, rate limit."""


class ProviderAuthError(ProviderError):
    """API key missing or rejected by the provider."""
