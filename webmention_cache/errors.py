from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when sync options are missing or invalid."""


class TransportError(RuntimeError):
    """Raised when a feed request fails or returns a non-success status."""


class FeedContractError(RuntimeError):
    """Raised when a feed response does not carry the configured record key."""


class MalformedRecordError(RuntimeError):
    """Raised when a mention cannot be grouped because it has no target URL."""


class StorageError(RuntimeError):
    """Raised when reading or writing the SQLite asset cache fails."""
