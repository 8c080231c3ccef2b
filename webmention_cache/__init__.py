from __future__ import annotations

from .config import build_options, load_options
from .config_schema import AllowedHTML, SyncOptions
from .errors import (
    ConfigError,
    FeedContractError,
    MalformedRecordError,
    StorageError,
    TransportError,
)
from .mention import Mention
from .pipeline import MentionPipeline
from .sync import SyncResult, retrieve_mentions

__all__ = [
    "AllowedHTML",
    "ConfigError",
    "FeedContractError",
    "MalformedRecordError",
    "Mention",
    "MentionPipeline",
    "StorageError",
    "SyncOptions",
    "SyncResult",
    "TransportError",
    "build_options",
    "load_options",
    "retrieve_mentions",
]
