"""Infrastructure adapters: configuration, logging and storage."""

from catalog_core.infrastructure.config import Settings, settings
from catalog_core.infrastructure.logging_config import configure_logging
from catalog_core.infrastructure.storage import InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "Settings",
    "configure_logging",
    "settings",
]
