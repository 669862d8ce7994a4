"""Key-value storage port.

Repositories depend on the `KeyValueStore` protocol, never on a concrete
store. Each entity collection is held as one serialized JSON array under
its own key. The store has no transactions: every `set` replaces a whole
collection and is the only suspension point of a repository call.
"""

from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger()


@runtime_checkable
class KeyValueStore(Protocol):
    """Asynchronous string key-value store."""

    async def get(self, key: str) -> str | None:
        """Get the value stored under key, or None."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    async def remove(self, key: str) -> None:
        """Remove key if present."""
        ...

    async def clear(self) -> None:
        """Remove every key."""
        ...

    async def keys(self) -> list[str]:
        """List stored keys."""
        ...


class InMemoryKeyValueStore:
    """In-memory key-value store.

    Lives as long as the process/session that owns it. Used for tests and
    single-process deployments; values are kept as serialized strings so
    the serialization contract is exercised exactly as with a real store.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Initialize store.

        Args:
            initial: Optional initial contents.
        """
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Store values must be strings, got {type(value).__name__}")
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        count = len(self._data)
        self._data.clear()
        logger.debug("Cleared key-value store", key_count=count)

    async def keys(self) -> list[str]:
        return list(self._data)

    def snapshot(self) -> dict[str, str]:
        """Get a copy of the raw contents.

        Returns:
            Mapping of key to serialized value.
        """
        return dict(self._data)
