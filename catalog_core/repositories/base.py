"""Base repository over the key-value store.

Each repository owns one collection, stored as a JSON array of entity
dictionaries under `settings.storage_key(collection)`. Every mutating
call reads the whole collection, applies the change and writes it back;
that single write is the unit of persistence.

Integrity hooks:
    validate_for_creation: raises before a new entity is stored.
    validate_for_update: raises before an updated entity is stored.
    validate_for_deletion: returns blocking reasons; `delete` raises
        IntegrityViolationError when there are any.
"""

import json
from abc import ABC
from collections.abc import Callable, Iterable, Mapping
from typing import Any, ClassVar, Generic, TypeVar

import structlog

from catalog_core.domain.base import Entity
from catalog_core.domain.exceptions import (
    EntityNotFoundError,
    IntegrityViolationError,
    StorageError,
)
from catalog_core.infrastructure.config import Settings
from catalog_core.infrastructure.config import settings as default_settings
from catalog_core.infrastructure.storage import KeyValueStore

logger = structlog.get_logger()

E = TypeVar("E", bound=Entity)
R = TypeVar("R", bound="BaseRepository[Any]")


class BaseRepository(ABC, Generic[E]):
    """Validated CRUD over one entity collection.

    Subclasses set `collection`, `entity_name` and `entity_class`, and
    override the validation hooks they need.

    Example usage:
        store = InMemoryKeyValueStore()
        repo = ProductRepository(store)
        product = await repo.create({"sku": "CHAIR-001", "name": "Chair"})
    """

    collection: ClassVar[str]
    entity_name: ClassVar[str]
    entity_class: ClassVar[type[Any]]

    def __init__(self, store: KeyValueStore, settings: Settings | None = None) -> None:
        """Initialize repository with a key-value store.

        Args:
            store: Backing key-value store shared by all repositories.
            settings: Settings providing the storage key prefix.
        """
        self.store = store
        self.settings = settings or default_settings
        self.storage_key = self.settings.storage_key(self.collection)

    def _sibling(self, repository_class: type[R]) -> R:
        """Build another repository over the same store."""
        return repository_class(self.store, self.settings)

    # ========================================================================
    # Storage
    # ========================================================================

    async def _load(self, operation: str) -> list[E]:
        try:
            raw = await self.store.get(self.storage_key)
        except Exception as exc:
            raise StorageError(
                f"Failed to read {self.entity_name} collection", operation, exc
            ) from exc
        if raw is None:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(
                f"Corrupted {self.entity_name} collection under '{self.storage_key}'",
                operation,
                exc,
            ) from exc
        return [self.entity_class.from_json(record) for record in records]

    async def _save(self, entities: Iterable[E], operation: str) -> None:
        payload = json.dumps([entity.to_json() for entity in entities])
        try:
            await self.store.set(self.storage_key, payload)
        except Exception as exc:
            raise StorageError(
                f"Failed to write {self.entity_name} collection", operation, exc
            ) from exc

    # ========================================================================
    # Queries
    # ========================================================================

    async def find_all(self) -> list[E]:
        """Get all entities in storage order (creation order)."""
        return await self._load("find_all")

    async def find_by_id(self, entity_id: str) -> E | None:
        """Find an entity by identity.

        Args:
            entity_id: Entity identity.

        Returns:
            Entity if found, None otherwise.
        """
        return await self.find_first(lambda entity: entity.identity == entity_id)

    async def get(self, entity_id: str) -> E:
        """Get an entity by identity.

        Args:
            entity_id: Entity identity.

        Returns:
            The entity.

        Raises:
            EntityNotFoundError: If no entity has this identity.
        """
        entity = await self.find_by_id(entity_id)
        if entity is None:
            raise EntityNotFoundError(self.entity_name, entity_id)
        return entity

    async def exists(self, entity_id: str) -> bool:
        return await self.find_by_id(entity_id) is not None

    async def count(self) -> int:
        return len(await self.find_all())

    async def find_where(self, predicate: Callable[[E], bool]) -> list[E]:
        """Get all entities matching a predicate."""
        return [entity for entity in await self.find_all() if predicate(entity)]

    async def find_first(self, predicate: Callable[[E], bool]) -> E | None:
        """Get the first entity matching a predicate."""
        return next((entity for entity in await self.find_all() if predicate(entity)), None)

    async def search(self, query: str) -> list[E]:
        """Search entities by free text.

        Subclasses decide which fields are searched; an empty query
        returns everything.
        """
        return await self.find_all()

    # ========================================================================
    # Validation Hooks
    # ========================================================================

    async def validate_for_creation(self, entity: E) -> None:
        """Check integrity rules for a new entity.

        Raises:
            IntegrityViolationError: If the entity cannot be stored.
        """

    async def validate_for_update(self, existing: E, updated: E) -> None:
        """Check integrity rules for an updated entity.

        Raises:
            IntegrityViolationError: If the update cannot be stored.
        """

    async def validate_for_deletion(self, entity_id: str) -> list[str]:
        """Get the reasons an entity cannot be deleted.

        Returns:
            Blocking reasons, empty when deletion is allowed.

        Raises:
            EntityNotFoundError: If the entity does not exist.
        """
        await self.get(entity_id)
        return []

    # ========================================================================
    # Mutations
    # ========================================================================

    def _build(self, data: Mapping[str, Any]) -> E:
        return self.entity_class.try_create(data).unwrap()

    async def create(self, data: Mapping[str, Any]) -> E:
        """Validate and store a new entity.

        Args:
            data: Creation data for the entity factory.

        Returns:
            The stored entity.

        Raises:
            ValidationError: If the data is invalid.
            IntegrityViolationError: If an integrity rule is violated.
        """
        entity = self._build(data)
        await self.validate_for_creation(entity)
        return await self.insert(entity)

    async def insert(self, entity: E) -> E:
        """Store an already validated entity.

        Raises:
            IntegrityViolationError: If the identity is already taken.
        """
        entities = await self._load("create")
        if any(existing.identity == entity.identity for existing in entities):
            raise IntegrityViolationError(
                [f"{self.entity_name} with ID {entity.identity} already exists"],
                self.entity_name,
            )
        entities.append(entity)
        await self._save(entities, "create")
        logger.debug("Entity created", entity_type=self.entity_name, entity_id=entity.identity)
        return entity

    async def update(self, entity_id: str, changes: Mapping[str, Any]) -> E:
        """Apply changes to an entity and store the new value.

        Args:
            entity_id: Entity identity.
            changes: Fields to change.

        Returns:
            The updated entity.

        Raises:
            EntityNotFoundError: If the entity does not exist.
            ValidationError: If the changes are invalid.
            IntegrityViolationError: If an integrity rule is violated.
        """
        existing = await self.get(entity_id)
        updated = existing.update(**changes)
        await self.validate_for_update(existing, updated)
        return await self.replace(updated)

    async def replace(self, entity: E) -> E:
        """Overwrite the stored entity having the same identity.

        Raises:
            EntityNotFoundError: If the entity does not exist.
        """
        entities = await self._load("update")
        for index, existing in enumerate(entities):
            if existing.identity == entity.identity:
                entities[index] = entity
                break
        else:
            raise EntityNotFoundError(self.entity_name, entity.identity)
        await self._save(entities, "update")
        logger.debug("Entity updated", entity_type=self.entity_name, entity_id=entity.identity)
        return entity

    async def delete(self, entity_id: str) -> None:
        """Delete an entity after checking it is not referenced.

        Args:
            entity_id: Entity identity.

        Raises:
            EntityNotFoundError: If the entity does not exist.
            IntegrityViolationError: If other records still depend on it.
        """
        reasons = await self.validate_for_deletion(entity_id)
        if reasons:
            logger.warning(
                "Deletion blocked",
                entity_type=self.entity_name,
                entity_id=entity_id,
                reasons=reasons,
            )
            raise IntegrityViolationError(reasons, self.entity_name)
        await self.remove(entity_id)

    async def remove(self, entity_id: str) -> None:
        """Remove an entity without running deletion hooks.

        Raises:
            EntityNotFoundError: If the entity does not exist.
        """
        entities = await self._load("delete")
        remaining = [entity for entity in entities if entity.identity != entity_id]
        if len(remaining) == len(entities):
            raise EntityNotFoundError(self.entity_name, entity_id)
        await self._save(remaining, "delete")
        logger.debug("Entity deleted", entity_type=self.entity_name, entity_id=entity_id)

    async def create_many(self, data_list: Iterable[Mapping[str, Any]]) -> list[E]:
        """Validate and store several entities, one at a time.

        Creation stops at the first failure; entities created before it
        remain stored.
        """
        return [await self.create(data) for data in data_list]

    async def delete_many(self, entity_ids: Iterable[str]) -> None:
        """Delete several entities in a single write.

        Raises:
            EntityNotFoundError: If any ID does not exist; nothing is deleted.
        """
        ids = set(entity_ids)
        entities = await self._load("delete_many")
        missing = ids - {entity.identity for entity in entities}
        if missing:
            raise EntityNotFoundError(self.entity_name, ", ".join(sorted(missing)))
        await self._save(
            [entity for entity in entities if entity.identity not in ids], "delete_many"
        )

    async def clear(self) -> None:
        """Delete every entity of this collection."""
        await self._save([], "clear")
