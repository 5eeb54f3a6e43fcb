"""
Entity Service - Every write path for searchable entities.

Each mutation runs in one store transaction. Writes that change the text an
entity embeds call ``mark_stale`` inside that same transaction, which flags
the vector as outdated and publishes an embedding work item to the outbox.
Generation itself happens later, in the embedding worker.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from hybridrag.adapters.sqlite import StoreTransaction
from hybridrag.config import EntityNotFoundError, ErrorCode, HybridRAGError

from .kinds import kind_for
from .models import EntityRef, EntityType, SearchableEntity, Visibility
from .staleness import requires_regeneration

if TYPE_CHECKING:
    from hybridrag.adapters.sqlite import SQLiteRepository

    from .repository import EntityTypeRepository

logger = logging.getLogger(__name__)

__all__ = ["EntityService"]


class EntityService:
    """
    Create, update and delete searchable entities.

    Example:
        >>> service = EntityService(store, repositories)
        >>> plan = await service.create(EntityType.LIST, "u1", "Quarterly Plan", tenant_id="acme")
        >>> await service.update_content(plan.ref, body="Targets for Q3")
    """

    def __init__(
        self,
        store: SQLiteRepository,
        repositories: Mapping[EntityType, EntityTypeRepository] | None = None,
    ) -> None:
        self._store = store
        self._repositories = dict(repositories or {})

    async def get(self, ref: EntityRef) -> SearchableEntity:
        row = await self._store.get_entity(ref.entity_id)
        if row is None or row["entity_type"] != ref.entity_type.value:
            raise EntityNotFoundError(f"Entity not found: {ref}")
        return SearchableEntity.from_row(row)

    async def create(
        self,
        entity_type: EntityType,
        owner_id: str,
        title: str,
        body: str = "",
        visibility: Visibility = Visibility.PRIVATE,
        tenant_id: str | None = None,
        parent: EntityRef | None = None,
    ) -> SearchableEntity:
        """
        Create an entity with no vector, stale, and queued for embedding.

        Items and comments inherit tenant and visibility from their list;
        the ``visibility``/``tenant_id`` arguments only apply to lists and tags.
        """
        kind = kind_for(entity_type)
        if parent is None and kind.parent_types:
            raise HybridRAGError(
                ErrorCode.VALIDATION_ERROR,
                f"{entity_type.value} requires a parent",
                {"allowed_parents": [t.value for t in kind.parent_types]},
            )
        if parent is not None and parent.entity_type not in kind.parent_types:
            raise HybridRAGError(
                ErrorCode.VALIDATION_ERROR,
                f"{entity_type.value} cannot belong to {parent.entity_type.value}",
            )

        embedding_text = kind.embedding_text(title, body)

        async with self._store.transaction() as tx:
            root_id: int | None = None
            if parent is not None:
                parent_row = await tx.get_entity(parent.entity_id)
                if parent_row is None or parent_row["entity_type"] != parent.entity_type.value:
                    raise EntityNotFoundError(f"Parent not found: {parent}")
                root_id = parent_row["root_id"] or parent_row["id"]
                tenant_id = parent_row["tenant_id"]
                visibility = Visibility(parent_row["visibility"])

            entity_id = await tx.insert_entity(
                entity_type=entity_type.value,
                owner_id=owner_id,
                title=title,
                body=body,
                embedding_text=embedding_text,
                visibility=visibility.value,
                tenant_id=tenant_id,
                parent_id=parent.entity_id if parent else None,
                root_id=root_id,
            )
            if entity_type == EntityType.LIST:
                await tx.set_root(entity_id, entity_id)

            ref = EntityRef(entity_type=entity_type, entity_id=entity_id)
            await self.mark_stale(ref, tx)

        logger.info("Created %s", ref)
        return await self.get(ref)

    async def update_content(
        self,
        ref: EntityRef,
        title: str | None = None,
        body: str | None = None,
    ) -> SearchableEntity:
        """Change title/body; marks stale when the derived embedding text changes."""
        kind = kind_for(ref.entity_type)

        async with self._store.transaction() as tx:
            row = await tx.get_entity(ref.entity_id)
            if row is None or row["entity_type"] != ref.entity_type.value:
                raise EntityNotFoundError(f"Entity not found: {ref}")

            new_title = row["title"] if title is None else title
            new_body = row["body"] if body is None else body
            new_text = kind.embedding_text(new_title, new_body)

            await tx.update_content(ref.entity_id, new_title, new_body, new_text)
            if requires_regeneration(row["embedding_text"], new_text):
                await self.mark_stale(ref, tx)

        return await self.get(ref)

    async def mark_stale(self, ref: EntityRef, tx: StoreTransaction | None = None) -> None:
        """
        Flag an entity's vector as outdated and publish an embedding job.

        Pass the caller's transaction so the flag commits with the content
        change; without one, a transaction is opened for this call alone.
        """
        if tx is None:
            async with self._store.transaction() as own_tx:
                await self.mark_stale(ref, own_tx)
            return
        await tx.mark_stale(ref.entity_id)
        await tx.enqueue_job(ref.entity_type.value, ref.entity_id)
        logger.debug("Marked stale and enqueued %s", ref)

    async def update_access(
        self,
        ref: EntityRef,
        visibility: Visibility,
        tenant_id: str | None = None,
    ) -> int:
        """
        Set tenant/visibility on a list (cascading to its items and comments)
        or on a tag. Does not touch staleness.

        Returns:
            Number of entities updated
        """
        if kind_for(ref.entity_type).parent_types:
            raise HybridRAGError(
                ErrorCode.VALIDATION_ERROR,
                f"{ref.entity_type.value} inherits access from its list",
            )
        async with self._store.transaction() as tx:
            row = await tx.get_entity(ref.entity_id)
            if row is None or row["entity_type"] != ref.entity_type.value:
                raise EntityNotFoundError(f"Entity not found: {ref}")
            updated = await tx.update_access(ref.entity_id, tenant_id, visibility.value)
        logger.info("Access of %s set to %s (%d entities)", ref, visibility.value, updated)
        return updated

    async def add_collaborator(self, ref: EntityRef, principal_id: str, permission: str = "read") -> None:
        """Grant a principal read access to a list and everything under it."""
        if ref.entity_type != EntityType.LIST:
            raise HybridRAGError(ErrorCode.VALIDATION_ERROR, "Collaborators belong to lists")
        async with self._store.transaction() as tx:
            await tx.add_collaborator(ref.entity_id, principal_id, permission)

    async def remove_collaborator(self, ref: EntityRef, principal_id: str) -> None:
        async with self._store.transaction() as tx:
            await tx.remove_collaborator(ref.entity_id, principal_id)

    async def delete(self, ref: EntityRef) -> int:
        """
        Delete an entity and everything under it.

        Rows, lexical index entries and pending jobs go in one transaction;
        vectors are then dropped from the in-memory indexes. Search hydrates
        candidates from the store, so a vector that lingers in another
        process's index can never surface a deleted entity.

        Returns:
            Number of entities deleted
        """
        async with self._store.transaction() as tx:
            row = await tx.get_entity(ref.entity_id)
            if row is None or row["entity_type"] != ref.entity_type.value:
                raise EntityNotFoundError(f"Entity not found: {ref}")
            ids = [ref.entity_id, *await tx.descendant_ids(ref.entity_id)]
            deleted = await tx.delete_entities(ids)

        by_type: dict[EntityType, list[int]] = {}
        for entity_type, entity_id in deleted:
            by_type.setdefault(EntityType(entity_type), []).append(entity_id)
        for entity_type, entity_ids in by_type.items():
            repository = self._repositories.get(entity_type)
            if repository is not None:
                await repository.drop_vectors(entity_ids)

        logger.info("Deleted %s (%d entities)", ref, len(deleted))
        return len(deleted)
