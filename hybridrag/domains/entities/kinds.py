"""
Entity Kinds - Per-type behaviour of the searchable entity union.

Each EntityType has exactly one EntityKind describing how its embedding text
is derived, how it is labelled and titled for display, and where it lives.
Adding a new searchable type means adding an EntityType member and a kind here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .models import EntityType, SearchableEntity

__all__ = ["EntityKind", "ENTITY_KINDS", "compute_embedding_text", "kind_for"]


def _join_fields(*fields: str | None) -> str:
    return "\n".join(f.strip() for f in fields if f and f.strip())


@dataclass(frozen=True)
class EntityKind:
    """How one entity type participates in embedding, search and citation."""

    entity_type: EntityType
    label: str
    embedding_fields: Callable[[str, str], str]
    display_title: Callable[[SearchableEntity], str]
    locator: Callable[[SearchableEntity], str]
    parent_types: tuple[EntityType, ...] = ()

    def embedding_text(self, title: str, body: str) -> str:
        """Deterministic embedding text from the current field values."""
        return self.embedding_fields(title, body)


def _item_title(entity: SearchableEntity) -> str:
    if entity.parent_title:
        return f"{entity.title} (in {entity.parent_title})"
    return entity.title


def _comment_locator(entity: SearchableEntity) -> str:
    return f"/lists/{entity.root_id}#comment-{entity.id}"


ENTITY_KINDS: dict[EntityType, EntityKind] = {
    EntityType.LIST: EntityKind(
        entity_type=EntityType.LIST,
        label="List",
        embedding_fields=lambda title, body: _join_fields(title, body),
        display_title=lambda e: e.title,
        locator=lambda e: f"/lists/{e.id}",
    ),
    EntityType.LIST_ITEM: EntityKind(
        entity_type=EntityType.LIST_ITEM,
        label="Item",
        embedding_fields=lambda title, body: _join_fields(title, body),
        display_title=_item_title,
        locator=lambda e: f"/lists/{e.parent_id}/items/{e.id}",
        parent_types=(EntityType.LIST,),
    ),
    EntityType.COMMENT: EntityKind(
        entity_type=EntityType.COMMENT,
        label="Comment",
        embedding_fields=lambda title, body: _join_fields(body),
        display_title=lambda e: f"Comment by {e.owner_id}",
        locator=_comment_locator,
        parent_types=(EntityType.LIST, EntityType.LIST_ITEM),
    ),
    EntityType.TAG: EntityKind(
        entity_type=EntityType.TAG,
        label="Tag",
        embedding_fields=lambda title, body: _join_fields(title),
        display_title=lambda e: e.title,
        locator=lambda e: f"/tags/{e.id}",
    ),
}


def kind_for(entity_type: EntityType | str) -> EntityKind:
    """Look up the kind for an entity type."""
    return ENTITY_KINDS[EntityType(entity_type)]


def compute_embedding_text(entity_type: EntityType | str, title: str, body: str) -> str:
    """Embedding text an entity of ``entity_type`` would have with these fields."""
    return kind_for(entity_type).embedding_text(title, body)
