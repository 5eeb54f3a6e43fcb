"""
Access Filter - Read-time visibility of searchable entities.

``visible`` is the single visibility predicate: search uses it to drop
candidates before they are scored, and callers use the same function for
direct single-entity checks. A dropped candidate is routine, not an error,
and is never logged individually.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel

from hybridrag.domains.entities import Embeddable

if TYPE_CHECKING:
    from hybridrag.adapters.sqlite import SQLiteRepository

logger = logging.getLogger(__name__)

__all__ = [
    "AccessFilter",
    "Membership",
    "MembershipStatus",
    "Principal",
    "PrincipalDirectory",
    "visible",
]

E = TypeVar("E", bound=Embeddable)


class MembershipStatus(str, Enum):
    """Tenant membership status. Only ACTIVE grants access."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REVOKED = "revoked"


class Membership(BaseModel):
    """A principal's membership record in one tenant."""

    tenant_id: str
    status: MembershipStatus = MembershipStatus.ACTIVE
    role: str = "member"

    model_config = {"frozen": True}


class Principal(BaseModel):
    """The requesting identity. ``id`` is None for anonymous callers."""

    id: str | None = None
    memberships: tuple[Membership, ...] = ()

    model_config = {"frozen": True}

    @classmethod
    def anonymous(cls) -> Principal:
        return cls()

    @property
    def is_anonymous(self) -> bool:
        return self.id is None

    def owns(self, entity: Embeddable) -> bool:
        return self.id is not None and entity.access.owner_id == self.id

    def collaborates_on(self, entity: Embeddable) -> bool:
        return self.id is not None and self.id in entity.access.collaborator_ids

    def is_active_member_of(self, tenant_id: str) -> bool:
        return any(
            m.tenant_id == tenant_id and m.status == MembershipStatus.ACTIVE
            for m in self.memberships
        )


def visible(entity: Embeddable, principal: Principal) -> bool:
    """
    Whether ``principal`` may see ``entity``.

    Visible if the entity is public (read or write), owned by the principal,
    shared with the principal as a collaborator, or scoped to a tenant in
    which the principal holds an *active* membership.
    """
    access = entity.access
    if access.visibility.is_public:
        return True
    if principal.owns(entity) or principal.collaborates_on(entity):
        return True
    return access.tenant_id is not None and principal.is_active_member_of(access.tenant_id)


class AccessFilter:
    """
    Applies ``visible`` to candidate sets.

    Example:
        >>> access = AccessFilter()
        >>> shown = access.apply(candidates, principal)
    """

    def apply(self, candidates: Iterable[E], principal: Principal) -> list[E]:
        """Keep only candidates the principal may see, preserving order."""
        candidates = list(candidates)
        kept = [entity for entity in candidates if visible(entity, principal)]
        if len(kept) != len(candidates):
            logger.debug("Access filter kept %d of %d candidates", len(kept), len(candidates))
        return kept

    def check(self, entity: Embeddable, principal: Principal) -> bool:
        """Single-entity visibility check."""
        return visible(entity, principal)


class PrincipalDirectory:
    """
    Resolves principal ids to principals with their tenant memberships.

    Authentication is external; callers pass an already-authenticated id.
    """

    def __init__(self, store: SQLiteRepository) -> None:
        self._store = store

    async def load(self, principal_id: str | None) -> Principal:
        if not principal_id:
            return Principal.anonymous()
        rows = await self._store.get_memberships(principal_id)
        return Principal(
            id=principal_id,
            memberships=tuple(
                Membership(
                    tenant_id=row["tenant_id"],
                    status=MembershipStatus(row["status"]),
                    role=row["role"],
                )
                for row in rows
            ),
        )

    async def set_membership(
        self,
        principal_id: str,
        tenant_id: str,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        role: str = "member",
    ) -> None:
        async with self._store.transaction() as tx:
            await tx.upsert_membership(principal_id, tenant_id, status.value, role)
