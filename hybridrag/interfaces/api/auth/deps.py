"""
Principal Dependencies - Resolve the requesting principal.

Authentication happens upstream (gateway or session layer), which forwards
the authenticated principal id in the X-Principal-ID header. Requests
without it are anonymous and see public content only.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from hybridrag.domains.search import Principal, PrincipalDirectory
from hybridrag.interfaces.api.deps import get_principal_directory


async def get_principal(
    x_principal_id: Optional[str] = Header(None),
    directory: PrincipalDirectory = Depends(get_principal_directory),
) -> Principal:
    """
    Load the principal named by X-Principal-ID with its tenant memberships.

    Returns:
        The principal, or an anonymous principal when the header is absent
    """
    principal_id = (x_principal_id or "").strip()
    if not principal_id:
        return Principal.anonymous()
    return await directory.load(principal_id)
