"""
Authentication - Principal resolution for API requests.

Flow:
    Upstream auth: verify credentials → forward X-Principal-ID
    Backend: load memberships → Principal for the access filter
"""

from .deps import get_principal

__all__ = ["get_principal"]
