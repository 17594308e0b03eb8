"""Services package: the engine's external collaborators."""

from mess_ledger.services.identity import (
    IdentityResolver,
    StaticIdentityResolver,
    require_member_id,
)

__all__ = [
    "IdentityResolver",
    "StaticIdentityResolver",
    "require_member_id",
]
