"""
Actor Identity Resolution

Authentication lives outside the engine. The engine only ever sees an
opaque actor identity (e.g. a login email) and asks a resolver which
roster member that actor is.
"""

from typing import Optional, Protocol

from mess_ledger.errors import NotFoundError


class IdentityResolver(Protocol):
    """Maps an authenticated actor identity to a member id."""

    def resolve(self, actor: str) -> Optional[int]:
        ...


class StaticIdentityResolver:
    """Resolver backed by a fixed mapping from configuration."""

    def __init__(self, identities: dict[str, int]):
        self._identities = {
            actor.strip().lower(): member_id
            for actor, member_id in identities.items()
        }

    def resolve(self, actor: str) -> Optional[int]:
        if not actor:
            return None
        return self._identities.get(actor.strip().lower())


def require_member_id(resolver: IdentityResolver, actor: str) -> int:
    """Resolve an actor, raising NotFoundError if it maps to no member."""
    member_id = resolver.resolve(actor)
    if member_id is None:
        raise NotFoundError(f"No member is mapped to actor: {actor!r}")
    return member_id
