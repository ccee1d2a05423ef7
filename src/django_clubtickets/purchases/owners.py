"""Cart owner identity.

A cart belongs to exactly one of an authenticated user or an anonymous
session. Services receive the owner explicitly instead of branching on
``user_id``/``session_key`` pairs.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Authenticated:
    """A signed-in user, identified by primary key."""

    user_id: int


@dataclass(frozen=True)
class Anonymous:
    """An anonymous visitor, identified by session key."""

    session_key: str

    def __post_init__(self) -> None:
        if not self.session_key:
            raise ValueError("Anonymous owner requires a non-empty session key")


Owner = Authenticated | Anonymous


def owner_from_ids(user_id: int | None = None, session_key: str | None = None) -> Owner | None:
    """Build an owner from whatever the identity layer resolved.

    An authenticated user always wins over a session key. Returns ``None``
    when neither is present so callers can report a missing identity.
    """
    if user_id is not None:
        return Authenticated(user_id=user_id)
    if session_key:
        return Anonymous(session_key=session_key)
    return None


def owner_filter(owner: Owner, *, prefix: str = "") -> dict[str, object]:
    """Return ORM filter kwargs selecting rows owned by *owner*."""
    match owner:
        case Authenticated(user_id=user_id):
            return {f"{prefix}user_id": user_id}
        case Anonymous(session_key=session_key):
            return {f"{prefix}session_key": session_key}
    raise TypeError(f"Unsupported owner: {owner!r}")
