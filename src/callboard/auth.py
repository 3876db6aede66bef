"""auth.py — Who is asking, and may they do this?

The board only needs two questions answered, so authentication is a
small protocol. TokenAuthenticator answers them from a static token
table (CALLBOARD_ADMIN_TOKENS); anything with the same two methods can
stand in for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"

# Actions a plain admin may not perform
SUPERADMIN_ONLY = frozenset({"logs.clear", "system.reset"})

BOARD_ACTIONS = frozenset({
    "number.change",
    "number.set",
    "passed.add",
    "passed.remove",
    "passed.clear",
    "featured.add",
    "featured.remove",
    "featured.clear",
    "settings.sound",
    "settings.public",
    "logs.read",
}) | SUPERADMIN_ONLY


@dataclass(frozen=True)
class Identity:
    name: str
    role: str


class Authenticator(Protocol):
    def authenticate(self, credentials: Any) -> Identity | None:
        """Identity for these credentials, or None if they're not valid."""
        ...

    def authorize(self, identity: Identity, action: str) -> bool:
        """Whether identity may perform action."""
        ...


class TokenAuthenticator:
    """Bearer tokens mapped to identities.

    Usage:
        auth = TokenAuthenticator({"s3cret": ("alice", "superadmin")})
        who = auth.authenticate("s3cret")
        auth.authorize(who, "system.reset")  # True
    """

    def __init__(self, tokens: dict[str, tuple[str, str]] | None = None):
        self._tokens = {
            token: Identity(name=name, role=role)
            for token, (name, role) in (tokens or {}).items()
        }

    def __len__(self) -> int:
        return len(self._tokens)

    def authenticate(self, credentials: Any) -> Identity | None:
        if not isinstance(credentials, str) or not credentials:
            return None
        return self._tokens.get(credentials)

    def authorize(self, identity: Identity, action: str) -> bool:
        if action not in BOARD_ACTIONS:
            return False
        if identity.role == ROLE_SUPERADMIN:
            return True
        if identity.role == ROLE_ADMIN:
            return action not in SUPERADMIN_ONLY
        return False
