"""Identity resolver backed by configured operator tokens."""

from __future__ import annotations

import hmac

from services.control.gateway.config import StaticToken
from services.control.gateway.domain import Identity
from services.control.gateway.interfaces import IdentityResolver


class StaticIdentityResolver(IdentityResolver):
    """Compares tokens in constant time against a fixed list."""

    def __init__(self, tokens: list[StaticToken]) -> None:
        self._tokens = [
            (
                item.token.encode("utf-8"),
                Identity(principal=item.principal, permissions=frozenset(item.permissions)),
            )
            for item in tokens
        ]

    def resolve(self, token: str) -> Identity | None:
        candidate = token.encode("utf-8")
        found: Identity | None = None
        for secret, identity in self._tokens:
            if hmac.compare_digest(secret, candidate):
                found = identity
        return found
