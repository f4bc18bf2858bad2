"""Identity lookup consumed by the gateway."""

from __future__ import annotations

from typing import Protocol

from services.control.gateway.domain import Identity


class IdentityResolver(Protocol):
    """Maps a bearer token to the caller's identity."""

    def resolve(self, token: str) -> Identity | None:
        """Return the identity behind ``token`` or ``None`` when unknown."""
