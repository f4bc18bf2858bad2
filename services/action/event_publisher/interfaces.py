"""Subscriber protocol for change-event fan-out."""

from __future__ import annotations

from typing import Protocol

from services.action.event_publisher.domain import ChangeEvent


class Subscriber(Protocol):
    """Receives every published event; raising marks the delivery failed."""

    name: str

    def deliver(self, event: ChangeEvent) -> None:
        """Handle one event."""
