"""Authoritative in-process Python API for the trunk service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping

from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import Envelope, EnvelopeMeta
from resources.adapters.pbx.adapter import PbxAdapter
from services.action.event_publisher.service import EventPublisher
from services.state.entity_store.interfaces import EntityStore
from services.state.trunk.domain import TrunkInfo


class TrunkService(ABC):
    """Public API for PBX trunks."""

    @abstractmethod
    def create_trunk(
        self, *, meta: EnvelopeMeta, payload: Mapping[str, Any]
    ) -> Envelope[TrunkInfo]:
        """Provision a trunk on the PBX and persist it."""

    @abstractmethod
    def get_trunk(
        self, *, meta: EnvelopeMeta, trunk_id: str, include_retired: bool = False
    ) -> Envelope[TrunkInfo]:
        """Read one trunk."""

    @abstractmethod
    def list_trunks(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[TrunkInfo]]:
        """List live trunks, oldest first."""

    @abstractmethod
    def update_trunk(
        self,
        *,
        meta: EnvelopeMeta,
        trunk_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[TrunkInfo]:
        """Persist new settings, then push them to the PBX."""

    @abstractmethod
    def delete_trunk(self, *, meta: EnvelopeMeta, trunk_id: str) -> Envelope[TrunkInfo]:
        """Remove the trunk from the PBX and retire it."""


def build_trunk_service(
    *,
    settings: PbxSettings,
    store: EntityStore,
    publisher: EventPublisher,
    pbx: PbxAdapter,
) -> TrunkService:
    """Build the default trunk implementation."""
    from services.state.trunk.config import resolve_trunk_settings
    from services.state.trunk.implementation import DefaultTrunkService

    return DefaultTrunkService(
        settings=resolve_trunk_settings(settings),
        store=store,
        publisher=publisher,
        pbx=pbx,
    )
