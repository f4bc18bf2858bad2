"""Authoritative in-process Python API for the outbound list service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping

from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import Envelope, EnvelopeMeta
from services.action.event_publisher.service import EventPublisher
from services.state.entity_store.domain import ViewInfo
from services.state.entity_store.interfaces import EntityStore
from services.state.outbound_list.domain import (
    DialListEntry,
    DialListMaster,
    DialListMasterRetirement,
)


class OutboundListService(ABC):
    """Public API for dial-list masters and their entries."""

    @abstractmethod
    def create_dial_list_master(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialListMaster]:
        """Create one master together with its entry view."""

    @abstractmethod
    def get_dial_list_master(
        self, *, meta: EnvelopeMeta, dlma_id: str, include_retired: bool = False
    ) -> Envelope[DialListMaster]:
        """Read one master."""

    @abstractmethod
    def list_dial_list_masters(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[DialListMaster]]:
        """List live masters, oldest first."""

    @abstractmethod
    def update_dial_list_master(
        self,
        *,
        meta: EnvelopeMeta,
        dlma_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialListMaster]:
        """Merge caller fields into one live master."""

    @abstractmethod
    def delete_dial_list_master(
        self, *, meta: EnvelopeMeta, dlma_id: str, force: bool = False
    ) -> Envelope[DialListMasterRetirement]:
        """Retire one master; ``force`` retires its live entries first."""

    @abstractmethod
    def create_dial_list_entry(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialListEntry]:
        """Create one entry under a live master."""

    @abstractmethod
    def get_dial_list_entry(
        self, *, meta: EnvelopeMeta, entry_id: str, include_retired: bool = False
    ) -> Envelope[DialListEntry]:
        """Read one entry."""

    @abstractmethod
    def list_dial_list_entries(
        self, *, meta: EnvelopeMeta, dlma_id: str, include_retired: bool = False
    ) -> Envelope[list[DialListEntry]]:
        """List one master's entries through its view."""

    @abstractmethod
    def update_dial_list_entry(
        self,
        *,
        meta: EnvelopeMeta,
        entry_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialListEntry]:
        """Merge caller fields into one live entry."""

    @abstractmethod
    def delete_dial_list_entry(
        self, *, meta: EnvelopeMeta, entry_id: str
    ) -> Envelope[DialListEntry]:
        """Retire one entry."""

    @abstractmethod
    def list_views(self, *, meta: EnvelopeMeta) -> Envelope[list[ViewInfo]]:
        """Discover existing master views."""

    @abstractmethod
    def rebuild_views(self, *, meta: EnvelopeMeta) -> Envelope[list[ViewInfo]]:
        """Recreate views missing for live masters."""


def build_outbound_list_service(
    *,
    settings: PbxSettings,
    store: EntityStore,
    publisher: EventPublisher,
) -> OutboundListService:
    """Build the default outbound list implementation."""
    from services.state.outbound_list.config import resolve_outbound_list_settings
    from services.state.outbound_list.implementation import (
        DefaultOutboundListService,
    )

    return DefaultOutboundListService(
        settings=resolve_outbound_list_settings(settings),
        store=store,
        publisher=publisher,
    )
