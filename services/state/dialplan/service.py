"""Authoritative in-process Python API for the dialplan service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping

from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import Envelope, EnvelopeMeta
from services.action.event_publisher.service import EventPublisher
from services.state.dialplan.domain import (
    DialplanMaster,
    DialplanMasterRetirement,
    DialplanStep,
)
from services.state.entity_store.interfaces import EntityStore


class DialplanService(ABC):
    """Public API for dialplan masters and their ordered steps."""

    @abstractmethod
    def create_dialplan_master(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialplanMaster]:
        """Create one dialplan master."""

    @abstractmethod
    def get_dialplan_master(
        self, *, meta: EnvelopeMeta, dpma_id: str, include_retired: bool = False
    ) -> Envelope[DialplanMaster]:
        """Read one master."""

    @abstractmethod
    def list_dialplan_masters(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[DialplanMaster]]:
        """List live masters, oldest first."""

    @abstractmethod
    def update_dialplan_master(
        self,
        *,
        meta: EnvelopeMeta,
        dpma_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialplanMaster]:
        """Merge caller fields into one live master."""

    @abstractmethod
    def delete_dialplan_master(
        self, *, meta: EnvelopeMeta, dpma_id: str, force: bool = False
    ) -> Envelope[DialplanMasterRetirement]:
        """Retire one master; ``force`` retires its live steps first."""

    @abstractmethod
    def create_dialplan_step(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialplanStep]:
        """Create one step at a free sequence under a live master."""

    @abstractmethod
    def get_dialplan_step(
        self, *, meta: EnvelopeMeta, step_id: str, include_retired: bool = False
    ) -> Envelope[DialplanStep]:
        """Read one step."""

    @abstractmethod
    def list_dialplan_steps(
        self, *, meta: EnvelopeMeta, dpma_id: str, include_retired: bool = False
    ) -> Envelope[list[DialplanStep]]:
        """List one master's steps ordered by sequence."""

    @abstractmethod
    def update_dialplan_step(
        self,
        *,
        meta: EnvelopeMeta,
        step_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialplanStep]:
        """Merge caller fields into one live step."""

    @abstractmethod
    def delete_dialplan_step(
        self, *, meta: EnvelopeMeta, step_id: str
    ) -> Envelope[DialplanStep]:
        """Retire one step."""


def build_dialplan_service(
    *,
    settings: PbxSettings,
    store: EntityStore,
    publisher: EventPublisher,
) -> DialplanService:
    """Build the default dialplan implementation."""
    from services.state.dialplan.config import resolve_dialplan_settings
    from services.state.dialplan.implementation import DefaultDialplanService

    return DefaultDialplanService(
        settings=resolve_dialplan_settings(settings),
        store=store,
        publisher=publisher,
    )
