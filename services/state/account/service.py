"""Authoritative in-process Python API for the account service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping

from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import Envelope, EnvelopeMeta
from resources.adapters.pbx.adapter import PbxAdapter
from services.action.event_publisher.service import EventPublisher
from services.state.account.domain import (
    Contact,
    Permission,
    UserInfo,
    UserRetirement,
)
from services.state.entity_store.interfaces import EntityStore


class AccountService(ABC):
    """Public API for manager users, permissions and contacts."""

    @abstractmethod
    def create_user(
        self, *, meta: EnvelopeMeta, payload: Mapping[str, Any]
    ) -> Envelope[UserInfo]:
        """Provision an endpoint and create a user with its permissions."""

    @abstractmethod
    def get_user(
        self, *, meta: EnvelopeMeta, user_id: str, include_retired: bool = False
    ) -> Envelope[UserInfo]:
        """Read one user with live permissions."""

    @abstractmethod
    def list_users(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[UserInfo]]:
        """List live users, oldest first."""

    @abstractmethod
    def update_user(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[UserInfo]:
        """Change name/password/context, replace permissions, sync the endpoint."""

    @abstractmethod
    def delete_user(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[UserRetirement]:
        """Remove the user's endpoints, then retire contacts, permissions and user."""

    @abstractmethod
    def add_permission(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[Permission]:
        """Grant one permission to a live user."""

    @abstractmethod
    def get_permission(
        self, *, meta: EnvelopeMeta, permission_id: str
    ) -> Envelope[Permission]:
        """Read one live permission row."""

    @abstractmethod
    def list_permissions(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[list[Permission]]:
        """List one user's live permissions."""

    @abstractmethod
    def remove_permission(
        self, *, meta: EnvelopeMeta, permission_id: str
    ) -> Envelope[Permission]:
        """Retire one permission row."""

    @abstractmethod
    def create_contact(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[Contact]:
        """Attach an existing PBX endpoint to a live user."""

    @abstractmethod
    def get_contact(
        self, *, meta: EnvelopeMeta, contact_id: str
    ) -> Envelope[Contact]:
        """Read one live contact."""

    @abstractmethod
    def list_contacts(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[list[Contact]]:
        """List one user's live contacts."""

    @abstractmethod
    def delete_contact(
        self, *, meta: EnvelopeMeta, contact_id: str
    ) -> Envelope[Contact]:
        """Retire one contact."""

    @abstractmethod
    def ensure_bootstrap_admin(self, *, meta: EnvelopeMeta) -> Envelope[UserInfo]:
        """Create the configured administrator unless a live one exists."""


def build_account_service(
    *,
    settings: PbxSettings,
    store: EntityStore,
    publisher: EventPublisher,
    pbx: PbxAdapter,
) -> AccountService:
    """Build the default account implementation."""
    from services.state.account.config import resolve_account_settings
    from services.state.account.implementation import DefaultAccountService

    return DefaultAccountService(
        settings=resolve_account_settings(settings),
        store=store,
        publisher=publisher,
        pbx=pbx,
    )
