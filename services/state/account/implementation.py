"""Concrete account service.

User creation spans the PBX and the Entity Store, so it runs as a saga:
endpoint, user row, permission rows, endpoint contact. Any failure undoes the
completed steps newest-first and nothing is announced. Events are published
only once the whole logical operation has succeeded.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel

from packages.pbx_shared.envelope import Envelope, EnvelopeMeta, failure, success
from packages.pbx_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    internal_error,
    validation_error,
)
from packages.pbx_shared.ids import generate_entity_id
from packages.pbx_shared.logging import get_logger, public_api_instrumented
from packages.pbx_shared.requests import strip_protected_fields, validate_request
from packages.pbx_shared.saga import Saga
from resources.adapters.pbx.adapter import EndpointSpec, PbxAdapter
from resources.adapters.pbx.calls import call_pbx
from services.action.event_publisher.announce import announce_change
from services.action.event_publisher.domain import MutationKind
from services.action.event_publisher.service import EventPublisher
from services.state.account.component import (
    CONTACT_CATEGORY,
    EVENT_TOPIC,
    PERMISSION_CATEGORY,
    SERVICE_COMPONENT_ID,
    USER_CATEGORY,
)
from services.state.account.config import AccountSettings
from services.state.account.domain import (
    Contact,
    Permission,
    User,
    UserInfo,
    UserRetirement,
)
from services.state.account.service import AccountService
from services.state.account.validation import (
    CreateContactRequest,
    CreateUserRequest,
    PermissionRequest,
    UpdateUserRequest,
)
from services.state.entity_store.calls import call_store
from services.state.entity_store.domain import Family, LivenessFilter
from services.state.entity_store.interfaces import EntityStore

_LOGGER = get_logger(__name__)

_ENDPOINT_CONTACT = "pjsip_endpoint"


class DefaultAccountService(AccountService):
    """Account lifecycle over the Entity Store and the PBX adapter."""

    def __init__(
        self,
        *,
        settings: AccountSettings,
        store: EntityStore,
        publisher: EventPublisher,
        pbx: PbxAdapter,
    ) -> None:
        self._settings = settings
        self._store = store
        self._publisher = publisher
        self._pbx = pbx

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_user(
        self, *, meta: EnvelopeMeta, payload: Mapping[str, Any]
    ) -> Envelope[UserInfo]:
        request, errors = validate_request(
            meta=meta, model=CreateUserRequest, payload=strip_protected_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        taken, errors = self._username_taken(request.username)
        if errors:
            return failure(meta=meta, errors=errors)
        if taken:
            return failure(
                meta=meta,
                errors=[
                    conflict_error(
                        f"username {request.username!r} already exists",
                        code=codes.ALREADY_EXISTS,
                        metadata={"field": "username"},
                    )
                ],
            )

        saga = Saga("create_user")
        endpoint_name = generate_entity_id()
        _, errors = call_pbx(
            "create_endpoint",
            lambda: self._pbx.create_endpoint(
                spec=EndpointSpec(
                    name=endpoint_name,
                    username=request.username,
                    password=request.password,
                    context=request.context,
                )
            ),
        )
        if errors:
            return failure(meta=meta, errors=errors)
        saga.record(
            "pbx_endpoint", lambda: self._pbx.delete_endpoint(name=endpoint_name)
        )

        user, errors = call_store(
            lambda: self._store.create(
                family=Family.USER,
                attributes={
                    "username": request.username,
                    "password": request.password,
                    "name": request.name,
                    "context": request.context,
                },
            )
        )
        if errors:
            return self._rolled_back(meta, saga, errors)
        assert isinstance(user, User)
        saga.record("user", self._retire_undo(Family.USER, user.id))

        permissions, errors = self._grant_all(saga, user.id, request.permissions)
        if errors:
            return self._rolled_back(meta, saga, errors)

        contact, errors = call_store(
            lambda: self._store.create(
                family=Family.CONTACT,
                attributes={
                    "user_id": user.id,
                    "type": _ENDPOINT_CONTACT,
                    "target": endpoint_name,
                },
            )
        )
        if errors:
            return self._rolled_back(meta, saga, errors)
        assert contact is not None

        info = UserInfo.from_user(user, permissions)
        self._announce(meta, USER_CATEGORY, MutationKind.CREATE, info)
        for permission in permissions:
            self._announce(meta, PERMISSION_CATEGORY, MutationKind.CREATE, permission)
        self._announce(meta, CONTACT_CATEGORY, MutationKind.CREATE, contact)
        return success(meta=meta, payload=info)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def get_user(
        self, *, meta: EnvelopeMeta, user_id: str, include_retired: bool = False
    ) -> Envelope[UserInfo]:
        user, errors = call_store(
            lambda: self._store.get(
                family=Family.USER,
                entity_id=user_id,
                liveness_filter=(
                    LivenessFilter.ANY if include_retired else LivenessFilter.ACTIVE
                ),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(user, User)
        info, errors = self._user_info(user)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=info)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def list_users(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[UserInfo]]:
        users, errors = call_store(
            lambda: self._store.list(
                family=Family.USER, limit=limit or self._settings.default_list_limit
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)

        infos: list[UserInfo] = []
        for user in users or []:
            assert isinstance(user, User)
            info, errors = self._user_info(user)
            if errors:
                return failure(meta=meta, errors=errors)
            assert info is not None
            infos.append(info)
        return success(meta=meta, payload=infos)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def update_user(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[UserInfo]:
        request, errors = validate_request(
            meta=meta, model=UpdateUserRequest, payload=strip_protected_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        current, errors = call_store(
            lambda: self._store.get(family=Family.USER, entity_id=user_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(current, User)

        changes = request.model_dump(
            exclude_unset=True, exclude={"permissions"}, exclude_none=True
        )
        saga = Saga("update_user")

        if "password" in changes or "context" in changes:
            errors = self._sync_endpoints(saga, current, changes)
            if errors:
                return self._rolled_back(meta, saga, errors)

        updated, errors = call_store(
            lambda: self._store.update(
                family=Family.USER,
                entity_id=user_id,
                attributes=changes,
                expected_updated_at=expected_updated_at,
            )
        )
        if errors:
            return self._rolled_back(meta, saga, errors)
        assert isinstance(updated, User)
        previous = {key: getattr(current, key) for key in changes}
        saga.record(
            "user",
            lambda: self._store.update(
                family=Family.USER, entity_id=user_id, attributes=previous
            ),
        )

        granted: list[Permission] = []
        revoked: list[Permission] = []
        if request.permissions is not None:
            granted, revoked, errors = self._replace_permissions(
                saga, user_id, request.permissions
            )
            if errors:
                return self._rolled_back(meta, saga, errors)

        info, errors = self._user_info(updated)
        if errors:
            return failure(meta=meta, errors=errors)
        assert info is not None
        for permission in revoked:
            self._announce(meta, PERMISSION_CATEGORY, MutationKind.DELETE, permission)
        for permission in granted:
            self._announce(meta, PERMISSION_CATEGORY, MutationKind.CREATE, permission)
        self._announce(meta, USER_CATEGORY, MutationKind.UPDATE, info)
        return success(meta=meta, payload=info)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def delete_user(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[UserRetirement]:
        user, errors = call_store(
            lambda: self._store.get(family=Family.USER, entity_id=user_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(user, User)
        contacts, errors = self._live_contacts(user_id)
        if errors:
            return failure(meta=meta, errors=errors)

        saga = Saga("delete_user")
        for contact in contacts:
            if contact.type != _ENDPOINT_CONTACT:
                continue
            _, errors = call_pbx(
                "delete_endpoint",
                lambda name=contact.target: self._pbx.delete_endpoint(name=name),
            )
            if errors:
                return self._rolled_back(meta, saga, errors)
            spec = EndpointSpec(
                name=contact.target,
                username=user.username,
                password=user.password,
                context=user.context,
            )
            saga.record(
                f"pbx_endpoint:{contact.target}",
                lambda spec=spec: self._pbx.create_endpoint(spec=spec),
            )

        cascade, errors = call_store(
            lambda: self._store.retire_cascade(family=Family.USER, entity_id=user_id)
        )
        if errors:
            return self._rolled_back(meta, saga, errors)
        assert cascade is not None and isinstance(cascade.parent, User)

        permissions = [c for c in cascade.children if isinstance(c, Permission)]
        retired_contacts = [c for c in cascade.children if isinstance(c, Contact)]
        info = UserInfo.from_user(cascade.parent, permissions)
        for permission in permissions:
            self._announce(meta, PERMISSION_CATEGORY, MutationKind.DELETE, permission)
        for contact in retired_contacts:
            self._announce(meta, CONTACT_CATEGORY, MutationKind.DELETE, contact)
        self._announce(meta, USER_CATEGORY, MutationKind.DELETE, info)
        return success(
            meta=meta,
            payload=UserRetirement(
                user=info, permissions=permissions, contacts=retired_contacts
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def add_permission(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[Permission]:
        request, errors = validate_request(
            meta=meta, model=PermissionRequest, payload=strip_protected_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        created, errors = call_store(
            lambda: self._store.create_idempotent(
                family=Family.PERMISSION,
                attributes=request.model_dump(),
                idempotency_key=idempotency_key,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if created.created:
            self._announce(meta, PERMISSION_CATEGORY, MutationKind.CREATE, created.entity)
        return success(meta=meta, payload=created.entity)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("permission_id",)
    )
    def get_permission(
        self, *, meta: EnvelopeMeta, permission_id: str
    ) -> Envelope[Permission]:
        permission, errors = call_store(
            lambda: self._store.get(family=Family.PERMISSION, entity_id=permission_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=permission)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def list_permissions(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[list[Permission]]:
        _, errors = call_store(
            lambda: self._store.get(family=Family.USER, entity_id=user_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        permissions, errors = self._live_permissions(user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=permissions)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("permission_id",)
    )
    def remove_permission(
        self, *, meta: EnvelopeMeta, permission_id: str
    ) -> Envelope[Permission]:
        permission, errors = call_store(
            lambda: self._store.retire(
                family=Family.PERMISSION, entity_id=permission_id
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, PERMISSION_CATEGORY, MutationKind.DELETE, permission)
        return success(meta=meta, payload=permission)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_contact(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[Contact]:
        request, errors = validate_request(
            meta=meta,
            model=CreateContactRequest,
            payload=strip_protected_fields(payload),
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        _, errors = call_store(
            lambda: self._store.get(family=Family.USER, entity_id=request.user_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)

        known, errors = call_pbx(
            "endpoint_exists",
            lambda: self._pbx.endpoint_exists(kind=request.type, target=request.target),
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if not known:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        f"target is not a known {request.type}",
                        code=codes.INVALID_ARGUMENT,
                        metadata={"field": "target"},
                    )
                ],
            )

        created, errors = call_store(
            lambda: self._store.create_idempotent(
                family=Family.CONTACT,
                attributes=request.model_dump(),
                idempotency_key=idempotency_key,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if created.created:
            self._announce(meta, CONTACT_CATEGORY, MutationKind.CREATE, created.entity)
        return success(meta=meta, payload=created.entity)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("contact_id",)
    )
    def get_contact(
        self, *, meta: EnvelopeMeta, contact_id: str
    ) -> Envelope[Contact]:
        contact, errors = call_store(
            lambda: self._store.get(family=Family.CONTACT, entity_id=contact_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=contact)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def list_contacts(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[list[Contact]]:
        contacts, errors = self._live_contacts(user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=contacts)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("contact_id",)
    )
    def delete_contact(
        self, *, meta: EnvelopeMeta, contact_id: str
    ) -> Envelope[Contact]:
        contact, errors = call_store(
            lambda: self._store.retire(family=Family.CONTACT, entity_id=contact_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, CONTACT_CATEGORY, MutationKind.DELETE, contact)
        return success(meta=meta, payload=contact)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def ensure_bootstrap_admin(self, *, meta: EnvelopeMeta) -> Envelope[UserInfo]:
        """Create the first administrator; an existing live one is returned as is.

        The bootstrap account gets no PBX endpoint, so it can be created before
        the PBX is reachable.
        """
        username = self._settings.bootstrap_admin_username
        existing, errors = call_store(
            lambda: self._store.list(
                family=Family.USER, where={"username": username}, limit=1
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if existing:
            user = existing[0]
            assert isinstance(user, User)
            info, errors = self._user_info(user)
            if errors:
                return failure(meta=meta, errors=errors)
            return success(meta=meta, payload=info)

        saga = Saga("bootstrap_admin")
        user, errors = call_store(
            lambda: self._store.create(
                family=Family.USER,
                attributes={
                    "username": username,
                    "password": self._settings.bootstrap_admin_password,
                    "context": self._settings.bootstrap_admin_context,
                },
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(user, User)
        saga.record("user", self._retire_undo(Family.USER, user.id))

        permissions, errors = self._grant_all(
            saga, user.id, [self._settings.admin_permission]
        )
        if errors:
            return self._rolled_back(meta, saga, errors)

        _LOGGER.info("Created bootstrap administrator %s", username)
        info = UserInfo.from_user(user, permissions)
        self._announce(meta, USER_CATEGORY, MutationKind.CREATE, info)
        for permission in permissions:
            self._announce(meta, PERMISSION_CATEGORY, MutationKind.CREATE, permission)
        return success(meta=meta, payload=info)

    def _username_taken(self, username: str) -> tuple[bool, list[ErrorDetail]]:
        found, errors = call_store(
            lambda: self._store.list(
                family=Family.USER, where={"username": username}, limit=1
            )
        )
        return bool(found), errors

    def _user_info(self, user: User) -> tuple[UserInfo | None, list[ErrorDetail]]:
        permissions, errors = self._live_permissions(user.id)
        if errors:
            return None, errors
        return UserInfo.from_user(user, permissions), []

    def _live_permissions(
        self, user_id: str
    ) -> tuple[list[Permission], list[ErrorDetail]]:
        rows, errors = call_store(
            lambda: self._store.list_all(
                family=Family.PERMISSION, where={"user_id": user_id}
            )
        )
        return [row for row in rows or [] if isinstance(row, Permission)], errors

    def _live_contacts(self, user_id: str) -> tuple[list[Contact], list[ErrorDetail]]:
        _, errors = call_store(
            lambda: self._store.get(family=Family.USER, entity_id=user_id)
        )
        if errors:
            return [], errors
        rows, errors = call_store(
            lambda: self._store.list_all(
                family=Family.CONTACT, where={"user_id": user_id}
            )
        )
        return [row for row in rows or [] if isinstance(row, Contact)], errors

    def _grant_all(
        self, saga: Saga, user_id: str, names: list[str]
    ) -> tuple[list[Permission], list[ErrorDetail]]:
        granted: list[Permission] = []
        for name in names:
            permission, errors = call_store(
                lambda name=name: self._store.create(
                    family=Family.PERMISSION,
                    attributes={"user_id": user_id, "permission": name},
                )
            )
            if errors:
                return granted, errors
            assert isinstance(permission, Permission)
            saga.record(
                f"permission:{name}",
                self._retire_undo(Family.PERMISSION, permission.id),
            )
            granted.append(permission)
        return granted, []

    def _replace_permissions(
        self, saga: Saga, user_id: str, names: list[str]
    ) -> tuple[list[Permission], list[Permission], list[ErrorDetail]]:
        current, errors = self._live_permissions(user_id)
        if errors:
            return [], [], errors

        wanted = set(names)
        revoked: list[Permission] = []
        for permission in current:
            if permission.permission in wanted:
                continue
            retired, errors = call_store(
                lambda item=permission: self._store.retire(
                    family=Family.PERMISSION, entity_id=item.id
                )
            )
            if errors:
                return [], revoked, errors
            assert isinstance(retired, Permission)
            saga.record(
                f"revoke:{permission.permission}",
                lambda item=permission: self._store.create(
                    family=Family.PERMISSION,
                    attributes={"user_id": user_id, "permission": item.permission},
                ),
            )
            revoked.append(retired)

        held = {permission.permission for permission in current}
        granted, errors = self._grant_all(
            saga, user_id, [name for name in names if name not in held]
        )
        return granted, revoked, errors

    def _sync_endpoints(
        self, saga: Saga, user: User, changes: Mapping[str, Any]
    ) -> list[ErrorDetail]:
        """Push a new password or context to every endpoint the user owns."""
        contacts, errors = self._live_contacts(user.id)
        if errors:
            return errors
        for contact in contacts:
            if contact.type != _ENDPOINT_CONTACT:
                continue
            before = EndpointSpec(
                name=contact.target,
                username=user.username,
                password=user.password,
                context=user.context,
            )
            after = before.model_copy(
                update={key: changes[key] for key in ("password", "context") if key in changes}
            )
            _, errors = call_pbx(
                "update_endpoint", lambda spec=after: self._pbx.update_endpoint(spec=spec)
            )
            if errors:
                return errors
            saga.record(
                f"pbx_endpoint:{contact.target}",
                lambda spec=before: self._pbx.update_endpoint(spec=spec),
            )
        return []

    def _retire_undo(self, family: Family, entity_id: str) -> Callable[[], None]:
        def undo() -> None:
            self._store.retire(family=family, entity_id=entity_id)

        return undo

    def _rolled_back(
        self, meta: EnvelopeMeta, saga: Saga, errors: list[ErrorDetail]
    ) -> Envelope[Any]:
        report = saga.compensate()
        if not report.clean:
            errors = [
                *errors,
                internal_error(
                    f"{saga.name} rollback incomplete",
                    metadata={"failed_steps": ",".join(report.failed)},
                ),
            ]
        return failure(meta=meta, errors=errors)

    def _announce(
        self,
        meta: EnvelopeMeta,
        category: str,
        mutation_kind: MutationKind,
        entity: BaseModel | None,
    ) -> None:
        assert entity is not None
        announce_change(
            self._publisher,
            meta=meta,
            topic=EVENT_TOPIC,
            category=category,
            mutation_kind=mutation_kind,
            entity=entity,
        )
