"""Composition root: one explicit object graph per process.

Services receive their collaborators through constructors; there is no
module-level registry. ``build_runtime`` wires the graph and ``start`` runs
the startup steps enabled under ``components.startup``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_core.migrations import MigrationRunResult, run_startup_migrations
from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import EnvelopeKind, new_meta
from packages.pbx_shared.logging import get_logger
from resources.adapters.pbx import (
    HttpPbxAdapter,
    PbxAdapter,
    resolve_pbx_adapter_settings,
)
from resources.substrates.postgres import (
    SharedPostgresSubstrate,
    resolve_postgres_settings,
)
from resources.substrates.redis import RedisSubstrate
from services.action.command_dispatcher.service import (
    CommandDispatcher,
    build_command_dispatcher,
)
from services.action.event_publisher.service import (
    EventPublisher,
    build_event_publisher,
)
from services.control.gateway.interfaces import IdentityResolver
from services.control.gateway.service import Gateway, build_gateway
from services.state.account.service import AccountService, build_account_service
from services.state.dialplan.service import DialplanService, build_dialplan_service
from services.state.entity_store.interfaces import EntityStore
from services.state.entity_store.service import build_entity_store
from services.state.outbound_list.service import (
    OutboundListService,
    build_outbound_list_service,
)
from services.state.trunk.service import TrunkService, build_trunk_service

_LOGGER = get_logger(__name__)

_SOURCE = "pbx_core"


class ComponentHealthResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str = ""


class RuntimeHealthResult(BaseModel):
    """Aggregate readiness of the substrates and the PBX adapter."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    components: dict[str, ComponentHealthResult] = Field(default_factory=dict)


@dataclass(frozen=True)
class StartupResult:
    migrations: MigrationRunResult | None
    rebuilt_views: tuple[str, ...]
    bootstrap_admin: str | None


@dataclass
class PbxRuntime:
    """Every long-lived component of one control-plane process."""

    settings: PbxSettings
    substrate: SharedPostgresSubstrate
    pbx: PbxAdapter
    store: EntityStore
    publisher: EventPublisher
    outbound: OutboundListService
    dialplan: DialplanService
    account: AccountService
    trunk: TrunkService
    dispatcher: CommandDispatcher
    gateway: Gateway
    redis: RedisSubstrate | None = None

    def start(
        self,
        *,
        migration_runner: Callable[..., MigrationRunResult] = run_startup_migrations,
    ) -> StartupResult:
        """Run migrations, view repair and admin bootstrap in that order."""
        startup = self.settings.components.startup
        meta = new_meta(kind=EnvelopeKind.COMMAND, source=_SOURCE, principal="system")

        migrations = None
        if startup.run_migrations_on_startup:
            migrations = migration_runner(
                settings=self.settings, engine=self.substrate.engine
            )

        rebuilt: tuple[str, ...] = ()
        if startup.rebuild_missing_views_on_startup:
            result = self.outbound.rebuild_views(meta=meta)
            if not result.ok:
                raise RuntimeError("view rebuild failed during startup")
            rebuilt = tuple(view.view_name for view in result.payload.value)

        admin = None
        if startup.bootstrap_admin_on_startup:
            result = self.account.ensure_bootstrap_admin(meta=meta)
            if not result.ok:
                raise RuntimeError("bootstrap administrator could not be created")
            admin = result.payload.value.id

        _LOGGER.info("Runtime started")
        return StartupResult(
            migrations=migrations, rebuilt_views=rebuilt, bootstrap_admin=admin
        )

    def health(self) -> RuntimeHealthResult:
        components: dict[str, ComponentHealthResult] = {}
        postgres = self.substrate.health()
        components["substrate_postgres"] = ComponentHealthResult(
            ready=postgres.ready, detail=postgres.detail
        )
        if self.redis is not None:
            redis = self.redis.health()
            components["substrate_redis"] = ComponentHealthResult(
                ready=redis.ready, detail=redis.detail
            )
        pbx = self.pbx.health()
        components["adapter_pbx"] = ComponentHealthResult(
            ready=pbx.adapter_ready, detail=pbx.detail
        )
        return RuntimeHealthResult(
            ready=all(item.ready for item in components.values()),
            components=components,
        )

    def close(self) -> None:
        """Drain queued events, then release connections."""
        self.publisher.close()
        close_pbx = getattr(self.pbx, "close", None)
        if callable(close_pbx):
            close_pbx()
        self.substrate.dispose()


def build_runtime(
    *,
    settings: PbxSettings,
    substrate: SharedPostgresSubstrate | None = None,
    redis: RedisSubstrate | None = None,
    pbx: PbxAdapter | None = None,
    identities: IdentityResolver | None = None,
) -> PbxRuntime:
    """Wire every component from typed settings; collaborators may be injected."""
    substrate = substrate or SharedPostgresSubstrate(
        settings=resolve_postgres_settings(settings)
    )
    pbx = pbx or HttpPbxAdapter(settings=resolve_pbx_adapter_settings(settings))
    store = build_entity_store(settings=settings, substrate=substrate)
    publisher = build_event_publisher(settings=settings, redis=redis)

    outbound = build_outbound_list_service(
        settings=settings, store=store, publisher=publisher
    )
    dialplan = build_dialplan_service(settings=settings, store=store, publisher=publisher)
    account = build_account_service(
        settings=settings, store=store, publisher=publisher, pbx=pbx
    )
    trunk = build_trunk_service(
        settings=settings, store=store, publisher=publisher, pbx=pbx
    )
    return PbxRuntime(
        settings=settings,
        substrate=substrate,
        pbx=pbx,
        store=store,
        publisher=publisher,
        outbound=outbound,
        dialplan=dialplan,
        account=account,
        trunk=trunk,
        dispatcher=build_command_dispatcher(settings=settings, store=store, pbx=pbx),
        gateway=build_gateway(
            settings=settings,
            outbound=outbound,
            dialplan=dialplan,
            account=account,
            trunk=trunk,
            identities=identities,
        ),
        redis=redis,
    )
