"""SQLAlchemy table definitions owned by the Entity Store.

Tables are unqualified; Postgres sessions resolve them through the
``entity_store`` search_path. There are no foreign keys: parent liveness and
live-child counts are checked by the store inside the mutating transaction.
Live-unique keys are partial unique indexes over ``liveness = 'active'`` rows,
so a retired row never blocks a new live one.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB

from packages.pbx_shared.ids import (
    entity_id_primary_key_column,
    entity_id_reference_column,
)

metadata = MetaData()

LIVE_ROWS = "liveness = 'active'"

JsonBag = JSON().with_variant(JSONB(), "postgresql")


def _common_columns() -> list[Column]:
    return [
        entity_id_primary_key_column("id"),
        Column("liveness", String(16), nullable=False, server_default="active"),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=True),
        Column("retired_at", DateTime(timezone=True), nullable=True),
        Column("idempotency_key", String(128), nullable=True),
    ]


def live_unique_index(name: str, *columns: Column) -> Index:
    """Unique index restricted to live rows on both Postgres and SQLite."""
    return Index(
        name,
        *columns,
        unique=True,
        postgresql_where=text(LIVE_ROWS),
        sqlite_where=text(LIVE_ROWS),
    )


def _idempotency_index(table: Table) -> Index:
    return live_unique_index(f"uq_{table.name}_idempotency_key", table.c.idempotency_key)


dial_list_masters = Table(
    "dial_list_masters",
    metadata,
    *_common_columns(),
    Column("name", String(255), nullable=True),
    Column("detail", Text, nullable=True),
    Column("dl_table", String(64), nullable=False),
    Column("variables", JsonBag, nullable=False),
)

dial_list_entries = Table(
    "dial_list_entries",
    metadata,
    *_common_columns(),
    entity_id_reference_column("dlma_id"),
    Column("name", String(255), nullable=True),
    Column("detail", Text, nullable=True),
    *(Column(f"number_{index}", String(64), nullable=True) for index in range(1, 9)),
    Column("email", String(255), nullable=True),
    Column("variables", JsonBag, nullable=False),
)

dialplan_masters = Table(
    "dialplan_masters",
    metadata,
    *_common_columns(),
    Column("name", String(255), nullable=True),
    Column("detail", Text, nullable=True),
)

dialplan_steps = Table(
    "dialplan_steps",
    metadata,
    *_common_columns(),
    entity_id_reference_column("dpma_id"),
    Column("sequence", Integer, nullable=False),
    Column("name", String(255), nullable=True),
    Column("detail", Text, nullable=True),
    Column("command", Text, nullable=False),
)

users = Table(
    "users",
    metadata,
    *_common_columns(),
    Column("username", String(255), nullable=False),
    Column("password", String(255), nullable=False),
    Column("name", String(255), nullable=False, server_default=""),
    Column("context", String(255), nullable=False, server_default=""),
)

permissions = Table(
    "permissions",
    metadata,
    *_common_columns(),
    entity_id_reference_column("user_id"),
    Column("permission", String(64), nullable=False),
)

contacts = Table(
    "contacts",
    metadata,
    *_common_columns(),
    entity_id_reference_column("user_id"),
    Column("type", String(32), nullable=False),
    Column("target", String(255), nullable=False),
    Column("name", String(255), nullable=True),
    Column("detail", Text, nullable=True),
)

trunks = Table(
    "trunks",
    metadata,
    *_common_columns(),
    Column("name", String(255), nullable=False),
    Column("server_uri", String(512), nullable=False),
    Column("client_uri", String(512), nullable=False),
    Column("username", String(255), nullable=False),
    Column("password", String(255), nullable=False),
    Column("contact", String(512), nullable=True),
    Column("context", String(255), nullable=False),
    Column("hostname", String(255), nullable=True),
    Column("status", String(64), nullable=False, server_default="Unregistered"),
)

for _table in metadata.sorted_tables:
    _idempotency_index(_table)

live_unique_index(
    "uq_dialplan_steps_live_sequence", dialplan_steps.c.dpma_id, dialplan_steps.c.sequence
)
live_unique_index("uq_users_live_username", users.c.username)
live_unique_index(
    "uq_permissions_live_permission", permissions.c.user_id, permissions.c.permission
)
live_unique_index("uq_trunks_live_name", trunks.c.name)
