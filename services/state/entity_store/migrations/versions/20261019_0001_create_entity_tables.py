"""create entity store tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from packages.pbx_shared.ids import ENTITY_ID_LENGTH
from services.state.entity_store.data.runtime import entity_store_postgres_schema

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

_LIVE_ROWS = sa.text("liveness = 'active'")


def _schema() -> str:
    return entity_store_postgres_schema()


def _common_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(length=ENTITY_ID_LENGTH), primary_key=True),
        sa.Column(
            "liveness", sa.String(length=16), nullable=False, server_default="active"
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.CheckConstraint(
            "liveness IN ('active', 'retired')", name="ck_liveness_value"
        ),
    ]


def _reference(name: str) -> sa.Column:
    return sa.Column(name, sa.String(length=ENTITY_ID_LENGTH), nullable=False)


def _live_unique(name: str, table: str, columns: list[str], schema: str) -> None:
    op.create_index(
        name,
        table,
        columns,
        unique=True,
        schema=schema,
        postgresql_where=_LIVE_ROWS,
    )


_TABLES: tuple[str, ...] = (
    "dial_list_masters",
    "dial_list_entries",
    "dialplan_masters",
    "dialplan_steps",
    "users",
    "permissions",
    "contacts",
    "trunks",
)

_REFERENCES: tuple[tuple[str, str], ...] = (
    ("dial_list_entries", "dlma_id"),
    ("dialplan_steps", "dpma_id"),
    ("permissions", "user_id"),
    ("contacts", "user_id"),
)


def upgrade() -> None:
    """Create the entity tables and their live-row unique indexes."""
    schema = _schema()

    op.create_table(
        "dial_list_masters",
        *_common_columns(),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("dl_table", sa.String(length=64), nullable=False),
        sa.Column("variables", postgresql.JSONB(), nullable=False),
        schema=schema,
    )
    op.create_table(
        "dial_list_entries",
        *_common_columns(),
        _reference("dlma_id"),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        *(
            sa.Column(f"number_{index}", sa.String(length=64), nullable=True)
            for index in range(1, 9)
        ),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("variables", postgresql.JSONB(), nullable=False),
        schema=schema,
    )
    op.create_table(
        "dialplan_masters",
        *_common_columns(),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        schema=schema,
    )
    op.create_table(
        "dialplan_steps",
        *_common_columns(),
        _reference("dpma_id"),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("command", sa.Text(), nullable=False),
        sa.CheckConstraint("sequence > 0", name="ck_dialplan_steps_sequence_positive"),
        schema=schema,
    )
    op.create_table(
        "users",
        *_common_columns(),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("context", sa.String(length=255), nullable=False, server_default=""),
        schema=schema,
    )
    op.create_table(
        "permissions",
        *_common_columns(),
        _reference("user_id"),
        sa.Column("permission", sa.String(length=64), nullable=False),
        schema=schema,
    )
    op.create_table(
        "contacts",
        *_common_columns(),
        _reference("user_id"),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("target", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        schema=schema,
    )
    op.create_table(
        "trunks",
        *_common_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("server_uri", sa.String(length=512), nullable=False),
        sa.Column("client_uri", sa.String(length=512), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("contact", sa.String(length=512), nullable=True),
        sa.Column("context", sa.String(length=255), nullable=False),
        sa.Column("hostname", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.String(length=64),
            nullable=False,
            server_default="Unregistered",
        ),
        schema=schema,
    )

    for table, column in _REFERENCES:
        op.create_index(f"ix_{table}_{column}", table, [column], schema=schema)
    for table in _TABLES:
        _live_unique(f"uq_{table}_idempotency_key", table, ["idempotency_key"], schema)
    _live_unique(
        "uq_dialplan_steps_live_sequence",
        "dialplan_steps",
        ["dpma_id", "sequence"],
        schema,
    )
    _live_unique("uq_users_live_username", "users", ["username"], schema)
    _live_unique(
        "uq_permissions_live_permission",
        "permissions",
        ["user_id", "permission"],
        schema,
    )
    _live_unique("uq_trunks_live_name", "trunks", ["name"], schema)


def downgrade() -> None:
    """Drop the entity tables; parent views are dropped with CASCADE."""
    schema = _schema()
    op.execute(sa.text(f"DROP TABLE IF EXISTS {schema}.dial_list_entries CASCADE"))
    for table in reversed(_TABLES):
        if table != "dial_list_entries":
            op.drop_table(table, schema=schema)
