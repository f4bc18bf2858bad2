"""Static description of every family: table, record model, parent, keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy import Table

from services.state.entity_store.domain import (
    Contact,
    DialListEntry,
    DialListMaster,
    DialplanMaster,
    DialplanStep,
    EntityBase,
    Family,
    Permission,
    Trunk,
    User,
)

from .schema import (
    contacts,
    dial_list_entries,
    dial_list_masters,
    dialplan_masters,
    dialplan_steps,
    permissions,
    trunks,
    users,
)

COMMON_COLUMNS = frozenset(
    {"id", "liveness", "created_at", "updated_at", "retired_at", "idempotency_key"}
)


@dataclass(frozen=True)
class FamilySpec:
    """How one family is stored and how it relates to its parent."""

    family: Family
    table: Table
    model: type[EntityBase]
    parent: Family | None = None
    parent_column: str | None = None
    live_unique: tuple[tuple[str, ...], ...] = ()
    view_column: str | None = None
    defaults: Mapping[str, Any] = field(default_factory=dict)

    @property
    def attribute_columns(self) -> frozenset[str]:
        """Columns a caller may write."""
        return frozenset(
            column.name
            for column in self.table.columns
            if column.name not in COMMON_COLUMNS and column.name != self.view_column
        )

    @property
    def has_view(self) -> bool:
        return self.view_column is not None


FAMILY_SPECS: dict[Family, FamilySpec] = {
    spec.family: spec
    for spec in (
        FamilySpec(
            family=Family.DIAL_LIST_MASTER,
            table=dial_list_masters,
            model=DialListMaster,
            view_column="dl_table",
            defaults={"name": None, "detail": None, "variables": {}},
        ),
        FamilySpec(
            family=Family.DIAL_LIST_ENTRY,
            table=dial_list_entries,
            model=DialListEntry,
            parent=Family.DIAL_LIST_MASTER,
            parent_column="dlma_id",
            defaults={"variables": {}},
        ),
        FamilySpec(
            family=Family.DIALPLAN_MASTER,
            table=dialplan_masters,
            model=DialplanMaster,
        ),
        FamilySpec(
            family=Family.DIALPLAN_STEP,
            table=dialplan_steps,
            model=DialplanStep,
            parent=Family.DIALPLAN_MASTER,
            parent_column="dpma_id",
            live_unique=(("dpma_id", "sequence"),),
        ),
        FamilySpec(
            family=Family.USER,
            table=users,
            model=User,
            live_unique=(("username",),),
            defaults={"name": "", "context": ""},
        ),
        FamilySpec(
            family=Family.PERMISSION,
            table=permissions,
            model=Permission,
            parent=Family.USER,
            parent_column="user_id",
            live_unique=(("user_id", "permission"),),
        ),
        FamilySpec(
            family=Family.CONTACT,
            table=contacts,
            model=Contact,
            parent=Family.USER,
            parent_column="user_id",
        ),
        FamilySpec(
            family=Family.TRUNK,
            table=trunks,
            model=Trunk,
            live_unique=(("name",),),
            defaults={"status": "Unregistered"},
        ),
    )
}


def family_spec(family: Family) -> FamilySpec:
    return FAMILY_SPECS[Family(family)]


def child_specs(family: Family) -> tuple[FamilySpec, ...]:
    """Families whose rows reference ``family`` as their parent."""
    return tuple(spec for spec in FAMILY_SPECS.values() if spec.parent == family)
