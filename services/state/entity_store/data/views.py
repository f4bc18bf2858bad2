"""View Synthesizer: one permanent, parent-scoped view per dial-list master.

The view is a pure filter over ``dial_list_entries`` on ``dlma_id``; it is
created inside the parent's create transaction and never recreated or
renamed. Its name is derived from the parent id by replacing every
non-alphanumeric character with ``_``.
"""

from __future__ import annotations

import re

from sqlalchemy import Column, MetaData, Table, inspect, select, text
from sqlalchemy.engine import RowMapping
from sqlalchemy.orm import Session

from packages.pbx_shared.ids import is_entity_id
from services.state.entity_store.domain import ViewInfo
from services.state.entity_store.errors import NameCollision

from .schema import dial_list_entries

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")
_UUID_VIEW_NAME = re.compile(
    r"^[0-9a-f]{8}_[0-9a-f]{4}_[0-9a-f]{4}_[0-9a-f]{4}_[0-9a-f]{12}$"
)
_VIEW_FAMILY = "dial_list_master"


def derive_view_name(parent_id: str) -> str:
    """Storage-safe identifier for ``parent_id``."""
    if parent_id == "":
        raise ValueError("parent_id is required")
    return _NON_ALNUM.sub("_", parent_id)


def parent_id_from_view_name(view_name: str) -> str | None:
    """Reverse ``derive_view_name`` for UUID ids; ``None`` for other names."""
    if not _UUID_VIEW_NAME.match(view_name):
        return None
    candidate = view_name.replace("_", "-")
    return candidate if is_entity_id(candidate) else None


class ViewSynthesizer:
    """Creates and discovers parent views on the session's connection."""

    def materialize(
        self, session: Session, *, parent_id: str, schema: str | None
    ) -> str:
        """Create the view for ``parent_id`` and return its name.

        An existing view with the derived name is a hard failure.
        """
        view_name = derive_view_name(parent_id)
        if view_name in self._existing(session, schema=schema):
            raise NameCollision(family=_VIEW_FAMILY, view_name=view_name)

        dialect = session.get_bind().dialect
        query = select(dial_list_entries).where(dial_list_entries.c.dlma_id == parent_id)
        compiled = query.compile(dialect=dialect, compile_kwargs={"literal_binds": True})
        quoted = dialect.identifier_preparer.quote(view_name)
        session.execute(text(f"CREATE VIEW {quoted} AS {compiled}"))
        return view_name

    def exists(self, session: Session, *, parent_id: str, schema: str | None) -> bool:
        return derive_view_name(parent_id) in self._existing(session, schema=schema)

    def list_views(self, session: Session, *, schema: str | None) -> list[ViewInfo]:
        """Views whose names decode to a parent id, sorted by name."""
        found: list[ViewInfo] = []
        for name in sorted(self._existing(session, schema=schema)):
            parent_id = parent_id_from_view_name(name)
            if parent_id is not None:
                found.append(ViewInfo(view_name=name, parent_id=parent_id))
        return found

    def select_rows(
        self, session: Session, *, parent_id: str, liveness: str | None
    ) -> list[RowMapping]:
        """Read the view's rows, optionally restricted to one liveness."""
        view = _view_table(derive_view_name(parent_id))
        statement = select(view)
        if liveness is not None:
            statement = statement.where(view.c.liveness == liveness)
        statement = statement.order_by(view.c.created_at.asc(), view.c.id.asc())
        return list(session.execute(statement).mappings().all())

    def _existing(self, session: Session, *, schema: str | None) -> set[str]:
        return set(inspect(session.connection()).get_view_names(schema=schema))


def _view_table(view_name: str) -> Table:
    """Typed description of one view, with the entry table's columns."""
    return Table(
        view_name,
        MetaData(),
        *[Column(column.name, column.type) for column in dial_list_entries.columns],
    )
