"""Component id for the shared Postgres substrate."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "substrate_postgres"
