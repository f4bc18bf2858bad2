"""Component id and owned schema for the Entity Store."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_entity_store"
ENTITY_STORE_SCHEMA = "entity_store"
