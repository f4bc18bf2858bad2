"""Component id and event names for the trunk service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_trunk"

EVENT_TOPIC = "manager"
TRUNK_CATEGORY = "manager.trunk"
