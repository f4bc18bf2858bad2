"""Component id and event names for the outbound list service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_outbound_list"

EVENT_TOPIC = "outbound"
MASTER_CATEGORY = "ob.dlma"
ENTRY_CATEGORY = "ob.dl"
