"""Component id and event names for the dialplan service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_dialplan"

EVENT_TOPIC = "dialplan"
MASTER_CATEGORY = "dp.dpma"
STEP_CATEGORY = "dp.dialplan"
