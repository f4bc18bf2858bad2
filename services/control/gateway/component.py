"""Component id for the inbound gateway."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_gateway"
