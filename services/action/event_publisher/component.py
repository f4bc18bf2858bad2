"""Component id for the Event Publisher."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_event_publisher"
