"""Component id for the Command Dispatcher."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_command_dispatcher"
