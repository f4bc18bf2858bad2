"""Component id and event names for the account service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_account"

EVENT_TOPIC = "manager"
USER_CATEGORY = "manager.user"
PERMISSION_CATEGORY = "manager.permission"
CONTACT_CATEGORY = "manager.contact"

ADMIN_PERMISSION = "admin"
