"""Component id for the Redis substrate."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "substrate_redis"
