"""Canonical structured-log field names.

Services bind these keys through ``bind_context``/``log_context`` so log lines
from the store, lifecycle services, publisher and dispatcher line up when
filtered by trace or entity.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Envelope correlation.
TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
PARENT_ID = "parent_id"
SOURCE = "source"
PRINCIPAL = "principal"

# Public API instrumentation.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
STAGE = "stage"
CONCERN = "concern"

# Control-plane domain.
FAMILY = "family"
ENTITY_ID = "entity_id"
TOPIC = "topic"
CATEGORY = "category"
MUTATION_KIND = "mutation_kind"
SESSION_ID = "session_id"
EXECUTION_ID = "execution_id"
SAGA = "saga"
SAGA_STEP = "saga_step"

# Process identity.
SERVICE = "service"
ENVIRONMENT = "environment"
