"""Stable machine-readable error codes.

Generic codes come first; the control-plane specific codes below them are
shared because more than one service (store, lifecycle, gateway) emits them.
"""

# Validation
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_ARGUMENT = "INVALID_ARGUMENT"
MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

# Not found
NOT_FOUND = "NOT_FOUND"
RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

# Conflict
CONFLICT = "CONFLICT"
ALREADY_EXISTS = "ALREADY_EXISTS"
HAS_LIVE_CHILDREN = "HAS_LIVE_CHILDREN"
STALE_UPDATE = "STALE_UPDATE"
NAME_COLLISION = "NAME_COLLISION"

# Policy / authorization
POLICY_VIOLATION = "POLICY_VIOLATION"
PERMISSION_DENIED = "PERMISSION_DENIED"
UNAUTHENTICATED = "UNAUTHENTICATED"

# Dependency / external system
DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"
DEPENDENCY_TIMEOUT = "DEPENDENCY_TIMEOUT"
DEPENDENCY_UNAVAILABLE = "DEPENDENCY_UNAVAILABLE"
BACKEND_ERROR = "BACKEND_ERROR"
DELIVERY_FAILURE = "DELIVERY_FAILURE"
EXTERNAL_CAPABILITY_FAILURE = "EXTERNAL_CAPABILITY_FAILURE"

# Internal
INTERNAL_ERROR = "INTERNAL_ERROR"
UNEXPECTED_EXCEPTION = "UNEXPECTED_EXCEPTION"
