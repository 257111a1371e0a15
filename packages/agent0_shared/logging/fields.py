"""Canonical logging field names shared by Agent0 packages.

Keeping names centralized prevents drift between structured log lines, metric
attributes and the context propagated through ``log_context``.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Public API invocation fields.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_TYPE = "error_type"

# Storage fields.
BACKEND = "backend"
IDENTIFIER = "identifier"
GATEWAY = "gateway"
URI = "uri"
AGENT_ID = "agent_id"
TX_HASH = "tx_hash"
BACKEND_FALLBACK_EVENT = "backend_fallback"
GATEWAY_FAILURE_EVENT = "gateway_failure"
CONFIRMATION_EVENT = "confirmation"

# Common service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"
