# Core infrastructure
from discussion_sync.core.context import (
    SessionContext,
    clear_context,
    get_actor_id,
    get_context,
    get_operation_id,
    get_session_id,
    set_actor_id,
    set_operation_id,
    set_session_id,
)
from discussion_sync.core.logging import configure_structlog, get_logger


__all__ = [
    "SessionContext",
    "clear_context",
    "configure_structlog",
    "get_actor_id",
    "get_context",
    "get_logger",
    "get_operation_id",
    "get_session_id",
    "set_actor_id",
    "set_operation_id",
    "set_session_id",
]
