"""Session context management using contextvars.

Tracks which actor and which discussion session the current code path
belongs to, plus the optimistic operation being processed, so every log
line can be correlated without passing identifiers around explicitly.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4


session_id_var: ContextVar[str] = ContextVar("session_id", default="")
actor_id_var: ContextVar[str | None] = ContextVar("actor_id", default=None)
operation_id_var: ContextVar[str | None] = ContextVar("operation_id", default=None)


def generate_session_id() -> str:
    """Generate a new unique session ID."""
    return str(uuid4())


def get_session_id() -> str:
    """Get the current discussion session ID."""
    return session_id_var.get()


def set_session_id(session_id: str | None = None) -> str:
    """Set the session ID for the current context.

    Args:
        session_id: Optional session ID. If not provided, generates a new one.

    Returns:
        The session ID that was set.
    """
    sid = session_id or generate_session_id()
    session_id_var.set(sid)
    return sid


def get_actor_id() -> str | None:
    """Get the current actor ID."""
    return actor_id_var.get()


def set_actor_id(actor_id: str | int | None) -> None:
    """Set the actor ID for the current context."""
    if actor_id is not None:
        actor_id_var.set(str(actor_id))
    else:
        actor_id_var.set(None)


def get_operation_id() -> str | None:
    """Get the optimistic operation currently being processed."""
    return operation_id_var.get()


def set_operation_id(operation_id: str | None) -> None:
    """Set the optimistic operation ID for the current context."""
    operation_id_var.set(operation_id)


def get_context() -> dict[str, Any]:
    """Get all context variables as a dictionary.

    Returns:
        Dictionary with session_id, actor_id and operation_id when set.
    """
    context: dict[str, Any] = {}

    session_id = get_session_id()
    if session_id:
        context["session_id"] = session_id

    actor_id = get_actor_id()
    if actor_id:
        context["actor_id"] = actor_id

    operation_id = get_operation_id()
    if operation_id:
        context["operation_id"] = operation_id

    return context


def clear_context() -> None:
    """Clear all context variables."""
    session_id_var.set("")
    actor_id_var.set(None)
    operation_id_var.set(None)


class SessionContext:
    """Context manager for a discussion-viewing session scope.

    Usage:
        with SessionContext(session_id="...", actor_id=7):
            log.info("loading comments")  # Will include session_id, actor_id
    """

    def __init__(
        self,
        session_id: str | None = None,
        actor_id: str | int | None = None,
        operation_id: str | None = None,
    ) -> None:
        self.session_id = session_id
        self.actor_id = actor_id
        self.operation_id = operation_id
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "SessionContext":
        """Enter context and set variables."""
        self._tokens["session_id"] = session_id_var.set(
            self.session_id or generate_session_id()
        )

        if self.actor_id is not None:
            self._tokens["actor_id"] = actor_id_var.set(str(self.actor_id))

        if self.operation_id is not None:
            self._tokens["operation_id"] = operation_id_var.set(self.operation_id)

        return self

    def __exit__(self, *_: object) -> None:
        """Exit context and restore previous values."""
        for var_name, token in self._tokens.items():
            if var_name == "session_id":
                session_id_var.reset(token)
            elif var_name == "actor_id":
                actor_id_var.reset(token)
            elif var_name == "operation_id":
                operation_id_var.reset(token)
