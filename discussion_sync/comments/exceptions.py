"""Error taxonomy for the comment engine.

Validation and rate-limit failures are raised before any optimistic
mutation or network call. Network and remote failures surface only after
the optimistic mutation is already visible, so callers holding an
operation id roll it back. StaleOperationError never leaves the store.
"""

from typing import Any


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(CommentError):
    """Comment content or request rejected before any network call."""

    def __init__(
        self,
        errors: list[str] | None = None,
        message: str = "Comment content is invalid",
    ):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message, "validation_error")


class RateLimitError(CommentError):
    """Actor exceeded the quota for an action in the current window."""

    def __init__(self, reset_after_ms: int, action: str = "comment"):
        self.reset_after_ms = reset_after_ms
        self.action = action
        seconds = -(-reset_after_ms // 1000)
        super().__init__(
            f"Too many {action} actions; try again in {seconds}s",
            "rate_limit_exceeded",
        )


class NetworkError(CommentError):
    """The remote call failed at the transport level (connect, timeout)."""

    def __init__(self, message: str = "Network request failed"):
        super().__init__(message, "network_error")


class RemoteError(CommentError):
    """The remote service answered with a non-success response."""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: str = "remote_error",
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message, code)

    @property
    def is_auth_error(self) -> bool:
        return self.status_code == 401 or self.code.startswith("AUTH_")

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class StaleOperationError(CommentError):
    """Operation id is no longer tracked (already confirmed or rolled back)."""

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(
            f"Operation {operation_id} is no longer pending", "stale_operation"
        )


class PermissionDeniedError(CommentError):
    """Permission denied for operation."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, "permission_denied")


class CommentNotFoundError(CommentError):
    """Comment is not in the locally visible list."""

    def __init__(self, comment_id: int):
        self.comment_id = comment_id
        super().__init__(f"Comment {comment_id} not found", "comment_not_found")
