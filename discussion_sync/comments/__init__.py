"""Threaded comment module.

Provides the client-side comment engine with:
- Optimistic create/reply/delete/like with snapshot rollback
- Reply trees built from flat, parent-linked lists
- Content sanitization, validation and spam detection
- Per-actor fixed-window rate limiting
- HTTP repository for the remote comment service
"""

from .exceptions import (
    CommentError,
    CommentNotFoundError,
    NetworkError,
    PermissionDeniedError,
    RateLimitError,
    RemoteError,
    StaleOperationError,
    ValidationError,
)
from .models import (
    AuthorSummary,
    Comment,
    CommentContext,
    CommentPage,
    CommentTreeNode,
    ContextKind,
    OperationType,
    PaginationMeta,
    PendingOperation,
    SortOrder,
)
from .optimistic import OptimisticCommentStore
from .rate_limit import RateLimiter, RateLimiters
from .repository import CommentRepository
from .service import CommentService
from .tree import build_tree, flatten_tree


__all__ = [
    "AuthorSummary",
    "Comment",
    "CommentContext",
    "CommentError",
    "CommentNotFoundError",
    "CommentPage",
    "CommentRepository",
    "CommentService",
    "CommentTreeNode",
    "ContextKind",
    "NetworkError",
    "OperationType",
    "OptimisticCommentStore",
    "PaginationMeta",
    "PendingOperation",
    "PermissionDeniedError",
    "RateLimitError",
    "RateLimiter",
    "RateLimiters",
    "RemoteError",
    "SortOrder",
    "StaleOperationError",
    "ValidationError",
    "build_tree",
    "flatten_tree",
]
