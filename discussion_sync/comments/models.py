"""Domain models for the threaded comment engine.

- Comment / AuthorSummary / PaginationMeta: immutable pydantic models that
  mirror the remote service's camelCase payloads
- CommentContext: the photo or series a discussion belongs to
- PendingOperation: bookkeeping for one optimistic mutation
- CommentTreeNode: nested view built from the flat comment list
- RateLimitRecord: fixed-window counter state

Comments are frozen so that a list snapshot taken before a mutation can
never be changed by the mutation itself; transforms always build new
Comment instances with model_copy().
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class OperationType(str, Enum):
    """Kinds of optimistic mutation applied to the visible list."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LIKE = "like"


class ContextKind(str, Enum):
    """Discussion scopes a comment can belong to."""

    PHOTO = "photo"
    SERIES = "series"


@dataclass(frozen=True)
class CommentContext:
    """A discussion scope: one specific photo or one specific series."""

    kind: ContextKind
    id: int

    @classmethod
    def photo(cls, photo_id: int) -> "CommentContext":
        return cls(ContextKind.PHOTO, photo_id)

    @classmethod
    def series(cls, series_id: int) -> "CommentContext":
        return cls(ContextKind.SERIES, series_id)

    @property
    def comments_path(self) -> str:
        """Collection path on the remote service."""
        if self.kind is ContextKind.PHOTO:
            return f"photos/{self.id}/comments"
        return f"series/{self.id}/comments"

    def like_fields(self) -> dict[str, int]:
        """Context fields sent along with a like toggle."""
        if self.kind is ContextKind.PHOTO:
            return {"photoId": self.id}
        return {"seriesId": self.id}


class _WireModel(BaseModel):
    """Base for models exchanged with the remote service (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class AuthorSummary(_WireModel):
    """Public author information embedded in each comment."""

    id: int
    username: str
    profile_image_url: str | None = None


class Comment(_WireModel):
    """A single comment or reply within a discussion context."""

    id: int
    author: AuthorSummary
    content: str
    photo_id: int | None = None
    series_id: int | None = None
    parent_id: int | None = None
    likes_count: int = Field(default=0, ge=0)
    replies_count: int = Field(default=0, ge=0)
    liked_by_current_user: bool = Field(default=False, alias="isLikedByCurrentUser")
    created_at: datetime
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    replies: tuple["Comment", ...] = ()
    # Local only: set while an optimistic create awaits the server
    is_pending: bool = Field(default=False, exclude=True)

    @model_validator(mode="after")
    def check_single_context(self) -> "Comment":
        """A comment belongs to exactly one photo or one series."""
        if (self.photo_id is None) == (self.series_id is None):
            msg = "Comment must have exactly one of photoId or seriesId"
            raise ValueError(msg)
        return self

    @property
    def context(self) -> CommentContext:
        if self.photo_id is not None:
            return CommentContext.photo(self.photo_id)
        return CommentContext.series(self.series_id)  # type: ignore[arg-type]

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def has_replies(self) -> bool:
        """Check if the comment carries loaded replies."""
        return self.replies_count > 0 and len(self.replies) > 0


class PaginationMeta(_WireModel):
    """Pagination metadata returned with each comment page."""

    total: int = Field(ge=0)
    page: int = Field(ge=1)
    has_next: bool
    limit: int | None = None
    total_pages: int | None = None
    has_prev: bool = False


@dataclass(frozen=True)
class CommentPage:
    """One page of comments as returned by the repository."""

    comments: list[Comment]
    pagination: PaginationMeta


@dataclass
class PendingOperation:
    """An optimistic mutation that has been applied but not yet resolved.

    original_snapshot is the complete visible list at the instant the
    operation was applied; sequence orders operations within one store.
    """

    id: str
    type: OperationType
    original_snapshot: tuple[Comment, ...]
    created_at: float
    sequence: int
    payload: Comment | None = None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)


@dataclass
class CommentTreeNode:
    """A comment with its nested replies."""

    comment: Comment
    children: list["CommentTreeNode"] = field(default_factory=list)
    depth: int = 0
    is_expanded: bool = True

    @property
    def id(self) -> int:
        return self.comment.id


@dataclass
class RateLimitRecord:
    """Fixed-window counter for one actor/action key."""

    count: int
    window_reset_at: float


def engagement_score(comment: Comment, now: datetime | None = None) -> float:
    """Score a comment by likes and replies, decaying with age in days.

    score = (likes * 2 + replies * 3) / max(1, age_hours / 24)
    """
    now = now or datetime.now(UTC)
    created_at = comment.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    age_hours = (now - created_at).total_seconds() / 3600
    score = (comment.likes_count * 2 + comment.replies_count * 3) / max(
        1, age_hours / 24
    )
    return round(score, 2)


def comment_fields(comment: Comment) -> dict[str, Any]:
    """Fields explicitly set on a (possibly partial) comment payload."""
    return {name: getattr(comment, name) for name in comment.model_fields_set}


class SortOrder(str, Enum):
    """Orderings offered for the comment list."""

    NEWEST = "newest"
    OLDEST = "oldest"
    POPULAR = "popular"


def sort_comments(
    comments: list[Comment],
    sort_by: SortOrder,
    now: datetime | None = None,
) -> list[Comment]:
    """Return comments ordered by creation time or engagement score."""
    if sort_by is SortOrder.NEWEST:
        return sorted(comments, key=lambda c: c.created_at, reverse=True)
    if sort_by is SortOrder.OLDEST:
        return sorted(comments, key=lambda c: c.created_at)
    now = now or datetime.now(UTC)
    return sorted(comments, key=lambda c: engagement_score(c, now), reverse=True)
