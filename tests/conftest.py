"""Shared fixtures for comment engine tests."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from discussion_sync.auth.identity import Actor, StaticActorProvider
from discussion_sync.comments.models import AuthorSummary, Comment, PaginationMeta
from discussion_sync.config.settings import Settings


CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Fake time source for rate limiters."""
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with default quotas, isolated from the environment file."""
    return Settings(_env_file=None)


@pytest.fixture
def actor() -> Actor:
    """Signed-in test actor."""
    return Actor(id=7, username="ana", token="secret-token-123")


@pytest.fixture
def other_actor() -> Actor:
    """Another signed-in actor."""
    return Actor(id=8, username="bruno")


@pytest.fixture
def actor_provider(actor: Actor) -> StaticActorProvider:
    """Provider reporting the test actor."""
    return StaticActorProvider(actor)


@pytest.fixture
def make_comment() -> Callable[..., Comment]:
    """Factory for photo-context comments."""

    def _make(
        comment_id: int,
        parent_id: int | None = None,
        *,
        author_id: int = 7,
        content: str | None = None,
        photo_id: int | None = 42,
        series_id: int | None = None,
        **fields: Any,
    ) -> Comment:
        return Comment(
            id=comment_id,
            author=AuthorSummary(id=author_id, username=f"user{author_id}"),
            content=content or f"comment {comment_id}",
            photo_id=photo_id,
            series_id=series_id,
            parent_id=parent_id,
            created_at=fields.pop("created_at", CREATED_AT),
            **fields,
        )

    return _make


@pytest.fixture
def make_pagination() -> Callable[..., PaginationMeta]:
    """Factory for pagination metadata."""

    def _make(total: int = 0, page: int = 1, has_next: bool = False) -> PaginationMeta:
        return PaginationMeta(total=total, page=page, has_next=has_next)

    return _make


@pytest.fixture
def comment_payload() -> Callable[..., dict[str, Any]]:
    """Factory for comments as the remote service serializes them (camelCase)."""

    def _make(comment_id: int, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": comment_id,
            "author": {"id": 7, "username": "ana", "profileImageUrl": None},
            "content": f"comment {comment_id}",
            "photoId": 42,
            "parentId": None,
            "likesCount": 0,
            "repliesCount": 0,
            "isLikedByCurrentUser": False,
            "createdAt": "2024-05-01T12:00:00Z",
        }
        payload.update(overrides)
        return payload

    return _make
