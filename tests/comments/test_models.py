"""Tests for comment domain models."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from discussion_sync.comments.models import (
    Comment,
    CommentContext,
    ContextKind,
    SortOrder,
    comment_fields,
    engagement_score,
    sort_comments,
)


NOW = datetime(2024, 5, 10, 12, 0, tzinfo=UTC)


class TestComment:
    """Tests for the Comment model."""

    def test_parses_wire_payload(self, comment_payload) -> None:
        comment = Comment.model_validate(
            comment_payload(1, likesCount=2, isLikedByCurrentUser=True)
        )

        assert comment.likes_count == 2
        assert comment.liked_by_current_user is True
        assert comment.context == CommentContext.photo(42)
        assert comment.is_pending is False

    def test_requires_exactly_one_context(self, comment_payload) -> None:
        with pytest.raises(ValidationError, match="exactly one of photoId or seriesId"):
            Comment.model_validate(comment_payload(1, seriesId=3))

        with pytest.raises(ValidationError):
            Comment.model_validate(comment_payload(1, photoId=None))

    def test_rejects_negative_likes(self, comment_payload) -> None:
        with pytest.raises(ValidationError):
            Comment.model_validate(comment_payload(1, likesCount=-1))

    def test_is_frozen(self, make_comment) -> None:
        comment = make_comment(1)
        with pytest.raises(ValidationError):
            comment.content = "changed"

    def test_pending_flag_not_serialized(self, make_comment) -> None:
        comment = make_comment(-1, is_pending=True)
        assert "isPending" not in comment.model_dump(by_alias=True)

    def test_deleted_and_replies(self, make_comment) -> None:
        comment = make_comment(
            1, deleted_at=NOW, replies_count=1, replies=(make_comment(2, 1),)
        )

        assert comment.is_deleted is True
        assert comment.has_replies() is True
        assert make_comment(3, replies_count=4).has_replies() is False

    def test_comment_fields_only_set_fields(self, comment_payload) -> None:
        comment = Comment.model_validate(comment_payload(1))
        assert "deleted_at" not in comment_fields(comment)
        assert comment_fields(comment)["content"] == "comment 1"


class TestCommentContext:
    """Tests for CommentContext."""

    def test_photo_paths(self) -> None:
        context = CommentContext.photo(42)

        assert context.kind is ContextKind.PHOTO
        assert context.comments_path == "photos/42/comments"
        assert context.like_fields() == {"photoId": 42}

    def test_series_paths(self) -> None:
        context = CommentContext.series(3)

        assert context.comments_path == "series/3/comments"
        assert context.like_fields() == {"seriesId": 3}


class TestEngagement:
    """Tests for engagement_score and sort_comments."""

    def test_fresh_comment_not_decayed(self, make_comment) -> None:
        comment = make_comment(
            1, likes_count=3, replies_count=2, created_at=NOW - timedelta(hours=2)
        )
        assert engagement_score(comment, NOW) == 12.0

    def test_decays_with_age(self, make_comment) -> None:
        comment = make_comment(
            1, likes_count=3, replies_count=2, created_at=NOW - timedelta(days=4)
        )
        assert engagement_score(comment, NOW) == 3.0

    def test_sort_orders(self, make_comment) -> None:
        old = make_comment(1, likes_count=50, created_at=NOW - timedelta(days=1))
        new = make_comment(2, created_at=NOW - timedelta(hours=1))
        mid = make_comment(3, likes_count=1, created_at=NOW - timedelta(hours=5))
        comments = [old, new, mid]

        assert [c.id for c in sort_comments(comments, SortOrder.NEWEST)] == [2, 3, 1]
        assert [c.id for c in sort_comments(comments, SortOrder.OLDEST)] == [1, 3, 2]
        popular = sort_comments(comments, SortOrder.POPULAR, now=NOW)
        assert [c.id for c in popular] == [1, 3, 2]
