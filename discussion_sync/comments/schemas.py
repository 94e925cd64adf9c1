"""Pydantic schemas for requests to and responses from the comment service."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import Comment, PaginationMeta


class _WireSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(_WireSchema):
    """Body of POST {context}/comments."""

    content: str = Field(..., min_length=1)
    parent_id: int | None = None


class ToggleLikeRequest(_WireSchema):
    """Body of POST /likes for a comment."""

    comment_id: int
    photo_id: int | None = None
    series_id: int | None = None


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentListResponse(_WireSchema):
    """Paginated list of comments."""

    data: list[Comment]
    pagination: PaginationMeta


class ToggleLikeResponse(_WireSchema):
    """Like toggle result; the service does not return the updated comment."""

    liked: bool
    message: str | None = None


class ErrorBody(_WireSchema):
    """Error payload nested under "error" in failed responses."""

    code: str = "UNKNOWN_ERROR"
    message: str | None = None
    details: dict | None = None
