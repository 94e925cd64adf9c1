"""HTTP repository for the remote comment service.

Talks to the service over httpx and maps every failure onto the engine's
error taxonomy:
- transport failures and timeouts -> NetworkError
- non-success responses or unparsable bodies -> RemoteError
- content rejected by the validator -> ValidationError (no request sent)

Responses are accepted either bare or wrapped as {"success": ..., "data": ...}.
There is no retry here; recovery from a failed mutation is the optimistic
store's rollback.
"""

from typing import Any, NamedTuple, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from discussion_sync.auth.identity import ActorProvider
from discussion_sync.config.settings import Settings, get_settings
from discussion_sync.core.logging import get_logger

from .exceptions import NetworkError, RemoteError, ValidationError
from .models import Comment, CommentContext, CommentPage
from .schemas import (
    CommentListResponse,
    CreateCommentRequest,
    ErrorBody,
    ToggleLikeRequest,
    ToggleLikeResponse,
)
from .validators import validate_comment_content


logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MISSING_CONTEXT_MESSAGE = "photoId or seriesId is required"


class _ApiResult(NamedTuple):
    status_code: int
    data: Any


class CommentRepository:
    """Async client for fetching and mutating comments on the remote service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        *,
        actor_provider: ActorProvider | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            base_url: Service base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            actor_provider: Supplies the bearer token of the current actor
            client: Pre-built httpx client; closed by its owner, not here
            transport: Custom transport for a repository-owned client
            settings: Settings override (defaults to get_settings())
        """
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.settings.comments_api_base_url).rstrip("/")
        self.timeout = timeout or self.settings.comments_api_timeout_seconds
        self.actor_provider = actor_provider

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

        logger.debug("comment_repository_initialized", base_url=self.base_url)

    async def __aenter__(self) -> "CommentRepository":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this repository created it."""
        if self._owns_client:
            await self._client.aclose()

    # ==========================================================================
    # Transport
    # ==========================================================================

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _auth_headers(self) -> dict[str, str]:
        actor = self.actor_provider.current_actor() if self.actor_provider else None
        if actor is not None and actor.token:
            return {"Authorization": f"Bearer {actor.token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> _ApiResult:
        """Send one request and unwrap its payload.

        Raises:
            NetworkError: Transport failure or timeout
            RemoteError: Non-success status, failed envelope or bad JSON
        """
        url = self._url(path)
        logger.debug("comment_api_request", method=method, path=path)

        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json_data,
                headers=self._auth_headers(),
            )
        except httpx.TimeoutException as exc:
            logger.warning("comment_api_timeout", method=method, path=path)
            msg = f"Request timed out: {method} {path}"
            raise NetworkError(msg) from exc
        except httpx.RequestError as exc:
            logger.warning(
                "comment_api_transport_error", method=method, path=path, error=str(exc)
            )
            msg = f"Request failed: {method} {path}: {exc}"
            raise NetworkError(msg) from exc

        logger.debug(
            "comment_api_response",
            method=method,
            path=path,
            status_code=response.status_code,
        )
        return _ApiResult(response.status_code, self._handle_response(response))

    def _handle_response(self, response: httpx.Response) -> Any:
        status_code = response.status_code

        if not response.content:
            if response.is_success:
                return None
            msg = f"HTTP {status_code}"
            raise RemoteError(msg, status_code)

        try:
            body = response.json()
        except ValueError as exc:
            msg = "Could not parse response body"
            raise RemoteError(msg, status_code, code="PARSE_ERROR") from exc

        if response.is_success:
            if isinstance(body, dict) and "success" in body:
                if body["success"]:
                    return body.get("data")
            else:
                return body

        raise self._error_from_body(body, status_code)

    @staticmethod
    def _error_from_body(body: Any, status_code: int) -> RemoteError:
        if not isinstance(body, dict):
            return RemoteError(f"HTTP {status_code}", status_code)

        raw_error = body.get("error")
        if isinstance(raw_error, dict):
            error = ErrorBody.model_validate(raw_error)
        else:
            error = ErrorBody(message=raw_error if isinstance(raw_error, str) else None)

        message = body.get("message") or error.message or "Unknown error"
        logger.info(
            "comment_api_error",
            status_code=status_code,
            code=error.code,
            message=message,
        )
        return RemoteError(message, status_code, code=error.code, details=error.details)

    @staticmethod
    def _parse(model: type[ModelT], result: _ApiResult, what: str) -> ModelT:
        try:
            return model.model_validate(result.data)
        except SchemaValidationError as exc:
            msg = f"Unexpected {what} payload from comment service"
            raise RemoteError(
                msg,
                result.status_code,
                code="PARSE_ERROR",
                details={"errors": str(exc)},
            ) from exc

    # ==========================================================================
    # Operations
    # ==========================================================================

    async def fetch_page(
        self,
        context: CommentContext,
        page: int = 1,
        page_size: int | None = None,
    ) -> CommentPage:
        """Fetch one page of comments for a discussion context.

        Page 1 is meant to replace the caller's list; later pages are
        appended by the caller. Duplicate concurrent fetches are not
        prevented here.
        """
        if page < 1:
            msg = f"page must be >= 1, got {page}"
            raise ValueError(msg)

        limit = page_size or self.settings.comments_page_size
        result = await self._request(
            "GET", context.comments_path, params={"page": page, "limit": limit}
        )
        listing = self._parse(CommentListResponse, result, "comment list")

        logger.info(
            "comments_page_fetched",
            context=context.kind.value,
            context_id=context.id,
            page=listing.pagination.page,
            count=len(listing.data),
            has_next=listing.pagination.has_next,
        )
        return CommentPage(comments=listing.data, pagination=listing.pagination)

    async def create(
        self,
        content: str,
        context: CommentContext | None,
        parent_id: int | None = None,
    ) -> Comment:
        """Validate and post a new comment; returns the server-assigned comment.

        Raises:
            ValidationError: Missing context or invalid content (nothing sent)
        """
        if context is None:
            raise ValidationError([MISSING_CONTEXT_MESSAGE])

        validation = validate_comment_content(
            content,
            min_length=self.settings.comment_min_length,
            max_length=self.settings.comment_max_length,
        )
        if not validation.is_valid:
            logger.info("comment_rejected", errors=validation.errors)
            raise ValidationError(validation.errors)

        request = CreateCommentRequest(
            content=validation.sanitized, parent_id=parent_id
        )
        result = await self._request(
            "POST",
            context.comments_path,
            json_data=request.model_dump(by_alias=True, exclude_none=True),
        )
        comment = self._parse(Comment, result, "comment")

        logger.info(
            "comment_created",
            comment_id=comment.id,
            parent_id=parent_id,
            context=context.kind.value,
            context_id=context.id,
        )
        return comment

    async def delete(self, comment_id: int) -> None:
        """Delete a comment on the remote service."""
        await self._request("DELETE", f"comments/{comment_id}")
        logger.info("comment_deleted", comment_id=comment_id)

    async def toggle_like(self, comment_id: int, context: CommentContext) -> bool:
        """Toggle the current actor's like; returns only the resulting liked flag."""
        request = ToggleLikeRequest.model_validate(
            {"commentId": comment_id, **context.like_fields()}
        )
        result = await self._request(
            "POST",
            "likes",
            json_data=request.model_dump(by_alias=True, exclude_none=True),
        )
        liked = self._parse(ToggleLikeResponse, result, "like toggle").liked
        logger.info("comment_like_toggled", comment_id=comment_id, liked=liked)
        return liked
