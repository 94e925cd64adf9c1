"""Tests for the HTTP comment repository.

The remote service is replaced with httpx.MockTransport handlers.
"""

import json

import httpx
import pytest

from discussion_sync.auth.identity import StaticActorProvider
from discussion_sync.comments.exceptions import (
    NetworkError,
    RemoteError,
    ValidationError,
)
from discussion_sync.comments.models import CommentContext
from discussion_sync.comments.repository import CommentRepository


BASE_URL = "http://comments.test/api"
EMPTY_PAGE = {"data": [], "pagination": {"total": 0, "page": 1, "hasNext": False}}


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def make_repository(settings, actor_provider):
    def _make(handler, provider=actor_provider) -> CommentRepository:
        return CommentRepository(
            BASE_URL,
            actor_provider=provider,
            transport=httpx.MockTransport(handler),
            settings=settings,
        )

    return _make


class TestFetchPage:
    """Tests for fetch_page."""

    @pytest.mark.asyncio
    async def test_parses_page(self, make_repository, comment_payload) -> None:
        """Comments and pagination are parsed from camelCase JSON."""
        handler = Recorder(
            httpx.Response(
                200,
                json={
                    "data": [comment_payload(1), comment_payload(2, parentId=1)],
                    "pagination": {"total": 25, "page": 1, "hasNext": True},
                },
            )
        )
        async with make_repository(handler) as repository:
            page = await repository.fetch_page(CommentContext.photo(42), 1, 20)

        assert [c.id for c in page.comments] == [1, 2]
        assert page.comments[1].parent_id == 1
        assert page.pagination.total == 25
        assert page.pagination.has_next is True

        request = handler.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/photos/42/comments"
        assert request.url.params["page"] == "1"
        assert request.url.params["limit"] == "20"

    @pytest.mark.asyncio
    async def test_unwraps_success_envelope(
        self, make_repository, comment_payload
    ) -> None:
        handler = Recorder(
            httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {
                        "data": [comment_payload(1, photoId=None, seriesId=3)],
                        "pagination": {"total": 1, "page": 2, "hasNext": False},
                    },
                },
            )
        )
        async with make_repository(handler) as repository:
            page = await repository.fetch_page(CommentContext.series(3), 2)

        assert page.comments[0].series_id == 3
        assert page.pagination.page == 2
        assert handler.requests[0].url.path == "/api/series/3/comments"

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, make_repository) -> None:
        handler = Recorder(httpx.Response(200, json=EMPTY_PAGE))
        async with make_repository(handler) as repository:
            await repository.fetch_page(CommentContext.photo(42))

        assert handler.requests[0].headers["Authorization"] == "Bearer secret-token-123"

    @pytest.mark.asyncio
    async def test_anonymous_request_has_no_token(self, make_repository) -> None:
        handler = Recorder(httpx.Response(200, json=EMPTY_PAGE))
        async with make_repository(handler, StaticActorProvider()) as repository:
            await repository.fetch_page(CommentContext.photo(42))

        assert "Authorization" not in handler.requests[0].headers

    @pytest.mark.asyncio
    async def test_rejects_page_zero(self, make_repository) -> None:
        handler = Recorder(httpx.Response(200))
        async with make_repository(handler) as repository:
            with pytest.raises(ValueError, match="page must be >= 1"):
                await repository.fetch_page(CommentContext.photo(42), 0)
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_remote_error(self, make_repository) -> None:
        """Non-success responses carry the service's code and message."""
        handler = Recorder(
            httpx.Response(
                404,
                json={
                    "success": False,
                    "error": {"code": "PHOTO_NOT_FOUND", "message": "Photo not found"},
                },
            )
        )
        async with make_repository(handler) as repository:
            with pytest.raises(RemoteError) as exc_info:
                await repository.fetch_page(CommentContext.photo(42))

        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "PHOTO_NOT_FOUND"
        assert exc_info.value.message == "Photo not found"
        assert exc_info.value.is_client_error is True

    @pytest.mark.asyncio
    async def test_failed_envelope_with_success_status(self, make_repository) -> None:
        handler = Recorder(
            httpx.Response(200, json={"success": False, "message": "Not allowed"})
        )
        async with make_repository(handler) as repository:
            with pytest.raises(RemoteError, match="Not allowed"):
                await repository.fetch_page(CommentContext.photo(42))

    @pytest.mark.asyncio
    async def test_unparsable_body(self, make_repository) -> None:
        handler = Recorder(httpx.Response(502, text="<html>Bad gateway</html>"))
        async with make_repository(handler) as repository:
            with pytest.raises(RemoteError) as exc_info:
                await repository.fetch_page(CommentContext.photo(42))

        assert exc_info.value.code == "PARSE_ERROR"
        assert exc_info.value.is_server_error is True

    @pytest.mark.asyncio
    async def test_unexpected_payload(self, make_repository) -> None:
        handler = Recorder(httpx.Response(200, json={"items": []}))
        async with make_repository(handler) as repository:
            with pytest.raises(RemoteError) as exc_info:
                await repository.fetch_page(CommentContext.photo(42))

        assert exc_info.value.code == "PARSE_ERROR"

    @pytest.mark.asyncio
    async def test_transport_failure(self, make_repository) -> None:
        handler = Recorder(httpx.ConnectError("connection refused"))
        async with make_repository(handler) as repository:
            with pytest.raises(NetworkError, match="Request failed"):
                await repository.fetch_page(CommentContext.photo(42))

    @pytest.mark.asyncio
    async def test_timeout(self, make_repository) -> None:
        handler = Recorder(httpx.ReadTimeout("too slow"))
        async with make_repository(handler) as repository:
            with pytest.raises(NetworkError, match="timed out"):
                await repository.fetch_page(CommentContext.photo(42))


class TestCreate:
    """Tests for create."""

    @pytest.mark.asyncio
    async def test_posts_sanitized_content(
        self, make_repository, comment_payload
    ) -> None:
        handler = Recorder(
            httpx.Response(201, json=comment_payload(101, content="Hello", parentId=5))
        )
        async with make_repository(handler) as repository:
            comment = await repository.create(
                "  <b>Hello</b> ", CommentContext.photo(42), parent_id=5
            )

        assert comment.id == 101
        assert comment.content == "Hello"
        assert handler.requests[0].url.path == "/api/photos/42/comments"
        assert handler.last_json == {"content": "Hello", "parentId": 5}

    @pytest.mark.asyncio
    async def test_top_level_omits_parent(
        self, make_repository, comment_payload
    ) -> None:
        handler = Recorder(httpx.Response(201, json=comment_payload(101)))
        async with make_repository(handler) as repository:
            await repository.create("Hello", CommentContext.photo(42))

        assert handler.last_json == {"content": "Hello"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "x" * 501])
    async def test_invalid_content_sends_nothing(
        self, make_repository, content: str
    ) -> None:
        handler = Recorder(httpx.Response(201))
        async with make_repository(handler) as repository:
            with pytest.raises(ValidationError):
                await repository.create(content, CommentContext.photo(42))

        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_missing_context_sends_nothing(self, make_repository) -> None:
        handler = Recorder(httpx.Response(201))
        async with make_repository(handler) as repository:
            with pytest.raises(ValidationError) as exc_info:
                await repository.create("Hello", None)

        assert exc_info.value.errors == ["photoId or seriesId is required"]
        assert handler.requests == []


class TestDeleteAndLike:
    """Tests for delete and toggle_like."""

    @pytest.mark.asyncio
    async def test_delete(self, make_repository) -> None:
        handler = Recorder(httpx.Response(204))
        async with make_repository(handler) as repository:
            result = await repository.delete(5)

        assert result is None
        assert handler.requests[0].method == "DELETE"
        assert handler.requests[0].url.path == "/api/comments/5"

    @pytest.mark.asyncio
    async def test_delete_failure_without_body(self, make_repository) -> None:
        handler = Recorder(httpx.Response(500))
        async with make_repository(handler) as repository:
            with pytest.raises(RemoteError, match="HTTP 500"):
                await repository.delete(5)

    @pytest.mark.asyncio
    async def test_toggle_like_photo(self, make_repository) -> None:
        handler = Recorder(httpx.Response(200, json={"liked": True}))
        async with make_repository(handler) as repository:
            liked = await repository.toggle_like(5, CommentContext.photo(42))

        assert liked is True
        assert handler.requests[0].url.path == "/api/likes"
        assert handler.last_json == {"commentId": 5, "photoId": 42}

    @pytest.mark.asyncio
    async def test_toggle_like_series(self, make_repository) -> None:
        handler = Recorder(
            httpx.Response(200, json={"success": True, "data": {"liked": False}})
        )
        async with make_repository(handler) as repository:
            liked = await repository.toggle_like(5, CommentContext.series(3))

        assert liked is False
        assert handler.last_json == {"commentId": 5, "seriesId": 3}

    @pytest.mark.asyncio
    async def test_auth_error(self, make_repository) -> None:
        handler = Recorder(
            httpx.Response(
                401, json={"error": {"code": "AUTH_REQUIRED", "message": "Sign in"}}
            )
        )
        async with make_repository(handler) as repository:
            with pytest.raises(RemoteError) as exc_info:
                await repository.toggle_like(5, CommentContext.photo(42))

        assert exc_info.value.is_auth_error is True


class TestClientOwnership:
    """Tests for client lifecycle."""

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, settings) -> None:
        transport = httpx.MockTransport(Recorder(httpx.Response(204)))
        client = httpx.AsyncClient(transport=transport)
        repository = CommentRepository(BASE_URL, client=client, settings=settings)

        await repository.aclose()

        assert client.is_closed is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, settings) -> None:
        async with CommentRepository(settings=settings) as repository:
            assert repository.base_url == "http://localhost:3001/api"
            assert repository.timeout == 30.0
