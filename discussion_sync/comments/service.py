"""Comment session service.

Orchestrates one discussion-viewing session:
- Page loading (refresh / load more) into the optimistic store
- Gating of user actions (sign-in, ownership, validation, rate limits)
- Optimistic create/reply/delete/like with confirm or rollback
- Reconciliation of server-assigned comments and like flags

Validation, permission and rate-limit failures are raised before anything
changes locally. Remote failures roll the optimistic operation back and
are re-raised to the caller.
"""

import itertools
from datetime import UTC, datetime

from discussion_sync.auth.identity import Actor, ActorProvider
from discussion_sync.auth.permissions import can_delete, can_reply
from discussion_sync.config.settings import Settings, get_settings
from discussion_sync.core.context import SessionContext, generate_session_id
from discussion_sync.core.logging import get_logger

from .exceptions import (
    CommentError,
    CommentNotFoundError,
    PermissionDeniedError,
    RateLimitError,
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
    SortOrder,
    sort_comments,
)
from .optimistic import OptimisticCommentStore
from .rate_limit import (
    COMMENT_ACTION,
    LIKE_ACTION,
    REPLY_ACTION,
    RateLimiters,
    rate_limit_key,
)
from .repository import CommentRepository
from .tree import build_tree, expand_inline_replies
from .validators import ContentValidationResult, validate_comment_content


logger = get_logger(__name__)


class CommentService:
    """Service for one discussion context viewed by one actor."""

    def __init__(
        self,
        context: CommentContext,
        repository: CommentRepository,
        actor_provider: ActorProvider,
        *,
        store: OptimisticCommentStore | None = None,
        rate_limiters: RateLimiters | None = None,
        settings: Settings | None = None,
        session_id: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            context: Photo or series whose comments are shown
            repository: Remote comment service client
            actor_provider: External auth collaborator
            store: Optimistic store (a fresh one by default)
            rate_limiters: Per-action limiters (built from settings by default)
            settings: Settings override (defaults to get_settings())
            session_id: Identifier used in log context
        """
        self.settings = settings or get_settings()
        self.context = context
        self.repository = repository
        self.actor_provider = actor_provider
        self.store = store or OptimisticCommentStore(
            rollback_timeout=self.settings.optimistic_rollback_timeout_seconds
        )
        self.rate_limiters = rate_limiters or RateLimiters.from_settings(self.settings)
        self.session_id = session_id or generate_session_id()

        self.pagination: PaginationMeta | None = None
        self.loading = False
        self.last_error: CommentError | None = None
        # Local ids for comments the server has not numbered yet
        self._temp_ids = itertools.count(-1, -1)

    async def __aenter__(self) -> "CommentService":
        return self

    async def __aexit__(self, *_: object) -> None:
        self.close()

    def close(self) -> None:
        """End the session: cancel every pending rollback timer."""
        self.store.destroy()

    # ==========================================================================
    # Views
    # ==========================================================================

    @property
    def actor(self) -> Actor | None:
        return self.actor_provider.current_actor()

    @property
    def comments(self) -> list[Comment]:
        return self.store.comments

    @property
    def has_more(self) -> bool:
        return bool(self.pagination and self.pagination.has_next)

    def build_tree(self, sort_by: SortOrder | None = None) -> list[CommentTreeNode]:
        """Nested view of the visible comments, capped at max_reply_depth."""
        comments = self.store.comments
        if sort_by is not None:
            comments = sort_comments(comments, sort_by)
        return build_tree(comments, max_depth=self.settings.max_reply_depth)

    def find_comment(self, comment_id: int) -> Comment | None:
        for comment in self.store.comments:
            if comment.id == comment_id:
                return comment
        return None

    def _scope(
        self, actor: Actor | None = None, operation_id: str | None = None
    ) -> SessionContext:
        return SessionContext(
            session_id=self.session_id,
            actor_id=actor.id if actor else None,
            operation_id=operation_id,
        )

    # ==========================================================================
    # Loading
    # ==========================================================================

    async def refresh(self) -> CommentPage | None:
        """Reload page 1, replacing the visible list."""
        return await self._load_page(1)

    async def load_more(self) -> CommentPage | None:
        """Append the next page; no-op while loading or past the last page."""
        if self.loading or not self.has_more:
            return None
        next_page = self.pagination.page + 1  # type: ignore[union-attr]
        return await self._load_page(next_page)

    async def _load_page(self, page: int) -> CommentPage | None:
        if self.loading:
            logger.debug("comment_page_load_skipped", page=page)
            return None

        with self._scope(self.actor):
            self.loading = True
            self.last_error = None
            try:
                result = await self.repository.fetch_page(
                    self.context, page, self.settings.comments_page_size
                )
            except CommentError as exc:
                self.last_error = exc
                logger.warning("comment_page_load_failed", page=page, error=exc.code)
                raise
            finally:
                self.loading = False

            comments = expand_inline_replies(result.comments)
            if page == 1:
                self.store.set_comments(comments)
            else:
                self.store.append_comments(comments)
            self.pagination = result.pagination
            return result

    def _adjust_total(self, delta: int) -> None:
        if self.pagination is None:
            return
        total = max(0, self.pagination.total + delta)
        self.pagination = self.pagination.model_copy(update={"total": total})

    # ==========================================================================
    # Gates
    # ==========================================================================

    def _require_actor(self) -> Actor:
        actor = self.actor_provider.current_actor()
        if actor is None:
            msg = "Sign in to interact with comments"
            raise PermissionDeniedError(msg)
        return actor

    def _require_comment(self, comment_id: int) -> Comment:
        comment = self.find_comment(comment_id)
        if comment is None:
            raise CommentNotFoundError(comment_id)
        if comment.is_pending:
            msg = "Comment is still being posted"
            raise PermissionDeniedError(msg)
        return comment

    def _validate(self, content: str) -> ContentValidationResult:
        result = validate_comment_content(
            content,
            min_length=self.settings.comment_min_length,
            max_length=self.settings.comment_max_length,
        )
        if not result.is_valid:
            logger.info("comment_rejected", errors=result.errors)
            raise ValidationError(result.errors)
        return result

    def _check_rate_limit(self, actor: Actor, action: str) -> None:
        limiter = self.rate_limiters.for_action(action)
        key = rate_limit_key(actor.id, action)
        if not limiter.is_allowed(key):
            raise RateLimitError(limiter.get_reset_time(key), action)

    # ==========================================================================
    # Mutations
    # ==========================================================================

    def _pending_comment(
        self, actor: Actor, content: str, parent_id: int | None
    ) -> Comment:
        photo = self.context.kind is ContextKind.PHOTO
        return Comment(
            id=next(self._temp_ids),
            author=AuthorSummary(
                id=actor.id,
                username=actor.username,
                profile_image_url=actor.profile_image_url,
            ),
            content=content,
            photo_id=self.context.id if photo else None,
            series_id=None if photo else self.context.id,
            parent_id=parent_id,
            created_at=datetime.now(UTC),
            is_pending=True,
        )

    async def create_comment(
        self, content: str, parent_id: int | None = None
    ) -> Comment:
        """Post a comment (or a reply when parent_id is given).

        The pending comment is at the head of the visible list before the
        remote call starts; it is swapped for the server's comment on success.

        Raises:
            PermissionDeniedError: No signed-in actor, or parent is deleted or
                still being posted
            ValidationError: Content rejected (nothing changed)
            RateLimitError: Quota exhausted (nothing changed)
            NetworkError / RemoteError: Remote call failed (rolled back)
        """
        actor = self._require_actor()
        action = COMMENT_ACTION if parent_id is None else REPLY_ACTION

        with self._scope(actor):
            if parent_id is not None:
                parent = self.find_comment(parent_id)
                # Negative ids are local placeholders the server has never seen
                if parent_id < 0 or (parent is not None and parent.is_pending):
                    msg = "Cannot reply to a comment that is still being posted"
                    raise PermissionDeniedError(msg)
                if parent is not None and not can_reply(parent, actor):
                    msg = "Cannot reply to a deleted comment"
                    raise PermissionDeniedError(msg)

            validation = self._validate(content)
            self._check_rate_limit(actor, action)

            pending = self._pending_comment(actor, validation.sanitized, parent_id)
            if parent_id is None:
                operation_id = self.store.apply(OperationType.CREATE, pending)
            else:
                operation_id = self.store.apply(
                    OperationType.CREATE,
                    pending,
                    update_fn=lambda items: [
                        pending,
                        *(
                            c.model_copy(update={"replies_count": c.replies_count + 1})
                            if c.id == parent_id
                            else c
                            for c in items
                        ),
                    ],
                )
            self._adjust_total(1)

        with self._scope(actor, operation_id):
            try:
                created = await self.repository.create(content, self.context, parent_id)
            except CommentError:
                self.store.rollback(operation_id)
                self._adjust_total(-1)
                raise

            if not self.store.is_pending(operation_id):
                # Rolled back by timeout (or superseded) while waiting
                self._adjust_total(-1)
                logger.warning("comment_created_after_rollback", comment_id=created.id)
                return created

            self.store.confirm(operation_id)
            self.store.reconcile(pending.id, created)
            return created

    async def reply(self, parent_id: int, content: str) -> Comment:
        """Reply to an existing comment (separate quota from top-level comments)."""
        return await self.create_comment(content, parent_id=parent_id)

    async def delete_comment(self, comment_id: int) -> None:
        """Remove a comment immediately, restoring it if the remote delete fails.

        Raises:
            CommentNotFoundError: Comment is not visible
            PermissionDeniedError: Actor does not own the comment, or it is
                still being posted
            NetworkError / RemoteError: Remote call failed (rolled back)
        """
        actor = self._require_actor()

        with self._scope(actor):
            comment = self._require_comment(comment_id)
            if not can_delete(comment, actor):
                msg = "Only the author can delete this comment"
                raise PermissionDeniedError(msg)

            operation_id = self.store.apply(OperationType.DELETE, comment)
            self._adjust_total(-1)

        with self._scope(actor, operation_id):
            try:
                await self.repository.delete(comment_id)
            except CommentError:
                self.store.rollback(operation_id)
                self._adjust_total(1)
                raise

            if not self.store.is_pending(operation_id):
                self._adjust_total(1)
                logger.warning("comment_deleted_after_rollback", comment_id=comment_id)
                return

            self.store.confirm(operation_id)

    async def toggle_like(self, comment_id: int) -> bool:
        """Flip the actor's like on a comment; returns the server's liked flag.

        The like count shown is local: +1/-1 from the visible value. When the
        server's flag disagrees with the optimistic one, the comment is
        corrected to the server's flag; exact counts arrive on refresh().
        """
        actor = self._require_actor()

        with self._scope(actor):
            comment = self._require_comment(comment_id)
            self._check_rate_limit(actor, LIKE_ACTION)

            liked = not comment.liked_by_current_user
            optimistic = comment.model_copy(
                update={
                    "liked_by_current_user": liked,
                    "likes_count": max(0, comment.likes_count + (1 if liked else -1)),
                }
            )
            operation_id = self.store.apply(OperationType.LIKE, optimistic)

        with self._scope(actor, operation_id):
            try:
                server_liked = await self.repository.toggle_like(
                    comment_id, self.context
                )
            except CommentError:
                self.store.rollback(operation_id)
                raise

            if not self.store.is_pending(operation_id):
                logger.warning("comment_liked_after_rollback", comment_id=comment_id)
                return server_liked

            self.store.confirm(operation_id)
            if server_liked != liked:
                current = self.find_comment(comment_id)
                if current is not None:
                    corrected = current.model_copy(
                        update={
                            "liked_by_current_user": server_liked,
                            "likes_count": max(
                                0, current.likes_count + (1 if server_liked else -1)
                            ),
                        }
                    )
                    self.store.reconcile(comment_id, corrected)
                logger.info(
                    "comment_like_reconciled",
                    comment_id=comment_id,
                    liked=server_liked,
                )
            return server_liked
