"""Optimistic operation store for the visible comment list.

The store is the single owner of the list shown to the user. Every
mutation is applied synchronously, the pre-mutation list is kept as a
snapshot, and a rollback is scheduled on the running event loop in case
the remote call never resolves.

Lifecycle of one operation:
    Pending -> Confirmed   (confirm: snapshot discarded, mutation kept)
    Pending -> RolledBack  (rollback or timeout: snapshot restored)
Both end states are terminal; later confirm/rollback calls are no-ops.

Snapshots hold the whole list, so restoring an older snapshot also wipes
out every operation applied after it. Those newer operations are dropped
together with the one being rolled back (see rollback()).
"""

import asyncio
import itertools
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from uuid import uuid4

from discussion_sync.config.settings import get_settings
from discussion_sync.core.logging import get_logger

from .exceptions import StaleOperationError
from .models import Comment, OperationType, PendingOperation, comment_fields


logger = get_logger(__name__)

ListTransform = Callable[[list[Comment]], list[Comment]]
ChangeListener = Callable[[list[Comment]], None]


def apply_default_transform(
    operation_type: OperationType,
    payload: Comment,
    comments: list[Comment],
) -> list[Comment]:
    """Compute the list after a create/update/delete/like of payload.

    - create: payload is placed at the head
    - update: fields set on payload are merged into the matching comment
    - delete: the matching comment is removed
    - like: liked flag and like count are copied from payload
    """
    if operation_type is OperationType.CREATE:
        return [payload, *comments]

    if operation_type is OperationType.UPDATE:
        fields = comment_fields(payload)
        return [
            c.model_copy(update=fields) if c.id == payload.id else c for c in comments
        ]

    if operation_type is OperationType.DELETE:
        return [c for c in comments if c.id != payload.id]

    if operation_type is OperationType.LIKE:
        return [
            c.model_copy(
                update={
                    "liked_by_current_user": payload.liked_by_current_user,
                    "likes_count": payload.likes_count,
                }
            )
            if c.id == payload.id
            else c
            for c in comments
        ]

    return list(comments)


class OptimisticCommentStore:
    """Visible comment list with snapshot-based optimistic operations.

    One store per discussion-viewing session; call destroy() when the
    session ends so no rollback timer outlives it.
    """

    def __init__(
        self,
        initial_comments: Iterable[Comment] | None = None,
        rollback_timeout: float | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the store.

        Args:
            initial_comments: List shown before anything is fetched
            rollback_timeout: Seconds before an unresolved operation is
                rolled back (defaults to settings, 10s)
            loop: Event loop for rollback timers (defaults to the running loop)
            clock: Time source recorded as each operation's created_at
        """
        self.rollback_timeout = (
            rollback_timeout
            if rollback_timeout is not None
            else get_settings().optimistic_rollback_timeout_seconds
        )
        self._comments: list[Comment] = list(initial_comments or [])
        self._operations: dict[str, PendingOperation] = {}
        self._sequence = itertools.count(1)
        self._listeners: list[ChangeListener] = []
        self._loop = loop
        self._clock = clock
        self._destroyed = False

    # ==========================================================================
    # Visible list
    # ==========================================================================

    @property
    def comments(self) -> list[Comment]:
        """Copy of the currently visible list."""
        return list(self._comments)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a callback invoked with the new list after every change.

        Returns:
            A function that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, comments: list[Comment]) -> None:
        self._comments = comments
        for listener in list(self._listeners):
            listener(list(comments))

    def set_comments(self, comments: Iterable[Comment]) -> None:
        """Replace the visible list (e.g. with a freshly fetched first page).

        Pending operations keep their snapshots; a later rollback restores
        the list as it was before that operation, not this replacement.
        """
        if self._operations:
            logger.debug(
                "visible_list_replaced_with_pending_operations",
                pending=len(self._operations),
            )
        self._publish(list(comments))

    def append_comments(self, comments: Iterable[Comment]) -> int:
        """Append comments not already visible; returns how many were added.

        Appended comments are server data, so they are also appended to
        every pending snapshot and survive a later rollback.
        """
        known = {c.id for c in self._comments}
        added: list[Comment] = []
        for comment in comments:
            if comment.id not in known:
                known.add(comment.id)
                added.append(comment)
        if not added:
            return 0

        for operation in self._operations.values():
            held = {c.id for c in operation.original_snapshot}
            operation.original_snapshot = (
                *operation.original_snapshot,
                *(c for c in added if c.id not in held),
            )
        self._publish([*self._comments, *added])
        return len(added)

    def reconcile(self, comment_id: int, canonical: Comment) -> bool:
        """Swap comment_id for its canonical version everywhere it is held.

        Applies to the visible list and to every pending snapshot, so a
        later rollback of an unrelated operation does not resurrect the
        stale version.

        Returns:
            True if the comment was in the visible list.
        """

        def swap(items: Iterable[Comment]) -> list[Comment]:
            return [canonical if c.id == comment_id else c for c in items]

        for operation in self._operations.values():
            operation.original_snapshot = tuple(swap(operation.original_snapshot))

        found = any(c.id == comment_id for c in self._comments)
        if found:
            self._publish(swap(self._comments))
        return found

    # ==========================================================================
    # Operations
    # ==========================================================================

    def apply(
        self,
        operation_type: OperationType | str,
        payload: Comment | None = None,
        update_fn: ListTransform | None = None,
    ) -> str:
        """Apply a mutation to the visible list immediately.

        Args:
            operation_type: create, update, delete or like
            payload: Comment the default transform works from
            update_fn: Custom transform from the current list to the new one

        Returns:
            The operation id to confirm or roll back.
        """
        if self._destroyed:
            msg = "Store has been destroyed"
            raise RuntimeError(msg)

        operation_type = OperationType(operation_type)
        loop = self._loop or asyncio.get_running_loop()
        snapshot = tuple(self._comments)

        if update_fn is not None:
            updated = list(update_fn(list(snapshot)))
        elif payload is not None:
            updated = apply_default_transform(operation_type, payload, list(snapshot))
        else:
            msg = "apply() needs a payload or an update_fn"
            raise ValueError(msg)

        operation = PendingOperation(
            id=uuid4().hex,
            type=operation_type,
            original_snapshot=snapshot,
            created_at=self._clock(),
            sequence=next(self._sequence),
            payload=payload,
        )
        operation.timer = loop.call_later(
            self.rollback_timeout, self._expire, operation.id
        )
        self._operations[operation.id] = operation

        self._publish(updated)
        logger.debug(
            "optimistic_operation_applied",
            operation_id=operation.id,
            operation_type=operation_type.value,
            comment_id=payload.id if payload is not None else None,
            pending=len(self._operations),
        )
        return operation.id

    def _take(self, operation_id: str) -> PendingOperation:
        """Remove a pending operation and cancel its timer."""
        operation = self._operations.pop(operation_id, None)
        if operation is None:
            raise StaleOperationError(operation_id)
        if operation.timer is not None:
            operation.timer.cancel()
            operation.timer = None
        return operation

    def confirm(self, operation_id: str) -> bool:
        """Make an operation's mutation permanent.

        Returns:
            False when the operation was no longer pending (no-op).
        """
        try:
            operation = self._take(operation_id)
        except StaleOperationError:
            logger.debug(
                "optimistic_operation_stale",
                operation_id=operation_id,
                action="confirm",
            )
            return False

        logger.debug(
            "optimistic_operation_confirmed",
            operation_id=operation_id,
            operation_type=operation.type.value,
        )
        return True

    def rollback(self, operation_id: str) -> bool:
        """Restore the list to the operation's snapshot.

        Operations applied after this one are discarded as well: the
        restored snapshot predates them, and keeping them pending would let
        their own rollback bring this operation's effect back.

        Returns:
            False when the operation was no longer pending (no-op).
        """
        try:
            operation = self._take(operation_id)
        except StaleOperationError:
            logger.debug(
                "optimistic_operation_stale",
                operation_id=operation_id,
                action="rollback",
            )
            return False

        superseded = sorted(
            (
                op
                for op in self._operations.values()
                if op.sequence > operation.sequence
            ),
            key=lambda op: op.sequence,
        )
        for newer in superseded:
            self._take(newer.id)
        if superseded:
            logger.warning(
                "optimistic_operations_superseded",
                operation_id=operation_id,
                superseded=[op.id for op in superseded],
            )

        self._publish(list(operation.original_snapshot))
        logger.info(
            "optimistic_operation_rolled_back",
            operation_id=operation_id,
            operation_type=operation.type.value,
        )
        return True

    def _expire(self, operation_id: str) -> None:
        """Timer callback: roll back an operation nobody resolved in time."""
        if operation_id not in self._operations:
            return
        logger.warning(
            "optimistic_operation_timed_out",
            operation_id=operation_id,
            timeout_seconds=self.rollback_timeout,
        )
        self.rollback(operation_id)

    def rollback_all(self) -> int:
        """Restore the list to before the earliest pending operation.

        Returns:
            Number of operations rolled back.
        """
        if not self._operations:
            return 0

        earliest = min(self._operations.values(), key=lambda op: op.sequence)
        count = len(self._operations)
        for operation_id in list(self._operations):
            self._take(operation_id)

        self._publish(list(earliest.original_snapshot))
        logger.info("optimistic_operations_rolled_back", count=count)
        return count

    # ==========================================================================
    # Introspection / teardown
    # ==========================================================================

    def is_pending(self, operation_id: str) -> bool:
        return operation_id in self._operations

    @property
    def pending_operations(self) -> list[PendingOperation]:
        """Pending operations, oldest first (copies without timer handles)."""
        return [
            replace(op, timer=None)
            for op in sorted(self._operations.values(), key=lambda op: op.sequence)
        ]

    def destroy(self) -> None:
        """Cancel every timer and drop all pending operations."""
        for operation_id in list(self._operations):
            self._take(operation_id)
        self._listeners.clear()
        self._destroyed = True
        logger.debug("optimistic_store_destroyed")
