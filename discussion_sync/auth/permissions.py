"""Ownership-based permission checks for comments.

Only the author may edit or delete a comment, and nothing can be done
with a soft-deleted comment except display it.
"""

from typing import TYPE_CHECKING

from .identity import Actor


if TYPE_CHECKING:
    from discussion_sync.comments.models import Comment


def is_owner(comment: "Comment", actor: Actor | None) -> bool:
    """Check if the actor authored the comment."""
    return actor is not None and comment.author.id == actor.id


def can_edit(comment: "Comment", actor: Actor | None) -> bool:
    """Check if the actor may edit the comment."""
    return is_owner(comment, actor) and comment.deleted_at is None


def can_delete(comment: "Comment", actor: Actor | None) -> bool:
    """Check if the actor may delete the comment."""
    return is_owner(comment, actor) and comment.deleted_at is None


def can_reply(comment: "Comment", actor: Actor | None) -> bool:
    """Any signed-in actor may reply to a comment that is not deleted."""
    return actor is not None and comment.deleted_at is None
