"""Conversion between the flat comment list and a nested reply tree.

Comments whose parent is missing from the working set are adopted as
roots rather than dropped, and parent-link cycles are broken the same
way, so building and flattening a tree always keeps every comment id.
Traversals use explicit stacks; reply depth is capped at max_depth.
"""

from collections.abc import Iterable, Iterator

from .models import Comment, CommentTreeNode


MAX_REPLY_DEPTH = 5


def _link(comments: Iterable[Comment]) -> tuple[list[CommentTreeNode], list[int]]:
    """Create nodes and attach each to its parent; returns roots and id order."""
    nodes: dict[int, CommentTreeNode] = {}
    order: list[int] = []
    for comment in comments:
        # First occurrence wins for duplicated ids
        if comment.id in nodes:
            continue
        nodes[comment.id] = CommentTreeNode(comment=comment)
        order.append(comment.id)

    roots: list[CommentTreeNode] = []
    for comment_id in order:
        node = nodes[comment_id]
        parent_id = node.comment.parent_id
        if parent_id is None or parent_id == comment_id or parent_id not in nodes:
            roots.append(node)
        else:
            nodes[parent_id].children.append(node)

    _adopt_cycles(roots, nodes, order)
    return roots, order


def _adopt_cycles(
    roots: list[CommentTreeNode],
    nodes: dict[int, CommentTreeNode],
    order: list[int],
) -> None:
    """Promote comments trapped in parent-link cycles to roots."""
    reachable = {node.id for node in iter_tree(roots)}
    if len(reachable) == len(order):
        return

    position = {comment_id: index for index, comment_id in enumerate(order)}
    for comment_id in order:
        if comment_id in reachable:
            continue
        node = nodes[comment_id]
        parent = nodes[node.comment.parent_id]  # type: ignore[index]
        parent.children.remove(node)
        roots.append(node)
        reachable.update(n.id for n in iter_tree([node]))

    roots.sort(key=lambda n: position[n.id])


def _descendants(node: CommentTreeNode) -> list[CommentTreeNode]:
    """All descendants of node in pre-order, node excluded."""
    result: list[CommentTreeNode] = []
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        result.append(current)
        stack.extend(reversed(current.children))
    return result


def build_tree(
    comments: Iterable[Comment],
    max_depth: int = MAX_REPLY_DEPTH,
) -> list[CommentTreeNode]:
    """Group a flat, parent-linked list into reply trees.

    A comment is a root when its parent_id is None or refers to a comment
    not present in the input. Roots have depth 0 and each reply sits one
    level below its parent. Replies that would sit deeper than max_depth
    are placed right after their ancestor at depth max_depth, at that same
    depth. Siblings keep their relative input order.

    Args:
        comments: Flat comment list (replies may precede their parents)
        max_depth: Deepest depth a node may have

    Returns:
        Root nodes in input order
    """
    roots, _order = _link(comments)

    stack: list[tuple[list[CommentTreeNode], int]] = [(roots, 0)]
    while stack:
        siblings, depth = stack.pop()
        index = 0
        while index < len(siblings):
            node = siblings[index]
            node.depth = depth
            if node.children and depth >= max_depth:
                hoisted = _descendants(node)
                node.children = []
                for extra in hoisted:
                    extra.children = []
                    extra.depth = depth
                siblings[index + 1 : index + 1] = hoisted
                index += 1 + len(hoisted)
                continue
            if node.children:
                stack.append((node.children, depth + 1))
            index += 1

    return roots


def iter_tree(tree: Iterable[CommentTreeNode]) -> Iterator[CommentTreeNode]:
    """Yield nodes in pre-order: each parent before its children."""
    stack = list(reversed(list(tree)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def flatten_tree(tree: Iterable[CommentTreeNode]) -> list[Comment]:
    """Flatten reply trees back to a list of comments (pre-order)."""
    return [node.comment for node in iter_tree(tree)]


def find_node(
    tree: Iterable[CommentTreeNode], comment_id: int
) -> CommentTreeNode | None:
    """Locate the node holding comment_id, if any."""
    for node in iter_tree(tree):
        if node.id == comment_id:
            return node
    return None


def expand_inline_replies(comments: Iterable[Comment]) -> list[Comment]:
    """Flatten comments that arrive with nested replies into one list.

    Each returned comment has its inline replies cleared; its replies follow
    it in pre-order. Duplicate ids keep their first occurrence.
    """
    result: list[Comment] = []
    seen: set[int] = set()
    stack = list(reversed(list(comments)))
    while stack:
        comment = stack.pop()
        if comment.id in seen:
            continue
        seen.add(comment.id)
        replies = comment.replies
        if replies:
            comment = comment.model_copy(update={"replies": ()})
        result.append(comment)
        stack.extend(reversed(replies))
    return result
