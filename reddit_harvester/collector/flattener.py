"""Flattening of nested Reddit reply trees into comment records."""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from reddit_harvester.models.mapping import DELETION_SENTINELS, as_int, is_deleted_author, parse_timestamp
from reddit_harvester.models.records import Comment, RetrievalMethod

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


def _unwrap(node: Any) -> Optional[Dict[str, Any]]:
    """
    Return the comment payload of a node, or None for placeholders.

    Listing nodes look like ``{"kind": "t1", "data": {...}}``; ``more`` nodes
    (collapsed "load more comments" stubs) carry no comment. Plain dict nodes
    are their own payload.
    """
    if not isinstance(node, dict):
        return None
    if "kind" in node:
        if node.get("kind") != "t1" or not isinstance(node.get("data"), dict):
            return None
        return node["data"]
    return node


def _children(payload: Dict[str, Any]) -> List[Any]:
    """Direct replies of a payload, whichever of the two shapes it uses."""
    replies = payload.get("replies")
    if isinstance(replies, list):
        return replies
    if isinstance(replies, dict):
        children = (replies.get("data") or {}).get("children")
        if isinstance(children, list):
            return children
    return []


def _is_excluded(payload: Dict[str, Any]) -> bool:
    body = payload.get("body")
    if not isinstance(body, str) or not body.strip() or body.strip() in DELETION_SENTINELS:
        return True
    return is_deleted_author(payload.get("author"))


def flatten_comment_tree(
    nodes: Iterable[Any],
    post_id: str,
    community: str,
    scraped_at: datetime,
    method: RetrievalMethod,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_comments: Optional[int] = None,
) -> List[Comment]:
    """
    Flatten a reply forest into an ordered list of comments.

    The walk is a pre-order depth-first traversal driven by an explicit stack,
    so adversarially deep input cannot exhaust the interpreter stack. Nodes at
    ``max_depth`` or deeper and nodes whose id was already visited are dropped
    together with their subtree; the rest of the forest is still walked.

    Deleted or removed nodes are not emitted, but their replies are, with the
    ``parent_id`` they were delivered with.

    Args:
        nodes: Top-level reply nodes (listing children or plain dicts)
        post_id: Id of the post owning the tree
        community: Community of the post
        scraped_at: Time the harvest ran
        method: Retrieval method to stamp on every comment
        max_depth: Number of reply levels to keep; top-level replies are depth 0
        max_comments: Stop after emitting this many comments (None for no limit)

    Returns:
        Comments in pre-order
    """
    comments: List[Comment] = []
    visited: Set[str] = set()
    root_parent = f"t3_{post_id}"

    stack: List[Tuple[Any, int, str]] = [(node, 0, root_parent) for node in reversed(list(nodes))]

    while stack:
        if max_comments is not None and len(comments) >= max_comments:
            break

        node, depth, inherited_parent = stack.pop()
        payload = _unwrap(node)
        if payload is None:
            continue

        comment_id = payload.get("id")
        if comment_id is None:
            continue
        comment_id = str(comment_id)

        if comment_id in visited:
            logger.debug(f"Cycle detected at comment {comment_id} under post {post_id}; branch dropped")
            continue
        if depth >= max_depth:
            logger.debug(f"Depth cap {max_depth} reached at comment {comment_id}; branch dropped")
            continue
        visited.add(comment_id)

        children = _children(payload)
        for child in reversed(children):
            stack.append((child, depth + 1, f"t1_{comment_id}"))

        if _is_excluded(payload):
            continue

        comments.append(Comment(
            id=comment_id,
            post_id=post_id,
            parent_id=str(payload.get("parent_id") or inherited_parent),
            community=community,
            author=payload.get("author"),
            body=payload["body"],
            created_at=parse_timestamp(payload.get("created_utc")),
            score=as_int(payload.get("score")),
            reply_count=sum(1 for child in children if _unwrap(child) is not None),
            retrieval_method=method,
            scraped_at=scraped_at,
            depth=depth,
        ))

    return comments
