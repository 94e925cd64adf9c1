"""Optimistic synchronization engine for threaded comments.

Keeps a locally visible comment list ahead of the remote comment service:
- Paginated fetching and tree reconstruction
- Speculative create/delete/like with snapshot rollback
- Automatic rollback of operations that never resolve
- Content validation and per-actor rate limiting
"""

__version__ = "0.1.0"
