"""Identity seam to the external authentication collaborator.

Authentication itself lives outside this package; the engine only needs
to know who the current actor is (for ownership checks and rate-limit
keys) and which bearer token to attach to remote calls.
"""

from .identity import Actor, ActorProvider, StaticActorProvider
from .permissions import can_delete, can_edit, can_reply, is_owner


__all__ = [
    "Actor",
    "ActorProvider",
    "StaticActorProvider",
    "can_delete",
    "can_edit",
    "can_reply",
    "is_owner",
]
