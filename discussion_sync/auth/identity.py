"""Actor identity supplied by the authentication collaborator."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Actor:
    """The signed-in user performing comment actions."""

    id: int
    username: str
    profile_image_url: str | None = None
    token: str | None = None


@runtime_checkable
class ActorProvider(Protocol):
    """Anything that can report the current actor (or None when signed out)."""

    def current_actor(self) -> Actor | None: ...


class StaticActorProvider:
    """Provider returning a fixed actor, swappable on sign-in/sign-out."""

    def __init__(self, actor: Actor | None = None) -> None:
        self._actor = actor

    def current_actor(self) -> Actor | None:
        return self._actor

    def sign_in(self, actor: Actor) -> None:
        self._actor = actor

    def sign_out(self) -> None:
        self._actor = None
