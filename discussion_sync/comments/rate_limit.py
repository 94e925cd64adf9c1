"""Fixed-window rate limiting per actor and action.

Each key gets a counter that resets when its window elapses. Comment
creation, replies and likes use independent limiters so exhausting one
quota never blocks the others.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from discussion_sync.core.logging import get_logger

from .models import RateLimitRecord


if TYPE_CHECKING:
    from discussion_sync.config.settings import Settings


logger = get_logger(__name__)

COMMENT_ACTION = "comment"
REPLY_ACTION = "reply"
LIKE_ACTION = "like"


def rate_limit_key(actor_id: int | str, action: str) -> str:
    """Build the limiter key for an actor/action pair."""
    return f"{action}:{actor_id}"


class RateLimiter:
    """In-memory fixed-window counter keyed by arbitrary strings."""

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "default",
    ) -> None:
        """Initialize limiter.

        Args:
            max_attempts: Allowed calls per window
            window_seconds: Window length in seconds
            clock: Monotonic time source in seconds (injectable for tests)
            name: Label used in log events
        """
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}

    @property
    def tracked_keys(self) -> int:
        """Number of keys currently holding a window."""
        return len(self._records)

    def _active_record(self, key: str) -> RateLimitRecord | None:
        record = self._records.get(key)
        if record is None:
            return None
        if self._clock() >= record.window_reset_at:
            del self._records[key]
            return None
        return record

    def prune(self) -> int:
        """Drop every expired window; returns how many were dropped."""
        now = self._clock()
        expired = [k for k, r in self._records.items() if now >= r.window_reset_at]
        for key in expired:
            del self._records[key]
        return len(expired)

    def is_allowed(self, key: str) -> bool:
        """Count one attempt for key; False once the window's quota is used up."""
        record = self._active_record(key)

        if record is None:
            self.prune()
            self._records[key] = RateLimitRecord(
                count=1, window_reset_at=self._clock() + self.window_seconds
            )
            return True

        if record.count < self.max_attempts:
            record.count += 1
            return True

        logger.info(
            "rate_limit_exceeded",
            limiter=self.name,
            key=key,
            reset_after_ms=self.get_reset_time(key),
        )
        return False

    def get_remaining_attempts(self, key: str) -> int:
        """Attempts left in the current window."""
        record = self._active_record(key)
        if record is None:
            return self.max_attempts
        return max(0, self.max_attempts - record.count)

    def get_reset_time(self, key: str) -> int:
        """Milliseconds until the current window resets, or 0 if none is active."""
        record = self._active_record(key)
        if record is None:
            return 0
        return max(0, int((record.window_reset_at - self._clock()) * 1000))

    def reset(self, key: str) -> None:
        """Forget the window for one key."""
        self._records.pop(key, None)

    def clear_all(self) -> None:
        """Forget every window."""
        self._records.clear()


@dataclass
class RateLimiters:
    """Independent limiters for each comment action."""

    comment: RateLimiter
    reply: RateLimiter
    like: RateLimiter

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        clock: Callable[[], float] = time.monotonic,
    ) -> "RateLimiters":
        return cls(
            comment=RateLimiter(
                settings.comment_rate_limit_max,
                settings.comment_rate_limit_window_seconds,
                clock=clock,
                name=COMMENT_ACTION,
            ),
            reply=RateLimiter(
                settings.reply_rate_limit_max,
                settings.reply_rate_limit_window_seconds,
                clock=clock,
                name=REPLY_ACTION,
            ),
            like=RateLimiter(
                settings.like_rate_limit_max,
                settings.like_rate_limit_window_seconds,
                clock=clock,
                name=LIKE_ACTION,
            ),
        )

    def for_action(self, action: str) -> RateLimiter:
        if action == COMMENT_ACTION:
            return self.comment
        if action == REPLY_ACTION:
            return self.reply
        if action == LIKE_ACTION:
            return self.like
        msg = f"Unknown rate-limited action: {action}"
        raise ValueError(msg)
