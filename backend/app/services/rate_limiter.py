"""
Rate limiting and brute-force protection.

- TokenBucket: per-client continuous-refill bucket gating paste creation
- FailedAttemptTracker: blocks password-derived deletion on a paste after
  repeated failures
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from app.services.kv_store import KeyValueStore


@dataclass(frozen=True)
class BucketState:
    tokens: float
    last_refill_at: float


class TokenBucket:
    """
    Token bucket keyed by client identity.

    Buckets start full, refill continuously at ``refill_per_minute`` up to
    ``capacity``, and each allowed request spends one token. The refill and
    spend happen in one atomic store update, so concurrent requests for the
    same key cannot both spend the last token.
    """

    def __init__(
        self,
        capacity: int,
        refill_per_minute: float,
        store: KeyValueStore,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.refill_per_minute = refill_per_minute
        self.store = store
        self._clock = clock

    def allow(self, key: str) -> bool:
        def spend(state: BucketState | None) -> tuple[BucketState, bool]:
            now = self._clock()
            if state is None:
                tokens = float(self.capacity)
            else:
                elapsed_min = max(0.0, now - state.last_refill_at) / 60.0
                tokens = min(float(self.capacity), state.tokens + elapsed_min * self.refill_per_minute)
            if tokens >= 1.0:
                return BucketState(tokens - 1.0, now), True
            return BucketState(tokens, now), False

        return self.store.update(key, spend)

    def sweep_idle(self, max_idle_seconds: float) -> int:
        """Forget buckets untouched for ``max_idle_seconds``. Returns count removed."""
        now = self._clock()
        return self.store.delete_where(lambda _, state: now - state.last_refill_at > max_idle_seconds)


@dataclass(frozen=True)
class AttemptState:
    count: int
    first_attempt_at: float


class FailedAttemptTracker:
    """
    Tracks failed delete attempts per paste id.

    After ``max_attempts`` failures within ``window_seconds`` the key is
    blocked until the window expires. Counters live in the shared store and
    each failure is recorded with one atomic update.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_attempts: int = 10,
        window_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock

    def _expired(self, state: AttemptState, now: float) -> bool:
        return now - state.first_attempt_at > self.window_seconds

    def is_blocked(self, key: str) -> bool:
        state = self.store.get(key)
        if state is None or self._expired(state, self._clock()):
            return False
        return state.count >= self.max_attempts

    def record_failure(self, key: str) -> bool:
        """Record a failure; returns True if the key is now blocked."""

        def bump(state: AttemptState | None) -> tuple[AttemptState, bool]:
            now = self._clock()
            if state is None or self._expired(state, now):
                state = AttemptState(count=1, first_attempt_at=now)
            else:
                state = AttemptState(count=state.count + 1, first_attempt_at=state.first_attempt_at)
            return state, state.count >= self.max_attempts

        return self.store.update(key, bump)

    def record_success(self, key: str) -> None:
        self.store.pop(key)

    def cleanup_expired(self) -> int:
        now = self._clock()
        return self.store.delete_where(lambda _, state: self._expired(state, now))
