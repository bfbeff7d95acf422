import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from app.services.kv_store import KeyValueStore
from pastecore.errors import PowInvalid, PowRequired
from pastecore.pow import meets_difficulty

logger = structlog.get_logger()


@dataclass(frozen=True)
class PowChallenge:
    challenge: str
    difficulty: int
    expires_at: int  # unix seconds


class PowService:
    """
    Issues and verifies proof-of-work challenges.

    Challenge lifecycle: issued -> consumed | expired. Consumption is an
    atomic pop on the store, so a challenge backs at most one paste.
    """

    def __init__(
        self,
        store: KeyValueStore,
        difficulty: int,
        ttl_seconds: int,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.difficulty = difficulty
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._clock = clock

    def issue_challenge(self) -> PowChallenge | None:
        """Generate a new challenge, or None when PoW is disabled."""
        if not self.enabled:
            return None

        challenge = PowChallenge(
            challenge=secrets.token_hex(32),  # 64 hex characters
            difficulty=self.difficulty,
            expires_at=int(self._clock()) + self.ttl_seconds,
        )
        self.store.put(challenge.challenge, challenge)
        return challenge

    def verify(self, challenge: str | None, nonce: int | None) -> None:
        """
        Verify a proof-of-work solution and consume its challenge.

        Raises PowRequired if no solution was supplied, PowInvalid if the
        challenge is unknown, expired or already used, or the nonce is short.
        """
        if not self.enabled:
            return

        if challenge is None or nonce is None:
            raise PowRequired()

        entry = self.store.get(challenge)
        if entry is None:
            logger.info("pow_invalid", reason="unknown_challenge")
            raise PowInvalid()

        if self._clock() >= entry.expires_at:
            self.store.pop(challenge)
            logger.info("pow_invalid", reason="expired")
            raise PowInvalid()

        if not meets_difficulty(challenge, nonce, entry.difficulty):
            logger.info("pow_invalid", reason="insufficient_work")
            raise PowInvalid()

        # Of two racing valid submissions only one pop returns the entry.
        if self.store.pop(challenge) is None:
            logger.info("pow_invalid", reason="already_used")
            raise PowInvalid()

    def sweep_expired(self) -> int:
        """Delete expired challenges. Returns count of deleted entries."""
        now = self._clock()
        return self.store.delete_where(lambda _, entry: now >= entry.expires_at)
