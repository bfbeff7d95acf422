"""Shared test utilities."""

import secrets
import time
from datetime import UTC, datetime

from pastecore.encoding import b64url_encode
from pastecore.pow import solve_pow

TEST_POW_DIFFICULTY = 4


def utcnow():
    """Get current UTC time as naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def future_ts(seconds: int = 3600) -> int:
    return int(time.time()) + seconds


def fake_payload(size: int = 100) -> dict:
    """Opaque ciphertext and iv; the server never decrypts, so random bytes will do."""
    return {
        "ct": b64url_encode(secrets.token_bytes(size)),
        "iv": b64url_encode(secrets.token_bytes(12)),
    }


def solve_challenge(client) -> dict:
    """Fetch a challenge from the API and solve it."""
    data = client.get("/api/pow").json()
    return {"challenge": data["challenge"], "nonce": solve_pow(data["challenge"], data["difficulty"])}


class FakeClock:
    """Manually advanced clock for lifecycle tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
