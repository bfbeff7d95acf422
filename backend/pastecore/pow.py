"""
Hashcash-style proof of work.

A solution for ``(challenge, difficulty)`` is a non-negative integer nonce such
that ``SHA-256(f"{challenge}:{nonce}")`` starts with at least ``difficulty``
zero bits. The digest check is shared by the solver and the server verifier.
"""

from __future__ import annotations

import asyncio
import hashlib
import threading
import time

from pastecore.errors import PowCancelled

DEFAULT_YIELD_EVERY = 4096


def pow_digest(challenge: str, nonce: int) -> bytes:
    return hashlib.sha256(f"{challenge}:{nonce}".encode("utf-8")).digest()


def leading_zero_bits(digest: bytes) -> int:
    """Count zero bits from the most significant bit, stopping at the first set bit."""
    bits = 0
    for byte in digest:
        if byte == 0:
            bits += 8
            continue
        # bit_length is 1..8 for a non-zero byte
        return bits + (8 - byte.bit_length())
    return bits


def meets_difficulty(challenge: str, nonce: int, difficulty: int) -> bool:
    if nonce < 0:
        return False
    return leading_zero_bits(pow_digest(challenge, nonce)) >= difficulty


def _check_yield_every(yield_every: int) -> None:
    if yield_every < 1:
        raise ValueError("yield_every must be at least 1")


def solve_pow(
    challenge: str,
    difficulty: int,
    *,
    cancel: threading.Event | None = None,
    yield_every: int = DEFAULT_YIELD_EVERY,
    max_nonce: int | None = None,
) -> int:
    """
    Find the smallest nonce meeting ``difficulty``.

    Every ``yield_every`` attempts the thread yields and ``cancel`` is checked;
    a set event raises PowCancelled. ``max_nonce`` bounds the search and also
    raises PowCancelled when exhausted.
    """
    _check_yield_every(yield_every)
    nonce = 0
    while True:
        if meets_difficulty(challenge, nonce, difficulty):
            return nonce
        nonce += 1
        if max_nonce is not None and nonce > max_nonce:
            raise PowCancelled(message="Proof of work search exhausted")
        if nonce % yield_every == 0:
            if cancel is not None and cancel.is_set():
                raise PowCancelled()
            time.sleep(0)


async def solve_pow_async(
    challenge: str,
    difficulty: int,
    *,
    yield_every: int = DEFAULT_YIELD_EVERY,
    max_nonce: int | None = None,
) -> int:
    """
    Coroutine version of :func:`solve_pow`.

    Awaits ``asyncio.sleep(0)`` every ``yield_every`` attempts so the event
    loop stays responsive; cancel the task to abandon the search.
    """
    _check_yield_every(yield_every)
    nonce = 0
    while True:
        if meets_difficulty(challenge, nonce, difficulty):
            return nonce
        nonce += 1
        if max_nonce is not None and nonce > max_nonce:
            raise PowCancelled(message="Proof of work search exhausted")
        if nonce % yield_every == 0:
            await asyncio.sleep(0)
