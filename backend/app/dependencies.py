"""
Process-wide services, exposed as FastAPI dependencies.

Tests swap them through ``app.dependency_overrides`` the same way they swap
``get_db``.
"""

from app.config import settings
from app.services.kv_store import InMemoryStore
from app.services.pow_service import PowService
from app.services.rate_limiter import FailedAttemptTracker, TokenBucket

pow_service = PowService(
    store=InMemoryStore(),
    difficulty=settings.pow_difficulty,
    ttl_seconds=settings.pow_challenge_ttl_seconds,
    enabled=settings.pow_enabled,
)

create_rate_limiter = TokenBucket(
    capacity=settings.rate_limit_capacity,
    refill_per_minute=settings.rate_limit_refill_per_minute,
    store=InMemoryStore(),
)

delete_attempt_tracker = FailedAttemptTracker(
    store=InMemoryStore(),
    max_attempts=settings.delete_max_failed_attempts,
    window_seconds=settings.delete_failed_window_seconds,
)


def get_pow_service() -> PowService:
    return pow_service


def get_rate_limiter() -> TokenBucket | None:
    """The paste-creation token bucket, or None when rate limiting is off."""
    return create_rate_limiter if settings.rate_limit_enabled else None


def get_delete_attempt_tracker() -> FailedAttemptTracker:
    return delete_attempt_tracker
