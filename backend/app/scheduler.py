"""Background scheduler for periodic cleanup tasks."""

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.database import SessionLocal
from app.dependencies import create_rate_limiter, delete_attempt_tracker, pow_service
from app.services.paste_service import purge_expired_pastes

logger = structlog.get_logger()

scheduler: BackgroundScheduler | None = None


def cleanup_job() -> None:
    """Purge expired pastes and sweep in-memory caches."""
    db = SessionLocal()
    try:
        purged = purge_expired_pastes(db)
        if purged:
            logger.info("cleanup_pastes_purged", count=purged)
    except SQLAlchemyError as e:
        logger.error("cleanup_failed", error=type(e).__name__)
    finally:
        db.close()

    challenges = pow_service.sweep_expired()
    buckets = create_rate_limiter.sweep_idle(settings.rate_limit_idle_seconds)
    attempts = delete_attempt_tracker.cleanup_expired()
    if challenges or buckets or attempts:
        logger.info(
            "cleanup_caches_swept",
            challenges=challenges,
            buckets=buckets,
            failed_attempts=attempts,
        )


def start_scheduler() -> None:
    """Start the background scheduler."""
    global scheduler
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        cleanup_job,
        trigger=IntervalTrigger(minutes=settings.cleanup_interval_minutes),
        id="cleanup_expired",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("scheduler_started", interval_minutes=settings.cleanup_interval_minutes)


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown()
    scheduler = None
    logger.info("scheduler_stopped")
