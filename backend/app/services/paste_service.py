import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeVar

import structlog
from sqlalchemy import delete, or_, select, text, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.paste import Paste
from app.services.crypto_utils import hash_token, random_id, verify_token
from pastecore.encoding import b64url_decode
from pastecore.errors import DecodeError, InvalidToken, NotFound, ServerError, ValidationError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetrievedPaste:
    ciphertext: bytes
    iv: bytes
    mime: str | None
    expire_at: datetime
    views_allowed: int | None
    # Views remaining before this read was counted; None when unlimited.
    views_left: int | None


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def from_epoch(ts: int) -> datetime:
    try:
        return datetime.fromtimestamp(ts, UTC).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError) as e:
        raise ValidationError("expiry_invalid", "Invalid expiration time.") from e


def to_epoch(value: datetime) -> int:
    return int(value.replace(tzinfo=UTC).timestamp())


def with_storage_retries(db: Session, operation: str, fn: Callable[[], T]) -> T:
    """
    Run ``fn`` and retry transient storage errors a bounded number of times.

    Exhausting the retries surfaces a generic ServerError; domain errors
    raised by ``fn`` pass straight through.
    """
    attempts = max(1, settings.storage_retry_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except OperationalError as e:
            db.rollback()
            logger.warning(
                "storage_error",
                operation=operation,
                attempt=attempt,
                error=type(e.orig).__name__ if e.orig is not None else type(e).__name__,
            )
            if attempt == attempts:
                raise ServerError("db_error") from e
            time.sleep(settings.storage_retry_backoff_seconds * attempt)
    raise ServerError("db_error")


def resolve_views_allowed(views_allowed: int | None, single_view: bool | None) -> int | None:
    """Collapse the single-view flag into the view counter."""
    if single_view:
        if views_allowed not in (None, 1):
            raise ValidationError("views_invalid", "A single-view paste allows exactly one view.")
        return 1
    if views_allowed is None:
        return None
    if views_allowed < 1 or views_allowed > settings.max_views_allowed:
        raise ValidationError(
            "views_invalid", f"Views allowed must be between 1 and {settings.max_views_allowed}."
        )
    return views_allowed


def create_paste(
    db: Session,
    ciphertext_b64: str,
    iv_b64: str,
    expire_ts: int,
    mime: str | None = None,
    views_allowed: int | None = None,
    single_view: bool | None = None,
    delete_auth: str | None = None,
) -> tuple[Paste, str]:
    """
    Validate and persist a new paste.

    Returns tuple of (paste, raw_delete_token). Only hashes of the delete
    token and delete authorization are stored; the raw token is only
    available at creation time.
    """
    try:
        ciphertext = b64url_decode(ciphertext_b64)
        iv = b64url_decode(iv_b64)
    except DecodeError as e:
        raise ValidationError("size_invalid", "Ciphertext and IV must be base64url encoded.") from e

    if not ciphertext or len(ciphertext) > settings.max_ciphertext_size:
        raise ValidationError("size_invalid", f"Ciphertext must be 1 to {settings.max_ciphertext_size} bytes.")
    if not settings.iv_min_bytes <= len(iv) <= settings.iv_max_bytes:
        raise ValidationError(
            "size_invalid", f"IV must be {settings.iv_min_bytes} to {settings.iv_max_bytes} bytes."
        )

    if expire_ts <= int(time.time()) + settings.min_expiry_seconds:
        raise ValidationError(
            "expiry_too_soon",
            f"Expiration must be at least {settings.min_expiry_seconds} seconds in the future.",
        )
    expire_at = from_epoch(expire_ts)

    views_allowed = resolve_views_allowed(views_allowed, single_view)

    raw_delete_token = random_id(settings.delete_token_length)
    delete_token_hash = hash_token(raw_delete_token)
    delete_auth_hash = hash_token(delete_auth) if delete_auth else None

    def insert() -> Paste:
        paste = Paste(
            id=random_id(settings.id_length),
            ciphertext=ciphertext,
            iv=iv,
            mime=mime,
            expire_at=expire_at,
            views_allowed=views_allowed,
            views_used=0,
            delete_token_hash=delete_token_hash,
            delete_auth_hash=delete_auth_hash,
        )
        db.add(paste)
        db.commit()
        db.refresh(paste)
        return paste

    paste = with_storage_retries(db, "create_paste", insert)
    return paste, raw_delete_token


def retrieve_paste(db: Session, paste_id: str) -> RetrievedPaste:
    """
    Read a paste, counting the view.

    The view is counted with one conditional UPDATE, so concurrent readers of
    the last view get exactly one success. The row is deleted in the same
    transaction once its views are exhausted. Absent, expired and exhausted
    pastes all raise NotFound.
    """

    def read() -> RetrievedPaste:
        result = db.execute(
            update(Paste)
            .where(
                Paste.id == paste_id,
                Paste.expire_at > utcnow(),
                or_(Paste.views_allowed.is_(None), Paste.views_used < Paste.views_allowed),
            )
            .values(views_used=Paste.views_used + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise NotFound()

        row = db.execute(
            select(
                Paste.ciphertext,
                Paste.iv,
                Paste.mime,
                Paste.expire_at,
                Paste.views_allowed,
                Paste.views_used,
            ).where(Paste.id == paste_id)
        ).one()

        views_left = None
        if row.views_allowed is not None:
            views_left = row.views_allowed - (row.views_used - 1)
            if row.views_used >= row.views_allowed:
                db.execute(
                    delete(Paste)
                    .where(Paste.id == paste_id)
                    .execution_options(synchronize_session=False)
                )
        db.commit()

        return RetrievedPaste(
            ciphertext=row.ciphertext,
            iv=row.iv,
            mime=row.mime,
            expire_at=row.expire_at,
            views_allowed=row.views_allowed,
            views_left=views_left,
        )

    paste = with_storage_retries(db, "retrieve_paste", read)
    if paste.views_left == 1:
        logger.info("paste_exhausted", paste_id=paste_id)
    return paste


def _delete_if_verified(db: Session, paste_id: str, supplied: str, hash_column) -> None:
    def attempt() -> None:
        stored_hash = db.execute(
            select(hash_column).where(Paste.id == paste_id, Paste.expire_at > utcnow())
        ).scalar_one_or_none()
        # Absent pastes still pay for a verify, so timing does not reveal existence.
        if not verify_token(supplied, stored_hash):
            db.rollback()
            raise InvalidToken()

        result = db.execute(
            delete(Paste).where(Paste.id == paste_id).execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            raise InvalidToken()

    with_storage_retries(db, "delete_paste", attempt)
    logger.info("paste_deleted", paste_id=paste_id)


def delete_with_token(db: Session, paste_id: str, delete_token: str) -> None:
    """Delete a paste using the creator's delete token. Raises InvalidToken."""
    _delete_if_verified(db, paste_id, delete_token, Paste.delete_token_hash)


def delete_with_auth(db: Session, paste_id: str, delete_auth: str) -> None:
    """Delete a paste using the password-derived authorization. Raises InvalidToken."""
    _delete_if_verified(db, paste_id, delete_auth, Paste.delete_auth_hash)


def purge_expired_pastes(db: Session) -> int:
    """
    Hard delete all pastes past their expiry.

    Returns the count of deleted rows.
    """
    result = db.execute(
        delete(Paste)
        .where(Paste.expire_at <= utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def check_health(db: Session) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        db.rollback()
        return False
