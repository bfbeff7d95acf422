from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Path, Query, Request, Response
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.dependencies import get_delete_attempt_tracker, get_pow_service, get_rate_limiter
from app.middleware.rate_limit import get_real_client_ip, limiter
from app.schemas.paste import (
    DeleteWithAuthRequest,
    ErrorResponse,
    PasteCreate,
    PasteCreateResponse,
    PasteMeta,
    PastePayload,
)
from app.services.paste_service import (
    create_paste,
    delete_with_auth,
    delete_with_token,
    retrieve_paste,
    to_epoch,
)
from app.services.pow_service import PowService
from app.services.rate_limiter import FailedAttemptTracker, TokenBucket
from pastecore.encoding import b64url_encode
from pastecore.errors import InvalidToken, RateLimited, ValidationError

router = APIRouter(responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
logger = structlog.get_logger()

PasteId = Annotated[str, Path(min_length=1, max_length=32, pattern=r"^[A-Za-z0-9_-]+$")]


@router.post("/pastes", response_model=PasteCreateResponse, status_code=201)
def create_new_paste(
    request: Request,
    paste_data: PasteCreate,
    db: Session = Depends(get_db),
    pow_service: PowService = Depends(get_pow_service),
    rate_limiter: TokenBucket | None = Depends(get_rate_limiter),
):
    """
    Create a new encrypted paste.

    Checks, in order: token bucket, proof of work, sizes and expiry.
    """
    if rate_limiter is not None and not rate_limiter.allow(f"POST:{get_real_client_ip(request)}"):
        logger.info("paste_rate_limited")
        raise RateLimited()

    pow_sub = paste_data.pow
    pow_service.verify(
        pow_sub.challenge if pow_sub else None,
        pow_sub.nonce if pow_sub else None,
    )

    paste, delete_token = create_paste(
        db=db,
        ciphertext_b64=paste_data.ct,
        iv_b64=paste_data.iv,
        expire_ts=paste_data.meta.expire_ts,
        mime=paste_data.meta.mime,
        views_allowed=paste_data.meta.views_allowed,
        single_view=paste_data.meta.single_view,
        delete_auth=paste_data.delete_auth,
    )

    logger.info(
        "paste_created",
        paste_id=paste.id,
        ciphertext_size=len(paste.ciphertext),
        views_allowed=paste.views_allowed,
    )

    return PasteCreateResponse(id=paste.id, delete_token=delete_token)


@router.get("/pastes/{paste_id}", response_model=PastePayload, responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_retrieves)
def get_paste(
    request: Request,
    paste_id: PasteId,
    db: Session = Depends(get_db),
):
    """
    Retrieve an encrypted paste.

    Every successful call counts a view; the last allowed view deletes the
    paste. ``viewsLeft`` is the count before this view.
    """
    paste = retrieve_paste(db, paste_id)

    return PastePayload(
        ct=b64url_encode(paste.ciphertext),
        iv=b64url_encode(paste.iv),
        meta=PasteMeta(
            expire_ts=to_epoch(paste.expire_at),
            mime=paste.mime,
            views_allowed=paste.views_allowed,
            single_view=paste.views_allowed == 1,
        ),
        views_left=paste.views_left,
    )


@router.delete("/pastes/{paste_id}", status_code=204, responses={403: {"model": ErrorResponse}})
def delete_paste(
    paste_id: PasteId,
    token: str | None = Query(None, max_length=128),
    db: Session = Depends(get_db),
):
    """Delete a paste using the creator's deletion token."""
    if not token:
        raise ValidationError("missing_token", "A deletion token is required.")

    delete_with_token(db, paste_id, token)
    return Response(status_code=204)


@router.post(
    "/pastes/{paste_id}/delete",
    status_code=204,
    responses={403: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def delete_paste_with_auth(
    body: DeleteWithAuthRequest,
    paste_id: PasteId,
    db: Session = Depends(get_db),
    tracker: FailedAttemptTracker = Depends(get_delete_attempt_tracker),
):
    """
    Delete a paste using password-derived authorization.

    Anyone who knows the paste password can delete it. After repeated failed
    attempts the paste id is temporarily blocked.
    """
    if tracker.is_blocked(paste_id):
        raise RateLimited("too_many_attempts")

    if not body.delete_auth.strip():
        raise ValidationError("missing_auth", "A delete authorization is required.")

    try:
        delete_with_auth(db, paste_id, body.delete_auth)
    except InvalidToken:
        if tracker.record_failure(paste_id):
            logger.warning("delete_attempts_blocked", paste_id=paste_id)
        raise

    tracker.record_success(paste_id)
    return Response(status_code=204)
