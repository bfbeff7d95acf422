import structlog
from fastapi import APIRouter, Depends, Request, Response

from app.config import settings
from app.dependencies import get_pow_service
from app.middleware.rate_limit import limiter
from app.schemas.pow import PowChallengeResponse
from app.services.pow_service import PowService

router = APIRouter()
logger = structlog.get_logger()


@router.get(
    "/pow",
    response_model=PowChallengeResponse,
    responses={204: {"description": "Proof of work is disabled"}},
)
@limiter.limit(settings.rate_limit_pow)
def get_pow_challenge(
    request: Request,
    pow_service: PowService = Depends(get_pow_service),
):
    """
    Request a proof-of-work challenge.

    The client must solve it before creating a paste. Returns 204 No Content
    when proof of work is disabled.
    """
    challenge = pow_service.issue_challenge()
    if challenge is None:
        return Response(status_code=204)

    logger.info("pow_challenge_issued", difficulty=challenge.difficulty)

    return PowChallengeResponse(
        challenge=challenge.challenge,
        difficulty=challenge.difficulty,
        expires_at=challenge.expires_at,
    )
