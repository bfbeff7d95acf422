from app.schemas.paste import (
    DeleteWithAuthRequest,
    ErrorResponse,
    HealthStatus,
    PasteCreate,
    PasteCreateResponse,
    PasteMeta,
    PastePayload,
    PowSubmission,
)
from app.schemas.pow import PowChallengeResponse

__all__ = [
    "DeleteWithAuthRequest",
    "ErrorResponse",
    "HealthStatus",
    "PasteCreate",
    "PasteCreateResponse",
    "PasteMeta",
    "PastePayload",
    "PowChallengeResponse",
    "PowSubmission",
]
