from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PasteMeta(CamelModel):
    expire_ts: int = Field(..., description="Unix timestamp when the paste expires")
    mime: str | None = Field(None, max_length=128)
    views_allowed: int | None = None
    single_view: bool | None = None


class PowSubmission(CamelModel):
    challenge: str = Field(..., min_length=1, max_length=128)
    nonce: int = Field(..., ge=0)


class PasteCreate(CamelModel):
    ct: str = Field(..., description="Base64url encoded ciphertext")
    iv: str = Field(..., description="Base64url encoded IV")
    meta: PasteMeta
    pow: PowSubmission | None = None
    delete_auth: str | None = Field(None, max_length=128, description="Password-derived delete authorization")


class PasteCreateResponse(CamelModel):
    id: str
    delete_token: str  # Raw token - only returned at creation time


class PastePayload(CamelModel):
    ct: str
    iv: str
    meta: PasteMeta
    views_left: int | None = None


class DeleteWithAuthRequest(CamelModel):
    delete_auth: str = Field(..., max_length=128)


class ErrorResponse(BaseModel):
    error: str


class HealthStatus(CamelModel):
    status: str = "ok"
    timestamp_ms: int
    pow_enabled: bool
    rate_limiting_enabled: bool
    database_healthy: bool = True
