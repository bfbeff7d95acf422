from app.schemas.paste import CamelModel


class PowChallengeResponse(CamelModel):
    challenge: str
    difficulty: int
    expires_at: int
    algorithm: str = "sha256"
