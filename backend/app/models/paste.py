from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Paste(Base):
    """
    An encrypted paste.

    Only ciphertext and the iv are stored; the salt needed to derive the key
    lives in the share link fragment and never reaches the server. Delete
    credentials are stored as Argon2id hashes only.
    """

    __tablename__ = "pastes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    # Encrypted payload
    ciphertext: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    iv: Mapped[bytes] = mapped_column(LargeBinary(64), nullable=False)
    mime: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Lifecycle
    expire_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    views_allowed: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    views_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC).replace(tzinfo=None), nullable=False
    )

    # Delete credentials
    delete_token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    delete_auth_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)

    @property
    def single_view(self) -> bool:
        return self.views_allowed == 1
