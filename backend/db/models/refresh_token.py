import uuid
from sqlalchemy import Boolean, Column, ForeignKey, Index, String
from sqlalchemy.orm import relationship
from core.security import utcnow
from db.session import Base
from db.types import UTCDateTime


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Keep token length within index byte limits for utf8mb4 (<= 3072 bytes)
    token = Column(String(255), unique=True, index=True, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    # only ever flipped false -> true
    revoked = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_user_id_revoked", "user_id", "revoked"),
    )

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, user_id={self.user_id}, revoked={self.revoked})>"
