import uuid
from sqlalchemy import Boolean, Column, ForeignKey, Index, String
from sqlalchemy.orm import relationship
from core.security import utcnow
from db.session import Base
from db.types import UTCDateTime


class Meal(Base):
    __tablename__ = "meals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    # when the meal was eaten; drives ordering for lists and streaks
    datetime = Column(UTCDateTime, nullable=False)
    is_on_diet = Column(Boolean, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="meals")

    __table_args__ = (
        Index("ix_meals_user_id_datetime", "user_id", "datetime"),
    )

    def __repr__(self):
        return f"<Meal(id={self.id}, user_id={self.user_id}, is_on_diet={self.is_on_diet})>"
