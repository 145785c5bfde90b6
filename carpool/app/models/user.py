"""
User database model.

Users are owned by the identity collaborator. The core only reads identity
fields and writes the aggregate rating.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, BigInteger
from sqlalchemy.sql import func
from carpool.app.db.session import Base
from carpool.app.models.preferences import RidePreferencesMixin

DEFAULT_RATING = 5.0


class User(RidePreferencesMixin, Base):
    """
    User model.

    `rating` is the mean of non-skipped reviews received, rounded to one
    decimal. It stays at the default until the first real review arrives.
    The `pref_*` columns are the defaults copied onto trips the user drives.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)

    rating = Column(Float, default=DEFAULT_RATING, nullable=False)

    # Telegram delivery target for notifications (optional)
    telegram_chat_id = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', rating={self.rating})>"
