"""User record model."""

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, String

from app.config import get_settings
from app.database import Base, utcnow


class UserRecord(Base):
    """A registered user, signing in either by password or by an OAuth provider."""

    __tablename__ = get_settings().USER_TABLE_NAME
    __table_args__ = (
        # exactly one authentication mode per record
        CheckConstraint(
            "(password_hash IS NULL AND provider IS NOT NULL) OR (password_hash IS NOT NULL AND provider IS NULL)",
            name="ck_user_auth_mode",
        ),
        CheckConstraint(
            "(reset_token_hash IS NULL) = (reset_token_expires_at IS NULL)",
            name="ck_user_reset_pair",
        ),
    )

    user_id = Column(String(36), primary_key=True)
    username = Column(String(256), nullable=False)
    email = Column(String(256), unique=True, nullable=False, index=True)
    password_hash = Column(String(256), nullable=True)
    provider = Column(String(64), nullable=True)
    reset_token_hash = Column(String(256), nullable=True)
    reset_token_expires_at = Column(DateTime, nullable=True)
    profile = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
