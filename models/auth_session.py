"""
AuthSession model: the one live refresh token of a user.
Fields:
- user_id (String(36)) - FK to users.id, unique: at most one row per user
- refresh_token (Text) - the exact string last handed out
- refresh_expires_at - the stored session window
- created_at, updated_at
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class AuthSession(BaseModel, Base):
    __tablename__ = "auth_sessions"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    refresh_token = Column(Text, nullable=False)
    refresh_expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="auth_session")

    def __repr__(self):
        return f"<AuthSession user_id={self.user_id}>"
