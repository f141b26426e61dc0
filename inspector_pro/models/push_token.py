"""Device push token and the per-user session entries it owns.

A device may be shared by several users. Each user's login state on the
device lives in a ``PushTokenSession`` row owned by the token; lookups go
through predicates on that table, never through a User back-reference.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inspector_pro.models.base import Base, ULIDMixin

PLATFORMS = ("android", "ios", "web")


class PushToken(Base, ULIDMixin):
    __tablename__ = "push_tokens"

    device_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    token: Mapped[str] = mapped_column(String(1000), index=True)
    platform: Mapped[str] = mapped_column(String(20))  # android | ios | web
    device_name: Mapped[str] = mapped_column(String(255), default="")
    last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    sessions = relationship(
        "PushTokenSession", back_populates="push_token", lazy="selectin",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def session_for(self, user_id: str) -> PushTokenSession | None:
        for entry in self.sessions:
            if entry.user_id == user_id:
                return entry
        return None


class PushTokenSession(Base):
    __tablename__ = "push_token_sessions"
    __table_args__ = (UniqueConstraint("token_id", "user_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    token_id: Mapped[str] = mapped_column(String(26), ForeignKey("push_tokens.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(26), index=True)
    notification_active: Mapped[bool] = mapped_column(Boolean, default=True)
    logged_in_status: Mapped[bool] = mapped_column(Boolean, default=True)
    last_logged_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_logged_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    push_token = relationship("PushToken", back_populates="sessions")
