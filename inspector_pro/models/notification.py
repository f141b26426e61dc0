"""Notification record: one row per dispatch call."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import String, JSON, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from inspector_pro.models.base import Base, ULIDMixin


class NotificationType(str, Enum):
    CUSTOM = "custom"
    JOB_CREATED = "job_created"
    JOB_ASSIGNED = "job_assigned"
    REPORT_CREATED = "report_created"
    REPORT_STATUS_UPDATED = "report_status_updated"
    REGISTERED_AS_ADMIN = "registered_as_admin"
    REGISTERED_AS_INSPECTOR = "registered_as_inspector"
    USER_APPROVED = "user_approved"
    ACCOUNT_SUSPENDED = "account_suspended"
    ACCOUNT_UNSUSPENDED = "account_unsuspended"


class Notification(Base, ULIDMixin):
    __tablename__ = "notifications"

    type: Mapped[str] = mapped_column(String(50), default=NotificationType.CUSTOM.value)
    event: Mapped[str] = mapped_column(String(50), default="")
    title: Mapped[str] = mapped_column(String(255))
    body: Mapped[str] = mapped_column(Text, default="")
    data: Mapped[dict] = mapped_column(JSON, default=dict)
    author_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    recipient_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    recipients: Mapped[list] = mapped_column(JSON, default=list)
    device_tokens: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending | sent | failed
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    read_by: Mapped[list] = mapped_column(JSON, default=list)

    def is_visible_to(self, user_id: str) -> bool:
        return (
            self.recipient_id == user_id
            or user_id in (self.recipients or [])
            or self.author_id == user_id
        )
