"""Inspection job model: one property visit assigned to an inspector."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Float, ForeignKey, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inspector_pro.models.base import Base, ULIDMixin, UpdatedAtMixin


class Job(Base, ULIDMixin, UpdatedAtMixin):
    __tablename__ = "jobs"

    order_id: Mapped[str] = mapped_column(String(100))
    street_address: Mapped[str] = mapped_column(String(500))
    development_name: Mapped[str] = mapped_column(String(255), default="")
    form_type: Mapped[str] = mapped_column(String(100), default="")
    fee_status: Mapped[str] = mapped_column(String(50), default="Standard")
    agreed_fee: Mapped[float] = mapped_column(Float, default=0.0)
    site_contact_name: Mapped[str] = mapped_column(String(200), default="")
    site_contact_phone: Mapped[str] = mapped_column(String(50), default="")
    site_contact_email: Mapped[str] = mapped_column(String(255), default="")
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes_for_inspector: Mapped[str] = mapped_column(Text, default="")
    inspector_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), index=True)
    created_by: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"))
    last_updated_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id"), nullable=True)

    inspector = relationship("User", foreign_keys=[inspector_id], lazy="selectin")

    @property
    def display_name(self) -> str:
        return self.order_id or self.street_address or "A new job"
