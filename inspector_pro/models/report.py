"""Inspection report and its ordered photo entries."""

from __future__ import annotations

from sqlalchemy import String, Integer, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inspector_pro.models.base import Base, ULIDMixin, UpdatedAtMixin

REPORT_STATUSES = ("submitted", "in_review", "completed", "rejected")


class Report(Base, ULIDMixin, UpdatedAtMixin):
    __tablename__ = "reports"

    # unique: at most one report per job
    job_id: Mapped[str] = mapped_column(String(26), ForeignKey("jobs.id"), unique=True)
    inspector_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), index=True)
    status: Mapped[str] = mapped_column(String(20), default="submitted")  # submitted | in_review | completed | rejected
    last_updated_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id"), nullable=True)

    job = relationship("Job", lazy="selectin")
    images = relationship(
        "ReportImage", back_populates="report", lazy="selectin",
        order_by="ReportImage.seq", cascade="all, delete-orphan",
    )


class ReportImage(Base, ULIDMixin):
    __tablename__ = "report_images"

    report_id: Mapped[str] = mapped_column(String(26), ForeignKey("reports.id", ondelete="CASCADE"), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    label: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(String(1000), default="")
    key: Mapped[str] = mapped_column(String(1000), default="")
    file_name: Mapped[str] = mapped_column(String(500))
    mime_type: Mapped[str] = mapped_column(String(100), default="application/octet-stream")
    size: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_by: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"))
    note_for_admin: Mapped[str] = mapped_column(Text, default="")

    report = relationship("Report", back_populates="images")
