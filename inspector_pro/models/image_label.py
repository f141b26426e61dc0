from __future__ import annotations

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from inspector_pro.models.base import Base, ULIDMixin


class ImageLabel(Base, ULIDMixin):
    __tablename__ = "image_labels"

    label: Mapped[str] = mapped_column(String(255))
    created_by: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"))
