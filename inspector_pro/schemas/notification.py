from __future__ import annotations
from datetime import datetime
from typing import Any
from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: str
    type: str
    event: str = ""
    title: str
    body: str = ""
    data: dict[str, Any] = {}
    author_id: str | None = None
    recipient_id: str | None = None
    recipients: list[str] = []
    status: str
    result: dict[str, Any] | None = None
    sent_at: datetime | None = None
    read_by: list[str] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(BaseModel):
    items: list[NotificationRead]
    total: int
    page: int
    limit: int
