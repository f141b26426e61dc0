from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel


class ReportImageRead(BaseModel):
    seq: int
    label: str
    url: str
    key: str
    file_name: str
    mime_type: str
    size: int
    uploaded_by: str
    note_for_admin: str = ""

    model_config = {"from_attributes": True}


class ReportRead(BaseModel):
    id: str
    job_id: str
    inspector_id: str
    status: str
    last_updated_by: str | None = None
    created_at: datetime
    images: list[ReportImageRead] = []

    model_config = {"from_attributes": True}


class ReportStatusUpdate(BaseModel):
    status: str  # submitted | in_review | completed | rejected


class ReportPage(BaseModel):
    items: list[ReportRead]
    total: int
    page: int
    limit: int
