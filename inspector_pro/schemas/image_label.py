from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class ImageLabelCreate(BaseModel):
    label: str = Field(min_length=1, max_length=255)


class ImageLabelRead(BaseModel):
    id: str
    label: str
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}
