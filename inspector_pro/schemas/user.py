from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class UserRegister(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: str = Field(min_length=3)
    role: str = "inspector"  # admin | inspector


class UserRead(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: str
    is_approved: bool
    is_suspended: bool
    created_at: datetime

    model_config = {"from_attributes": True}
