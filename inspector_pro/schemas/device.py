from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class DeviceRegister(BaseModel):
    device_id: str = Field(min_length=1)
    token: str = Field(min_length=1)
    platform: str  # android | ios | web
    device_name: str = ""


class DeviceToggle(BaseModel):
    notification_active: bool


class DeviceSessionRead(BaseModel):
    user_id: str
    notification_active: bool
    logged_in_status: bool
    last_logged_in_at: datetime | None = None
    last_logged_out_at: datetime | None = None

    model_config = {"from_attributes": True}


class DeviceRead(BaseModel):
    id: str
    device_id: str
    platform: str
    device_name: str = ""
    last_used: datetime | None = None
    session: DeviceSessionRead | None = None
