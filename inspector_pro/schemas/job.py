from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class JobCreate(BaseModel):
    order_id: str = Field(min_length=1)
    street_address: str = Field(min_length=1)
    inspector_id: str
    development_name: str = ""
    form_type: str = ""
    fee_status: str = "Standard"
    agreed_fee: float = 0.0
    site_contact_name: str = ""
    site_contact_phone: str = ""
    site_contact_email: str = ""
    due_date: datetime | None = None
    notes_for_inspector: str = ""


class JobAssign(BaseModel):
    inspector_id: str


class JobRead(BaseModel):
    id: str
    order_id: str
    street_address: str
    development_name: str = ""
    form_type: str = ""
    fee_status: str = "Standard"
    agreed_fee: float = 0.0
    site_contact_name: str = ""
    site_contact_phone: str = ""
    site_contact_email: str = ""
    due_date: datetime | None = None
    notes_for_inspector: str = ""
    inspector_id: str
    created_by: str
    last_updated_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
