"""Pydantic request/response schemas."""

from inspector_pro.schemas.user import UserRegister, UserRead
from inspector_pro.schemas.job import JobCreate, JobAssign, JobRead
from inspector_pro.schemas.image_label import ImageLabelCreate, ImageLabelRead
from inspector_pro.schemas.report import ReportImageRead, ReportRead, ReportStatusUpdate, ReportPage
from inspector_pro.schemas.notification import NotificationRead, NotificationPage
from inspector_pro.schemas.device import DeviceRegister, DeviceToggle, DeviceSessionRead, DeviceRead

__all__ = [
    "UserRegister", "UserRead",
    "JobCreate", "JobAssign", "JobRead",
    "ImageLabelCreate", "ImageLabelRead",
    "ReportImageRead", "ReportRead", "ReportStatusUpdate", "ReportPage",
    "NotificationRead", "NotificationPage",
    "DeviceRegister", "DeviceToggle", "DeviceSessionRead", "DeviceRead",
]
