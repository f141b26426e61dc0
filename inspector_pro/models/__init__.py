"""SQLAlchemy ORM models."""

from inspector_pro.models.base import Base
from inspector_pro.models.user import User
from inspector_pro.models.job import Job
from inspector_pro.models.image_label import ImageLabel
from inspector_pro.models.report import Report, ReportImage
from inspector_pro.models.notification import Notification, NotificationType
from inspector_pro.models.push_token import PushToken, PushTokenSession

__all__ = [
    "Base", "User", "Job", "ImageLabel", "Report", "ReportImage",
    "Notification", "NotificationType", "PushToken", "PushTokenSession",
]
