"""Business events that fan out as push notifications.

Each builder returns a ``NotificationEvent`` describing what to say and who
should hear it. Recipients are either explicit ids or an audience resolved
by the dispatcher at send time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from inspector_pro.models import Job, Report, User, NotificationType
from inspector_pro.models.user import ROLE_ADMIN

AUDIENCE_ADMINS = "admins"

JOB_CREATED = "job.created"
JOB_ASSIGNED = "job.assigned"
REPORT_CREATED = "report.created"
REPORT_STATUS_UPDATED = "report.status_updated"
USER_REGISTERED = "user.registered"
USER_APPROVED = "user.approved"
USER_SUSPENDED = "user.suspended"
USER_UNSUSPENDED = "user.unsuspended"


@dataclass
class NotificationEvent:
    name: str
    type: NotificationType
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    author_id: str | None = None
    recipient_id: str | None = None
    recipient_ids: list[str] | None = None
    audience: str | None = None
    exclude_ids: list[str] = field(default_factory=list)


def job_created(job: Job, author_id: str | None) -> NotificationEvent:
    return NotificationEvent(
        name=JOB_CREATED,
        type=NotificationType.JOB_CREATED,
        title="New job created",
        body=f"{job.display_name} has been created.",
        data={"jobId": job.id, "action": "job_created"},
        author_id=author_id,
        audience=AUDIENCE_ADMINS,
    )


def job_assigned(job: Job, author_id: str | None) -> NotificationEvent:
    return NotificationEvent(
        name=JOB_ASSIGNED,
        type=NotificationType.JOB_ASSIGNED,
        title="You have a new job assigned",
        body=f"{job.display_name} has been assigned to you.",
        data={"jobId": job.id, "action": "job_assigned"},
        author_id=author_id,
        recipient_id=job.inspector_id,
    )


def report_created(report: Report, job: Job) -> NotificationEvent:
    return NotificationEvent(
        name=REPORT_CREATED,
        type=NotificationType.REPORT_CREATED,
        title="New report submitted",
        body=f"A report for {job.display_name} has been submitted with {len(report.images)} photo(s).",
        data={"reportId": report.id, "jobId": job.id, "action": "report_created"},
        author_id=report.inspector_id,
        audience=AUDIENCE_ADMINS,
    )


def report_status_updated(report: Report, actor_id: str | None) -> NotificationEvent:
    label = report.status.replace("_", " ")
    return NotificationEvent(
        name=REPORT_STATUS_UPDATED,
        type=NotificationType.REPORT_STATUS_UPDATED,
        title="Report status updated",
        body=f"Your report is now {label}.",
        data={"reportId": report.id, "jobId": report.job_id, "status": report.status,
              "action": "report_status_updated"},
        author_id=actor_id,
        recipient_id=report.inspector_id,
    )


def user_registered(user: User) -> NotificationEvent:
    role_name = "admin" if user.role == ROLE_ADMIN else "inspector"
    return NotificationEvent(
        name=USER_REGISTERED,
        type=(NotificationType.REGISTERED_AS_ADMIN if user.role == ROLE_ADMIN
              else NotificationType.REGISTERED_AS_INSPECTOR),
        title=f"New {role_name} registration",
        body=f"{user.full_name} has registered as an {role_name} and is awaiting approval.",
        data={"userId": user.id, "role": user.role},
        author_id=user.id,
        audience=AUDIENCE_ADMINS,
        exclude_ids=[user.id],
    )


def user_approved(user: User, actor_id: str | None) -> NotificationEvent:
    return NotificationEvent(
        name=USER_APPROVED,
        type=NotificationType.USER_APPROVED,
        title="User approved",
        body=f"{user.full_name} has been approved and can now access the system.",
        data={"userId": user.id, "action": "approved"},
        author_id=actor_id,
        audience=AUDIENCE_ADMINS,
        exclude_ids=[user.id],
    )


def user_suspended(user: User, actor_id: str | None) -> NotificationEvent:
    return NotificationEvent(
        name=USER_SUSPENDED,
        type=NotificationType.ACCOUNT_SUSPENDED,
        title="Account suspended",
        body=f"{user.full_name} has been suspended by an administrator.",
        data={"userId": user.id, "action": "suspended"},
        author_id=actor_id,
        audience=AUDIENCE_ADMINS,
        exclude_ids=[user.id],
    )


def user_unsuspended(user: User, actor_id: str | None) -> NotificationEvent:
    return NotificationEvent(
        name=USER_UNSUSPENDED,
        type=NotificationType.ACCOUNT_UNSUSPENDED,
        title="Account reinstated",
        body=f"{user.full_name} has been reinstated by an administrator.",
        data={"userId": user.id, "action": "unsuspended"},
        author_id=actor_id,
        audience=AUDIENCE_ADMINS,
        exclude_ids=[user.id],
    )
