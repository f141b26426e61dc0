"""In-memory fakes and data builders shared by the test suite."""

from __future__ import annotations

import asyncio
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.models import User, Job, ImageLabel, PushToken
from inspector_pro.models.user import ROLE_ADMIN, ROLE_INSPECTOR
from inspector_pro.services.media_store import StoredObject
from inspector_pro.services.push_gateway import MulticastResult, PushPayload, TokenResponse


class FakeMediaStore:
    """Keeps objects in a dict. ``fail_on`` names files whose upload raises."""

    def __init__(self, fail_on: set[str] | None = None, delay: float = 0.0):
        self.objects: dict[str, bytes] = {}
        self.fail_on = fail_on or set()
        self.delay = delay
        self.put_calls: list[str] = []
        self.deleted: list[list[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def put(self, stream, key, content_type):
        self.put_calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if any(key.endswith(name) for name in self.fail_on):
                raise IOError(f"storage rejected {key}")
            data = stream if isinstance(stream, bytes) else stream.read()
            self.objects[key] = data
            return StoredObject(key=key, url=f"https://media.test/{key}")
        finally:
            self.in_flight -= 1

    async def delete_many(self, keys):
        if not keys:
            raise ValueError("keys must be a non-empty list")
        self.deleted.append(list(keys))
        for key in keys:
            self.objects.pop(key, None)


class FakePushGateway:
    """Records every call. Per-token outcomes come from ``token_errors``."""

    def __init__(self, token_errors: dict[str, str] | None = None, raise_multicast: bool = False,
                 raise_send: bool = False):
        self.token_errors = token_errors or {}
        self.raise_multicast = raise_multicast
        self.raise_send = raise_send
        self.multicast_calls: list[list[str]] = []
        self.send_calls: list[str] = []
        self.payloads: list[PushPayload] = []

    async def send(self, token: str, payload: PushPayload) -> str:
        self.send_calls.append(token)
        self.payloads.append(payload)
        if self.raise_send:
            raise RuntimeError("gateway unavailable")
        return f"msg-{token}"

    async def send_multicast(self, tokens: list[str], payload: PushPayload) -> MulticastResult:
        self.multicast_calls.append(list(tokens))
        self.payloads.append(payload)
        if self.raise_multicast:
            raise RuntimeError("gateway unavailable")
        responses = []
        for token in tokens:
            code = self.token_errors.get(token)
            if code:
                responses.append(TokenResponse(token=token, success=False, error_code=code, error=code))
            else:
                responses.append(TokenResponse(token=token, success=True, message_id=f"msg-{token}"))
        failures = sum(1 for r in responses if not r.success)
        return MulticastResult(
            success_count=len(tokens) - failures, failure_count=failures, responses=responses,
        )

    @property
    def all_multicast_tokens(self) -> list[str]:
        return [t for call in self.multicast_calls for t in call]


# ── Data helpers ────────────────────────────────────────

_counter = {"n": 0}


def _unique_email(prefix: str) -> str:
    _counter["n"] += 1
    return f"{prefix}{_counter['n']}@example.com"


async def make_user(
    db: AsyncSession, role: str = ROLE_INSPECTOR, approved: bool = True,
    suspended: bool = False, first_name: str = "Test",
) -> User:
    user = await crud.create_user(db, first_name, role.title(), _unique_email(role), role, is_approved=approved)
    if suspended:
        user = await crud.update_user(db, user, is_suspended=True)
    return user


async def make_admin(db: AsyncSession, **kwargs) -> User:
    return await make_user(db, role=ROLE_ADMIN, **kwargs)


async def make_job(db: AsyncSession, inspector: User, creator: User, order_id: str = "ORD-1") -> Job:
    return await crud.create_job(
        db, order_id=order_id, street_address="12 Harbour St",
        inspector_id=inspector.id, created_by=creator.id,
    )


async def make_label(db: AsyncSession, text: str, creator: User) -> ImageLabel:
    return await crud.create_image_label(db, text, creator.id)


async def add_device(
    db: AsyncSession, user: User, token: str, device_id: str | None = None,
    logged_in_at: datetime | None = None,
) -> PushToken:
    push_token = await crud.upsert_push_token(db, device_id or f"dev-{token}", token, "android")
    await crud.login_session(db, push_token, user.id)
    if logged_in_at is not None:
        entry = push_token.session_for(user.id)
        entry.last_logged_in_at = logged_in_at
        await db.commit()
    return push_token
