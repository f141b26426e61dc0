"""Push delivery through Firebase Cloud Messaging.

The gateway is constructed once at startup and injected wherever pushes are
sent. ``send_multicast`` accepts at most 500 tokens, the FCM limit; chunking
is the dispatcher's job.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from inspector_pro.config import PushConfig

logger = logging.getLogger(__name__)

MAX_MULTICAST_TOKENS = 500

# Per-token error codes that mean the token will never work again
ERROR_UNREGISTERED = "unregistered"
ERROR_INVALID_TOKEN = "invalid-token"
PRUNABLE_ERROR_CODES = frozenset({ERROR_UNREGISTERED, ERROR_INVALID_TOKEN})


@dataclass
class PushPayload:
    title: str
    body: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def string_data(self) -> dict[str, str]:
        """FCM data values must be strings."""
        return {str(k): "" if v is None else str(v) for k, v in (self.data or {}).items()}


@dataclass
class TokenResponse:
    token: str
    success: bool
    message_id: str | None = None
    error_code: str | None = None
    error: str | None = None

    @property
    def should_prune(self) -> bool:
        return not self.success and self.error_code in PRUNABLE_ERROR_CODES


@dataclass
class MulticastResult:
    success_count: int
    failure_count: int
    responses: list[TokenResponse] = field(default_factory=list)


class PushGateway(Protocol):
    async def send(self, token: str, payload: PushPayload) -> str:
        ...

    async def send_multicast(self, tokens: list[str], payload: PushPayload) -> MulticastResult:
        ...


class PushDisabledError(RuntimeError):
    pass


class DisabledPushGateway:
    """Stand-in when push is switched off; every send fails loudly."""

    async def send(self, token: str, payload: PushPayload) -> str:
        raise PushDisabledError("Push delivery is disabled")

    async def send_multicast(self, tokens: list[str], payload: PushPayload) -> MulticastResult:
        raise PushDisabledError("Push delivery is disabled")


class FirebasePushGateway:
    """FCM client bound to one firebase_admin app."""

    def __init__(self, app):
        self._app = app

    @classmethod
    def from_credentials(cls, credentials_path: str = "", name: str = "inspector-pro") -> FirebasePushGateway:
        import firebase_admin
        from firebase_admin import credentials

        cred = credentials.Certificate(credentials_path) if credentials_path else None
        app = firebase_admin.initialize_app(cred, name=name)
        logger.info("Firebase app initialized (%s)", "service account" if credentials_path else "default credentials")
        return cls(app)

    def _notification(self, payload: PushPayload):
        from firebase_admin import messaging

        return messaging.Notification(title=payload.title or None, body=payload.body or None)

    def _send_sync(self, token: str, payload: PushPayload) -> str:
        from firebase_admin import messaging

        message = messaging.Message(
            notification=self._notification(payload),
            data=payload.string_data(),
            token=token,
        )
        return messaging.send(message, app=self._app)

    def _multicast_sync(self, tokens: list[str], payload: PushPayload) -> MulticastResult:
        from firebase_admin import messaging

        message = messaging.MulticastMessage(
            tokens=tokens,
            notification=self._notification(payload),
            data=payload.string_data(),
        )
        batch = messaging.send_each_for_multicast(message, app=self._app)
        responses = [
            _token_response(token, resp) for token, resp in zip(tokens, batch.responses)
        ]
        return MulticastResult(
            success_count=batch.success_count,
            failure_count=batch.failure_count,
            responses=responses,
        )

    async def send(self, token: str, payload: PushPayload) -> str:
        if not token:
            raise ValueError("Device token is required")
        return await asyncio.to_thread(self._send_sync, token, payload)

    async def send_multicast(self, tokens: list[str], payload: PushPayload) -> MulticastResult:
        if len(tokens) > MAX_MULTICAST_TOKENS:
            raise ValueError(f"At most {MAX_MULTICAST_TOKENS} tokens per multicast, got {len(tokens)}")
        return await asyncio.to_thread(self._multicast_sync, tokens, payload)


def _token_response(token: str, resp) -> TokenResponse:
    if resp.success:
        return TokenResponse(token=token, success=True, message_id=resp.message_id)
    exc = resp.exception
    return TokenResponse(
        token=token,
        success=False,
        error_code=classify_firebase_error(exc),
        error=str(exc) if exc else None,
    )


def classify_firebase_error(exc: BaseException | None) -> str | None:
    if exc is None:
        return None
    from firebase_admin import messaging

    if isinstance(exc, messaging.UnregisteredError):
        return ERROR_UNREGISTERED
    if isinstance(exc, messaging.SenderIdMismatchError):
        return ERROR_INVALID_TOKEN
    code = getattr(exc, "code", None)
    return str(code).lower() if code else "unknown"


def build_push_gateway(config: PushConfig) -> PushGateway:
    if not config.enabled:
        logger.info("Push delivery disabled")
        return DisabledPushGateway()
    try:
        return FirebasePushGateway.from_credentials(config.credentials_path)
    except Exception:
        logger.exception("Firebase init failed; push delivery disabled")
        return DisabledPushGateway()
