"""Notification fan-out: business event -> recipients -> device tokens -> push.

``NotificationDispatcher.notify`` never raises. Its return value is the
Notification row, whose ``status`` (``sent`` or ``failed``) and ``result``
carry the outcome. Callers must not treat a failed notification as a failure
of the business action that produced it: log it and move on.

Each call makes at most one delivery attempt; there is no retry queue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.attributes import set_committed_value

from inspector_pro.db import crud
from inspector_pro.errors import DeliveryWarning
from inspector_pro.models import Notification
from inspector_pro.models.base import utcnow
from inspector_pro.services.events import AUDIENCE_ADMINS, NotificationEvent
from inspector_pro.services.push_gateway import MAX_MULTICAST_TOKENS, PushGateway, PushPayload

logger = logging.getLogger(__name__)


@dataclass
class _Delivery:
    status: str
    result: dict[str, Any]
    dead_tokens: list[str] = field(default_factory=list)


def _chunks(items: list[str], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _short(token: str) -> str:
    return token[:12] + "..." if len(token) > 12 else token


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PushGateway,
        chunk_size: int = MAX_MULTICAST_TOKENS,
    ):
        self._session_factory = session_factory
        self._gateway = gateway
        self._chunk_size = max(1, min(chunk_size, MAX_MULTICAST_TOKENS))

    async def notify(self, event: NotificationEvent) -> Notification:
        """Create, dispatch and finalize one notification. Never raises."""
        payload = PushPayload(title=event.title, body=event.body, data=event.data)
        data = payload.string_data()

        # The notification row lives in its own session so that rolling back
        # a failed lookup or prune never expires it.
        async with self._session_factory() as db:
            try:
                notif = await crud.create_notification(
                    db,
                    type=event.type.value,
                    event=event.name,
                    title=event.title,
                    body=event.body,
                    data=data,
                    author_id=event.author_id,
                    recipient_id=event.recipient_id,
                    recipients=list(event.recipient_ids or []),
                )
            except Exception as exc:
                logger.exception("Could not record %s notification", event.name)
                await _rollback_quietly(db)
                return _transient_failure(event, data, exc)
            notif_id = notif.id

            fields: dict[str, Any] = {}
            async with self._session_factory() as work:
                try:
                    recipients = await self._resolve_recipients(work, event)
                    tokens = await crud.active_tokens_for_users(work, recipients)
                    if event.recipient_id is None:
                        fields["recipients"] = recipients
                    fields["device_tokens"] = tokens
                    delivery = await self._deliver(work, recipients, tokens, payload)
                except Exception as exc:
                    logger.exception("Dispatch of notification %s (%s) failed", notif_id, event.name)
                    await _rollback_quietly(work)
                    delivery = _Delivery(status="failed", result={"error": str(exc) or type(exc).__name__})

                if delivery.dead_tokens:
                    await self._prune(work, delivery.dead_tokens)

            await self._finalize(db, notif, delivery, fields)

        logger.info(
            "Notification %s (%s) %s: %s",
            notif_id, event.name, notif.status, _summary(notif.result),
        )
        return notif

    async def _resolve_recipients(self, db: AsyncSession, event: NotificationEvent) -> list[str]:
        exclude = set(event.exclude_ids or [])
        if event.recipient_id:
            return [event.recipient_id]
        if event.recipient_ids is not None:
            return [uid for uid in dict.fromkeys(event.recipient_ids) if uid not in exclude]
        if event.audience == AUDIENCE_ADMINS:
            return await crud.list_active_admin_ids(db, exclude_ids=list(exclude))
        raise ValueError(f"Event {event.name} has no recipients or known audience ({event.audience!r})")

    async def _deliver(
        self, db: AsyncSession, recipients: list[str], tokens: list[str], payload: PushPayload,
    ) -> _Delivery:
        if tokens:
            return await self._multicast(tokens, payload)
        if len(recipients) == 1:
            return await self._send_to_user(db, recipients[0], payload)
        return _Delivery(status="sent", result={"mode": "none", "warning": DeliveryWarning.NO_TARGETS.value})

    async def _multicast(self, tokens: list[str], payload: PushPayload) -> _Delivery:
        success = failure = raised = 0
        chunks: list[dict[str, Any]] = []
        dead: list[str] = []
        last_error = ""

        for index, chunk in enumerate(_chunks(tokens, self._chunk_size)):
            try:
                resp = await self._gateway.send_multicast(chunk, payload)
            except Exception as exc:
                logger.warning("Multicast chunk %d (%d tokens) failed: %s", index, len(chunk), exc)
                raised += 1
                failure += len(chunk)
                last_error = str(exc) or type(exc).__name__
                chunks.append({"index": index, "size": len(chunk), "error": last_error})
                continue

            success += resp.success_count
            failure += resp.failure_count
            dead.extend(r.token for r in resp.responses if r.should_prune)
            chunks.append({
                "index": index,
                "size": len(chunk),
                "successCount": resp.success_count,
                "failureCount": resp.failure_count,
                "errors": [
                    {"token": _short(r.token), "code": r.error_code}
                    for r in resp.responses if not r.success
                ],
            })

        result: dict[str, Any] = {
            "mode": "multicast",
            "tokenCount": len(tokens),
            "successCount": success,
            "failureCount": failure,
            "chunks": chunks,
        }
        if raised == len(chunks):
            result["error"] = last_error
            return _Delivery(status="failed", result=result, dead_tokens=dead)
        if failure:
            result["warning"] = DeliveryWarning.PARTIAL_FAILURE.value
        return _Delivery(status="sent", result=result, dead_tokens=dead)

    async def _send_to_user(self, db: AsyncSession, user_id: str, payload: PushPayload) -> _Delivery:
        """Best-effort path for a lone recipient with no logged-in device."""
        tokens = await crud.notifiable_tokens_for_user(db, user_id)
        if not tokens:
            return _Delivery(status="sent", result={
                "mode": "single_user", "userId": user_id,
                "warning": DeliveryWarning.NO_TOKENS_FOR_USER.value,
            })

        sent: list[str] = []
        errors: list[dict[str, str]] = []
        for token in tokens:
            try:
                sent.append(await self._gateway.send(token, payload))
            except Exception as exc:
                logger.warning("Push to user %s token %s failed: %s", user_id, _short(token), exc)
                errors.append({"token": _short(token), "error": str(exc) or type(exc).__name__})

        result: dict[str, Any] = {
            "mode": "single_user",
            "userId": user_id,
            "successCount": len(sent),
            "failureCount": len(errors),
            "messageIds": sent,
            "errors": errors,
        }
        if not sent:
            result["error"] = errors[-1]["error"]
            return _Delivery(status="failed", result=result)
        if errors:
            result["warning"] = DeliveryWarning.PARTIAL_FAILURE.value
        return _Delivery(status="sent", result=result)

    async def _prune(self, db: AsyncSession, tokens: list[str]) -> None:
        try:
            removed = await crud.delete_push_tokens(db, tokens)
            logger.info("Pruned %d dead push token(s)", removed)
        except Exception:
            logger.exception("Pruning %d dead push token(s) failed", len(tokens))
            await _rollback_quietly(db)

    async def _finalize(
        self, db: AsyncSession, notif: Notification, delivery: _Delivery, fields: dict[str, Any],
    ) -> None:
        sent_at = utcnow() if delivery.status == "sent" else None
        try:
            won = await crud.finalize_notification(
                db, notif, delivery.status, delivery.result, sent_at=sent_at, **fields,
            )
            if not won:
                logger.warning("Notification %s was already finalized", notif.id)
                await db.refresh(notif)
        except Exception as exc:
            logger.exception("Could not persist final status of notification %s", notif.id)
            # detach first so the rollback does not expire it; the caller still gets a terminal status
            db.expunge(notif)
            await _rollback_quietly(db)
            set_committed_value(notif, "status", "failed")
            set_committed_value(notif, "result", {**delivery.result, "persistError": str(exc)})


async def _rollback_quietly(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except Exception:
        logger.exception("Rollback failed")


def _transient_failure(event: NotificationEvent, data: dict[str, str], exc: BaseException) -> Notification:
    return Notification(
        type=event.type.value,
        event=event.name,
        title=event.title,
        body=event.body,
        data=data,
        author_id=event.author_id,
        recipient_id=event.recipient_id,
        recipients=list(event.recipient_ids or []),
        device_tokens=[],
        status="failed",
        result={"error": str(exc) or type(exc).__name__},
        read_by=[],
    )


def _summary(result: dict | None) -> str:
    if not result:
        return "-"
    if "error" in result:
        return f"error={result['error']}"
    if "warning" in result:
        return f"warning={result['warning']}"
    return f"success={result.get('successCount', 0)} failure={result.get('failureCount', 0)}"


def log_outcome(notif: Notification, context: str) -> None:
    """Log a dispatch outcome from the point of view of the triggering action."""
    if notif.status == "failed":
        logger.warning("%s: notification delivery failed (%s)", context, _summary(notif.result))
    else:
        logger.debug("%s: notification %s %s", context, notif.id, notif.status)
