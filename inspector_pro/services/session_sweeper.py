"""Recurring reconciliation of stale device login sessions.

A session entry that has claimed "logged in" for longer than the configured
TTL is flipped to logged out. Matching token ids are read page by page with
a keyset cursor and written back in fixed-size batches, so the sweep never
holds the whole table in memory. Sweeps are idempotent and take no lock.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inspector_pro.config import SweeperConfig
from inspector_pro.db import crud
from inspector_pro.models.base import utcnow

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(days=7)

_DURATION = re.compile(r"^(\d+)\s*(d|h|m|w)?$")
_UNITS = {"m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def parse_duration(value: str | int | None) -> timedelta:
    """``7d``, ``24h``, ``15m``, ``1w`` (any case); a bare number means days.

    Anything else falls back to seven days.
    """
    match = _DURATION.match(str(value if value is not None else "").strip().lower())
    if not match:
        if value not in (None, ""):
            logger.warning("Unrecognised session TTL %r, using 7d", value)
        return DEFAULT_SESSION_TTL
    amount, unit = int(match.group(1)), match.group(2) or "d"
    return timedelta(**{_UNITS[unit]: amount})


@dataclass
class SweepStats:
    expiry: datetime
    matched: int = 0
    batches: int = 0
    failed_batches: int = 0


async def _flush(
    db: AsyncSession, token_ids: list[str], expiry: datetime, now: datetime, stats: SweepStats,
) -> None:
    try:
        await crud.bulk_expire_sessions(db, token_ids, expiry, now)
        stats.batches += 1
    except Exception:
        stats.failed_batches += 1
        logger.exception("Session sweep batch of %d token(s) failed", len(token_ids))
        await db.rollback()


async def sweep_once(
    session_factory: async_sessionmaker[AsyncSession],
    session_ttl: str = "7d",
    batch_size: int = 500,
    now: datetime | None = None,
) -> SweepStats:
    now = now or utcnow()
    batch_size = max(1, batch_size)
    stats = SweepStats(expiry=now - parse_duration(session_ttl))

    queue: list[str] = []
    async with session_factory() as db:
        cursor = None
        while True:
            page = await crud.expired_session_token_ids(db, stats.expiry, cursor, batch_size)
            if not page:
                break
            cursor = page[-1]
            for token_id in page:
                queue.append(token_id)
                stats.matched += 1
                if len(queue) >= batch_size:
                    await _flush(db, queue, stats.expiry, now, stats)
                    queue = []
        if queue:
            await _flush(db, queue, stats.expiry, now, stats)

    logger.info(
        "Session sweep done: %d token(s) matched, %d batch(es) written, %d failed",
        stats.matched, stats.batches, stats.failed_batches,
    )
    return stats


class SessionSweeper:
    """Runs ``sweep_once`` at startup and then every ``interval_ms``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], config: SweeperConfig):
        self.session_factory = session_factory
        self.config = config
        self._task: asyncio.Task | None = None

    async def sweep(self) -> SweepStats:
        return await sweep_once(self.session_factory, self.config.session_ttl, self.config.batch_size)

    async def _run(self) -> None:
        while True:
            try:
                await self.sweep()
            except Exception:
                logger.exception("Session sweep failed")
            await asyncio.sleep(self.config.interval_ms / 1000)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            logger.info(
                "Session sweeper started (ttl=%s, every %d ms, batch=%d)",
                self.config.session_ttl, self.config.interval_ms, self.config.batch_size,
            )
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
