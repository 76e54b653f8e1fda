"""
Reclaims reservations whose timer has run out.

The lazy sweep (sweep_expired_reservations) runs at the start of every reserve
and listing call. ExpirySweeper is an optional periodic loop on top of it; it
is never the only mechanism.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.services import clock
from app.services.card_store import SWEEP_EXPIRED, TransitionContext, apply_transition

logger = logging.getLogger(__name__)


def sweep_expired_reservations(db: Session, now: datetime | None = None) -> int:
    """Release lapsed reservations inside the caller's transaction. Sold cards are never matched."""
    now = now or clock.utcnow()
    released = apply_transition(db, None, SWEEP_EXPIRED, TransitionContext(now=now))
    if released:
        logger.info("Released %s expired reservation(s)", released)
    return released


def run_sweep(db: Session, now: datetime | None = None) -> int:
    """Standalone sweep with its own commit."""
    try:
        released = sweep_expired_reservations(db, now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return released


class ExpirySweeper:
    """Periodically sweeps expired reservations on a worker thread."""

    def __init__(self, session_factory: Callable[[], Session], interval_seconds: float):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    def sweep_once(self) -> int:
        db = self.session_factory()
        try:
            return run_sweep(db)
        finally:
            db.close()

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception:
                logger.exception("Periodic reservation sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None:
            logger.info("Starting periodic reservation sweep every %ss", self.interval_seconds)
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
