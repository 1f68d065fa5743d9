"""Background asyncio scheduler that commits state at the top of every UTC hour.

The scheduler is a plain object owned by whoever starts it (the API lifespan,
a test); start() on a running scheduler is a no-op. Creating a commitment is
idempotent per hour, so trigger_now() can race the loop safely.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from murmur.integrity.commitments import CommitmentService
    from murmur.models import Commitment

logger = logging.getLogger(__name__)


def next_commitment_time(now: Optional[datetime] = None) -> datetime:
    """Top of the next UTC hour."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def time_until_next_commitment(now: Optional[datetime] = None) -> dict:
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    total = int((next_commitment_time(now) - now).total_seconds())
    return {"minutes": total // 60, "seconds": total % 60, "total_seconds": total}


class CommitmentScheduler:
    """Runs CommitmentService.create_hourly_commitment() once per hour."""

    def __init__(self, commitments: "CommitmentService", *, interval: float | None = None):
        self.commitments = commitments
        # Fixed delay between cycles; None aligns each cycle to the hour
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._running = False
        self.last_run: datetime | None = None
        self.last_result: Optional["Commitment"] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def _delay(self) -> float:
        if self.interval is not None:
            return self.interval
        now = datetime.now(timezone.utc)
        return max(0.0, (next_commitment_time(now) - now).total_seconds())

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("CommitmentScheduler started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("CommitmentScheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._delay())
            except asyncio.CancelledError:
                break
            try:
                commitment = await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Commitment cycle failed")
                continue
            if commitment is None:
                logger.warning("State commitment returned None; retrying next cycle")

    async def run_cycle(self) -> Optional["Commitment"]:
        commitment = await asyncio.to_thread(self.commitments.create_hourly_commitment)
        self.last_run = datetime.now(timezone.utc)
        self.last_result = commitment
        return commitment

    async def trigger_now(self) -> Optional["Commitment"]:
        """Commit immediately (manual trigger)."""
        logger.info("Manually triggering state commitment")
        return await self.run_cycle()

    def status(self) -> dict:
        if not self._running:
            return {"is_running": False, "next_run": None}
        if self.interval is not None:
            next_run = datetime.now(timezone.utc) + timedelta(seconds=self.interval)
        else:
            next_run = next_commitment_time()
        return {
            "is_running": True,
            "next_run": next_run.isoformat(),
            "last_run": self.last_run.isoformat() if self.last_run else None,
        }


__all__ = ["CommitmentScheduler", "next_commitment_time", "time_until_next_commitment"]
