"""
Sync Progress Tracker

Owns the appConfig/syncProgress snapshot for one run at a time:
- start() takes the single-run lock and issues a run id
- update() moves phases forward and keeps percentage non-decreasing
- complete()/fail() write the terminal state and release the lock

Writes are serialized with an asyncio.Lock so concurrent detail fetches
can never publish an out-of-order percentage.

Author: TM3
Date: 2026-02-10
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.core.exceptions import SyncAlreadyRunningError
from app.domain.sync import SyncMode, SyncPhase, SyncProgress
from app.repositories.app_config_repository import AppConfigRepository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncProgressTracker:

    def __init__(self, repository: AppConfigRepository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock
        self._write_lock = asyncio.Lock()
        self._progress: Optional[SyncProgress] = None

    @property
    def running_run_id(self) -> Optional[str]:
        if self._progress is not None and self._progress.is_running:
            return self._progress.run_id
        return None

    async def start(self, mode: SyncMode) -> str:
        """
        Begin a run in the listing phase

        Raises:
            SyncAlreadyRunningError: another run has not finished yet
        """
        # No await between the check and the assignment
        if self.running_run_id:
            raise SyncAlreadyRunningError(self.running_run_id)

        now = self.clock().isoformat()
        self._progress = SyncProgress(
            run_id=uuid.uuid4().hex,
            mode=mode,
            phase=SyncPhase.LISTING,
            current_step="Iniciando sincronização...",
            started_at=now,
            updated_at=now,
        )
        await self._publish()
        logger.info(f"🔄 Sync {self._progress.run_id} started ({mode.value})")
        return self._progress.run_id

    async def update(self, phase: SyncPhase, current_step: str,
                     current: Optional[int] = None, total: Optional[int] = None) -> None:
        """
        Publish a progress step

        Backward phase transitions are ignored and percentage never decreases
        within a run.
        """
        async with self._write_lock:
            progress = self._progress
            if progress is None or not progress.is_running:
                return
            if phase.order < progress.phase.order:
                logger.debug(f"Ignoring backward phase {phase.value} (at {progress.phase.value})")
                return

            progress.phase = phase
            progress.current_step = current_step
            if total is not None:
                progress.total_orders = total
            if current is not None:
                progress.current_order = max(progress.current_order, current)

            if phase in (SyncPhase.SAVING, SyncPhase.COMPLETED):
                percentage = 100
            elif phase == SyncPhase.FETCHING_DETAILS and progress.total_orders:
                percentage = int(progress.current_order / progress.total_orders * 100)
            else:
                percentage = 0
            progress.percentage = min(100, max(progress.percentage, percentage))
            progress.updated_at = self.clock().isoformat()
            await self.repository.save_progress(progress.to_document())

    async def complete(self, current_step: str) -> None:
        await self.update(SyncPhase.COMPLETED, current_step)
        async with self._write_lock:
            self._progress.is_running = False
            self._progress.finished_at = self.clock().isoformat()
            await self.repository.save_progress(self._progress.to_document())
        logger.info(f"✅ Sync {self._progress.run_id} completed: {current_step}")

    async def fail(self, error: str) -> None:
        """Terminal error state; left in place for the next poll to observe"""
        async with self._write_lock:
            progress = self._progress
            if progress is None:
                return
            now = self.clock().isoformat()
            progress.phase = SyncPhase.ERROR
            progress.is_running = False
            progress.error = error
            progress.current_step = f"Erro: {error}"
            progress.updated_at = now
            progress.finished_at = now
            await self.repository.save_progress(progress.to_document())
        logger.error(f"❌ Sync {progress.run_id} failed: {error}")

    async def _publish(self) -> None:
        async with self._write_lock:
            await self.repository.save_progress(self._progress.to_document())

    async def snapshot(self, run_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Latest stored snapshot, optionally only if it belongs to run_id
        """
        progress = await self.repository.get_progress()
        if progress is None:
            return None
        if run_id and progress.get("runId") != run_id:
            return None
        return progress
