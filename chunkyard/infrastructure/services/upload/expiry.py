"""
Deferred reclamation of upload sessions.

Completed sessions are deleted after a retention period; sessions that
stop receiving chunks are deleted once their abandoned TTL elapses. Jobs
are held in memory and reconstructed from store state by the sweep, so a
restart never loses a reclamation.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ....core.domain.events import UploadEvents
from ....core.interfaces.lifecycle import IComponent
from ....core.interfaces.messaging import IEventBus
from ....core.interfaces.upload import IExpiryScheduler, ISessionStore
from ...config.models import ExpiryConfig


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpiryScheduler(IComponent, IExpiryScheduler):
    """
    One-shot deletion jobs executed by a single supervised worker task.

    ``schedule`` only records the job and wakes the worker, so it is safe
    to call from inside request handling.
    """

    def __init__(
        self,
        session_store: ISessionStore,
        retention_seconds: float = 300.0,
        config: Optional[ExpiryConfig] = None,
        event_bus: Optional[IEventBus] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._store = session_store
        self._retention_seconds = retention_seconds
        self._config = config or ExpiryConfig()
        self._event_bus = event_bus
        self._clock = clock or _utcnow

        self._jobs: Dict[str, datetime] = {}
        self._wake: Optional[asyncio.Event] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._running = False
        self._next_sweep_at: Optional[datetime] = None

        self._stats = {
            'jobs_scheduled': 0,
            'jobs_executed': 0,
            'jobs_failed': 0,
            'abandoned_reclaimed': 0,
            'jobs_recovered': 0,
            'sweeps': 0,
            'worker_restarts': 0,
        }

    @property
    def name(self) -> str:
        return "ExpiryScheduler"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        self._wake = asyncio.Event()
        self._running = True

        try:
            await self.sweep()
        except Exception as e:
            logger.error(f"Initial expiry sweep failed: {e}")

        self._next_sweep_at = self._clock() + timedelta(seconds=self._config.sweep_interval_seconds)
        self._spawn_worker()

        logger.info(f"Expiry scheduler started (retention {self._retention_seconds}s, "
                    f"abandoned TTL {self._config.abandoned_session_ttl_seconds}s)")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False

        if self._worker:
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
            self._worker = None

        logger.info(f"Expiry scheduler stopped with {len(self._jobs)} pending job(s)")

    async def configure(self, config: Dict[str, Any]) -> None:
        self._retention_seconds = config.get('completed_retention_seconds', self._retention_seconds)

        new_config = ExpiryConfig(
            abandoned_session_ttl_seconds=config.get(
                'abandoned_session_ttl_seconds', self._config.abandoned_session_ttl_seconds),
            sweep_interval_seconds=config.get(
                'sweep_interval_seconds', self._config.sweep_interval_seconds),
            retry_delay_seconds=config.get(
                'retry_delay_seconds', self._config.retry_delay_seconds),
        )
        if new_config.sweep_interval_seconds <= 0 or new_config.retry_delay_seconds <= 0:
            raise ValueError("Sweep interval and retry delay must be positive")

        self._config = new_config
        if self._wake:
            self._wake.set()

    async def check_health(self) -> Dict[str, Any]:
        worker_alive = self._worker is not None and not self._worker.done()
        next_due = min(self._jobs.values()) if self._jobs else None

        return {
            'healthy': not self._running or worker_alive,
            'status': 'running' if self._running else 'stopped',
            'details': {
                'pending_jobs': len(self._jobs),
                'next_due': next_due.isoformat() if next_due else None,
                'worker_alive': worker_alive,
                'statistics': dict(self._stats),
            }
        }

    def schedule(self, session_id: str, delay_seconds: float) -> datetime:
        due = self._clock() + timedelta(seconds=max(0.0, delay_seconds))
        self._jobs[session_id] = due
        self._stats['jobs_scheduled'] += 1

        if self._wake:
            self._wake.set()

        logger.debug(f"Scheduled deletion of session {session_id} at {due.isoformat()}")
        return due

    def unschedule(self, session_id: str) -> bool:
        return self._jobs.pop(session_id, None) is not None

    def pending_jobs(self) -> Dict[str, datetime]:
        return dict(self._jobs)

    async def run_pending(self, now: Optional[datetime] = None) -> int:
        """
        Execute every job whose due time has passed.

        A job whose deletion fails is put back with a retry delay rather
        than dropped.

        Returns:
            Number of jobs executed successfully
        """
        now = now or self._clock()
        due = sorted(
            (at, session_id) for session_id, at in self._jobs.items() if at <= now
        )

        executed = 0
        for due_at, session_id in due:
            if self._jobs.get(session_id) != due_at:
                continue
            del self._jobs[session_id]

            try:
                await self._delete(session_id, reason="retention elapsed")
            except Exception as e:
                retry_at = now + timedelta(seconds=self._config.retry_delay_seconds)
                self._jobs.setdefault(session_id, retry_at)
                self._stats['jobs_failed'] += 1
                logger.error(f"Failed to delete expired session {session_id}, "
                             f"retrying at {retry_at.isoformat()}: {e}")
                continue

            executed += 1
            self._stats['jobs_executed'] += 1

        return executed

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Reconcile jobs with the session store.

        Completed sessions without a job get one at ``completed_at`` plus the
        retention period. Sessions that were never completed and have been
        idle past the abandoned TTL are deleted. Due jobs are then run.

        Returns:
            Number of sessions reclaimed
        """
        now = now or self._clock()
        ttl = self._config.abandoned_session_ttl_seconds
        reclaimed = 0
        self._stats['sweeps'] += 1

        for session in await self._store.list_sessions():
            if session.completed_at is not None:
                if session.session_id not in self._jobs:
                    self._jobs[session.session_id] = (
                        session.completed_at + timedelta(seconds=self._retention_seconds))
                    self._stats['jobs_recovered'] += 1
                    logger.info(f"Recovered deletion job for completed session {session.session_id}")
                continue

            last_activity = session.last_activity_at or session.created_at
            if ttl <= 0 or last_activity + timedelta(seconds=ttl) > now:
                continue

            try:
                await self._delete(session.session_id, reason="abandoned")
            except Exception as e:
                logger.error(f"Failed to delete abandoned session {session.session_id}: {e}")
                continue

            reclaimed += 1
            self._stats['abandoned_reclaimed'] += 1

        reclaimed += await self.run_pending(now)

        if reclaimed:
            logger.info(f"Expiry sweep reclaimed {reclaimed} session(s)")
        return reclaimed

    async def _delete(self, session_id: str, reason: str) -> None:
        async with self._store.lock(session_id):
            deleted = await self._store.delete(session_id)

        if not deleted:
            logger.debug(f"Session {session_id} already gone")
            return

        logger.info(f"Deleted session {session_id} ({reason})")

        if self._event_bus is not None:
            try:
                await self._event_bus.publish(UploadEvents.EXPIRED, {
                    "session_id": session_id, "reason": reason,
                })
            except Exception as e:
                logger.warning(f"Could not publish {UploadEvents.EXPIRED}: {e}")

    def _spawn_worker(self) -> None:
        self._worker = asyncio.create_task(self._worker_loop())
        self._worker.add_done_callback(self._on_worker_done)

    def _on_worker_done(self, task: 'asyncio.Task[None]') -> None:
        if task.cancelled() or not self._running:
            return

        error = task.exception()
        logger.error(f"Expiry worker exited unexpectedly: {error!r}, restarting")
        self._stats['worker_restarts'] += 1
        self._spawn_worker()

    async def _worker_loop(self) -> None:
        while self._running:
            try:
                await self._wait_for_next()
                if not self._running:
                    break

                now = self._clock()
                if self._next_sweep_at is None or now >= self._next_sweep_at:
                    self._next_sweep_at = now + timedelta(seconds=self._config.sweep_interval_seconds)
                    await self.sweep(now)
                else:
                    await self.run_pending(now)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Expiry worker iteration failed: {e}")

    async def _wait_for_next(self) -> None:
        if self._wake is None:
            self._wake = asyncio.Event()
        self._wake.clear()

        now = self._clock()
        deadlines = list(self._jobs.values())
        if self._next_sweep_at is not None:
            deadlines.append(self._next_sweep_at)

        timeout = max(0.0, (min(deadlines) - now).total_seconds()) if deadlines else None

        try:
            await asyncio.wait_for(self._wake.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
