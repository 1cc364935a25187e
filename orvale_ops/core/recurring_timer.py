"""
Self-rearming background timer on top of APScheduler.

Each background service owns exactly one RecurringTimer. Two modes:

- fixed interval: ``RecurringTimer(name, cb, interval_seconds=...)``
- computed delay: ``RecurringTimer(name, cb, delay_fn=...)`` where
  ``delay_fn()`` returns the seconds until the next firing. The timer arms a
  one-shot job, runs the callback, then calls ``delay_fn()`` again and re-arms.
  Used for wall-clock schedules (local midnight) that a fixed interval would
  drift away from across DST changes.

A failing callback is logged and the timer keeps going.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class RecurringTimer:
    """Start/stop-idempotent recurring timer."""

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[object]],
        *,
        interval_seconds: Optional[float] = None,
        delay_fn: Optional[Callable[[], float]] = None,
        run_immediately: bool = False,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        """
        Args:
            name: Job name, also used as the APScheduler job id
            callback: Coroutine function run on every firing
            interval_seconds: Fixed period (interval mode)
            delay_fn: Returns seconds until the next firing (rearm mode)
            run_immediately: Fire once right away on start (interval mode)
            scheduler: Shared scheduler; a private one is created when omitted
        """
        if (interval_seconds is None) == (delay_fn is None):
            raise ValueError("Exactly one of interval_seconds or delay_fn is required")
        if interval_seconds is not None and interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.name = name
        self.job_id = f"timer:{name}"
        self._callback = callback
        self._interval_seconds = interval_seconds
        self._delay_fn = delay_fn
        self._run_immediately = run_immediately
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._running = False

    @property
    def scheduler(self) -> Optional[AsyncIOScheduler]:
        return self._scheduler

    def is_running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Arm the timer. Returns False (and does nothing) if already running."""
        if self._running:
            logger.info(f"Timer {self.name} is already running")
            return False

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        if not self._scheduler.running:
            self._scheduler.start()

        self._running = True

        if self._interval_seconds is not None:
            job_kwargs = {}
            if self._run_immediately:
                job_kwargs["next_run_time"] = datetime.now(timezone.utc)
            self._scheduler.add_job(
                self._fire,
                trigger=IntervalTrigger(seconds=self._interval_seconds, timezone=timezone.utc),
                id=self.job_id,
                name=self.name,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=None,
                **job_kwargs,
            )
        else:
            self._arm()

        logger.debug(f"Timer {self.name} started")
        return True

    def stop(self) -> None:
        """Cancel the pending firing. Safe to call when not running."""
        was_running = self._running
        self._running = False

        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(self.job_id)
            except JobLookupError:
                pass

            if self._owns_scheduler and self._scheduler.running:
                self._scheduler.shutdown(wait=False)
                self._scheduler = None

        if was_running:
            logger.debug(f"Timer {self.name} stopped")

    def next_run_time(self) -> Optional[datetime]:
        """Aware UTC datetime of the next firing, or None when not armed."""
        if not self._running or self._scheduler is None:
            return None
        job = self._scheduler.get_job(self.job_id)
        return job.next_run_time if job else None

    def _arm(self) -> None:
        delay = max(0.0, float(self._delay_fn()))
        run_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self._scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_at, timezone=timezone.utc),
            id=self.job_id,
            name=self.name,
            replace_existing=True,
            # The firing that re-arms is still counted as a running instance
            max_instances=2,
            # A late firing must still run, otherwise the chain of re-arms breaks
            misfire_grace_time=None,
        )
        logger.debug(f"Timer {self.name} armed for {run_at.isoformat()} ({delay:.0f}s)")

    async def _fire(self) -> None:
        try:
            await self._callback()
        except Exception as e:
            logger.error(f"Timer {self.name} callback failed: {e}", exc_info=True)
        finally:
            if self._running and self._delay_fn is not None:
                try:
                    self._arm()
                except Exception as e:
                    logger.error(f"Timer {self.name} could not re-arm: {e}", exc_info=True)
