"""
Interval scheduler with jitter for ETL runs.

Scheduled runs fire from an APScheduler ``BackgroundScheduler`` on an
``IntervalTrigger`` spread by +/-jitter. The job is registered with
``max_instances=1`` and ``coalesce=True``, and manual runs share a
non-blocking run lock with scheduled ones, so at most one run is in flight
per scheduler: a trigger that arrives while a run is active is dropped and
counted, never queued.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobSubmissionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from sync_guesty.metrics import scheduler_runs
from sync_guesty.services.sync import EtlRunResult
from sync_guesty.services.tasks import SyncMode
from sync_guesty.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

Job = Callable[[SyncMode], EtlRunResult]

ETL_JOB_ID = "guesty_etl"


@dataclass
class SyncRun:
    """Snapshot of scheduler state. In memory only; resets on restart."""

    running: bool
    in_flight: bool
    interval_seconds: float
    jitter_percent: float
    last_run_at: Optional[datetime]
    last_success_at: Optional[datetime]
    last_failure_at: Optional[datetime]
    next_run_at: Optional[datetime]
    success_count: int
    failure_count: int
    dropped_count: int
    last_error: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = value.isoformat()
        return data


class SyncScheduler:
    """
    Triggers ``job`` every ``interval_seconds`` +/- ``jitter_percent``.

    Args:
        job: Callable running one ETL pass for a SyncMode
        interval_seconds: Base interval between triggers
        jitter_percent: Spread applied to each interval, e.g. 5 for +/-5%
        run_on_start: Trigger once immediately when started

    Example:
        >>> scheduler = SyncScheduler(lambda mode: run_etl_job(client, engine, mode), 3600, 5)
        >>> scheduler.start()
        >>> scheduler.trigger_now()      # admin force-sync
        >>> scheduler.stop()
    """

    def __init__(
        self,
        job: Job,
        interval_seconds: float,
        jitter_percent: float = 5.0,
        run_on_start: bool = True,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if not 0 <= jitter_percent < 100:
            raise ValueError("jitter_percent must be in [0, 100)")

        self.job = job
        self.interval_seconds = interval_seconds
        self.jitter_percent = jitter_percent
        self.run_on_start = run_on_start

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None

        self._last_run_at: Optional[datetime] = None
        self._last_success_at: Optional[datetime] = None
        self._last_failure_at: Optional[datetime] = None
        self._success_count = 0
        self._failure_count = 0
        self._dropped_count = 0
        self._last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def build_trigger(self) -> IntervalTrigger:
        """
        Return the interval trigger for scheduled runs.

        APScheduler only ever adds jitter, so the base interval is shortened
        by the spread and the jitter covers twice the spread: each gap lands
        in [interval - spread, interval + spread].
        """
        spread = self.interval_seconds * self.jitter_percent / 100
        return IntervalTrigger(
            seconds=self.interval_seconds - spread,
            jitter=2 * spread if spread else None,
            timezone=timezone.utc,
        )

    def start(self) -> None:
        if self.running:
            logger.warning("scheduler_already_running")
            return

        scheduler = BackgroundScheduler(timezone=timezone.utc)
        scheduler.add_listener(self._on_max_instances, EVENT_JOB_MAX_INSTANCES)
        job_options: dict[str, Any] = {}
        if self.run_on_start:
            job_options["next_run_time"] = utc_now()
        scheduler.add_job(
            self._run_scheduled,
            trigger=self.build_trigger(),
            id=ETL_JOB_ID,
            name="guesty etl",
            max_instances=1,
            coalesce=True,
            **job_options,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "scheduler_started",
            interval_seconds=self.interval_seconds,
            jitter_percent=self.jitter_percent,
            run_on_start=self.run_on_start,
        )

    def stop(self, wait: bool = False) -> None:
        """
        Stop future triggers.

        An in-flight run is not cancelled; ``wait`` blocks until it finishes.
        """
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=wait)
        logger.info("scheduler_stopped")

    def _run_scheduled(self) -> None:
        self._execute(SyncMode.NORMAL, trigger="scheduled")

    def _on_max_instances(self, event: JobSubmissionEvent) -> None:
        self._record_dropped("scheduled", reason="max_instances")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def trigger_now(self, mode: SyncMode = SyncMode.FORCE) -> Optional[EtlRunResult]:
        """
        Run the job immediately in the caller's thread, independent of the timer.

        Returns:
            Optional[EtlRunResult]: The run result, or None when another run
            was in flight and this trigger was dropped

        Raises:
            Exception: Whatever the job raised, after it was counted as a failure
        """
        return self._execute(mode, trigger="manual")

    def _record_dropped(self, trigger: str, reason: str) -> None:
        with self._state_lock:
            self._dropped_count += 1
        scheduler_runs.labels(trigger=trigger, outcome="dropped").inc()
        logger.warning("scheduler_trigger_dropped", trigger=trigger, reason=reason)

    def _execute(self, mode: SyncMode, trigger: str) -> Optional[EtlRunResult]:
        if not self._run_lock.acquire(blocking=False):
            self._record_dropped(trigger, reason="run_in_flight")
            return None

        try:
            started_at = utc_now()
            with self._state_lock:
                self._last_run_at = started_at
            logger.info("scheduler_run_started", trigger=trigger, mode=mode.value)

            try:
                result = self.job(mode)
            except Exception as e:
                with self._state_lock:
                    self._failure_count += 1
                    self._last_failure_at = utc_now()
                    self._last_error = str(e)
                scheduler_runs.labels(trigger=trigger, outcome="failure").inc()
                logger.exception("scheduler_run_failed", trigger=trigger, error=str(e))
                if trigger == "manual":
                    raise
                return None

            with self._state_lock:
                if result.success:
                    self._success_count += 1
                    self._last_success_at = utc_now()
                    self._last_error = None
                else:
                    self._failure_count += 1
                    self._last_failure_at = utc_now()
                    self._last_error = "one or more entity tasks failed"
            outcome = "success" if result.success else "failure"
            scheduler_runs.labels(trigger=trigger, outcome=outcome).inc()
            logger.info(
                "scheduler_run_completed",
                trigger=trigger,
                success=result.success,
                duration_ms=result.duration_ms,
            )
            return result
        finally:
            self._run_lock.release()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def next_run_at(self) -> Optional[datetime]:
        scheduler = self._scheduler
        if scheduler is None or not scheduler.running:
            return None
        job = scheduler.get_job(ETL_JOB_ID)
        return job.next_run_time if job is not None else None

    def status(self) -> SyncRun:
        next_run_at = self.next_run_at()
        with self._state_lock:
            return SyncRun(
                running=self.running,
                in_flight=self._run_lock.locked(),
                interval_seconds=self.interval_seconds,
                jitter_percent=self.jitter_percent,
                last_run_at=self._last_run_at,
                last_success_at=self._last_success_at,
                last_failure_at=self._last_failure_at,
                next_run_at=next_run_at,
                success_count=self._success_count,
                failure_count=self._failure_count,
                dropped_count=self._dropped_count,
                last_error=self._last_error,
            )
