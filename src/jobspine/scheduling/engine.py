"""APScheduler-based scheduling engine.

Wraps an APScheduler 3.x ``BackgroundScheduler`` to provide the
``SchedulingEngine`` protocol:

- durable storage through ``SQLAlchemyJobStore`` (any SQLAlchemy URL), or
  ``MemoryJobStore`` when ``store_url`` is ``memory://``;
- a ``ThreadPoolExecutor`` sized by ``thread_pool_size``;
- ``max_instances=1`` for disallow-concurrent jobs, so an overlapping fire
  is skipped (``EVENT_JOB_MAX_INSTANCES``) instead of run in parallel.

Job groups map onto job store aliases: group ``DEFAULT`` is the
``default`` store.  The job id is the job key name and the job name is the
trigger key name, so both keys survive a round trip through the store.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
)
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import BaseJobStore
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.util import undefined
from sqlalchemy.engine import make_url

from jobspine.errors import BindError
from jobspine.logging import get_logger

from .binder import BOUND_ENTRY_POINT, BOUND_IDENTIFIER, DEFAULT_GROUP, BoundJob, JobKey, TriggerKey
from .dispatch import DISPATCH_REF, DispatchShim, RunResult, attach_shim, detach_shim

if TYPE_CHECKING:
    from jobspine.settings import JobSpineSettings

logger = get_logger(__name__)

DEFAULT_STORE_ALIAS = "default"


def alias_for(group: str) -> str:
    return group.lower()


def group_for(alias: str) -> str:
    return alias.upper()


def build_jobstore(settings: JobSpineSettings) -> BaseJobStore:
    """Job store for ``settings.store_url``; creates the directory of a SQLite file."""
    if settings.uses_memory_store:
        return MemoryJobStore()
    url = make_url(settings.store_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return SQLAlchemyJobStore(url=settings.store_url, tablename=settings.store_table)


class APSchedulerEngine:
    """APScheduler implementation of ``SchedulingEngine``.

    Example::

        >>> engine = APSchedulerEngine(settings)
        >>> engine.initialize(bound_jobs, DispatchShim(instances))
        >>> engine.resume()
        >>> # … later …
        >>> engine.shutdown()
    """

    def __init__(
        self,
        settings: JobSpineSettings | None = None,
        *,
        jobstores: dict[str, BaseJobStore] | None = None,
        name: str | None = None,
    ) -> None:
        if settings is None:
            from jobspine.settings import get_settings

            settings = get_settings()

        self.name = name or settings.engine_name
        self._jobstores = jobstores or {DEFAULT_STORE_ALIAS: build_jobstore(settings)}
        self._scheduler = BackgroundScheduler(
            jobstores=self._jobstores,
            executors={"default": ThreadPoolExecutor(settings.thread_pool_size)},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": settings.misfire_grace_seconds,
            },
            timezone=settings.timezone,
        )
        self._scheduler.add_listener(
            self._on_job_event,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES | EVENT_JOB_MISSED,
        )
        self._results: dict[JobKey, RunResult] = {}
        self._skipped: Counter[JobKey] = Counter()
        self._shim: DispatchShim | None = None
        self._lock = threading.Lock()

    @property
    def scheduler(self) -> BackgroundScheduler:
        return self._scheduler

    @property
    def timezone(self) -> Any:
        return self._scheduler.timezone

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(
        self,
        bound_jobs: Sequence[BoundJob],
        shim: DispatchShim,
        overwrite_existing: bool = True,
    ) -> list[JobKey]:
        """Start the scheduler paused and write every bound job to the store."""
        self._shim = shim
        attach_shim(self.name, shim)
        if not self._scheduler.running:
            self._scheduler.start(paused=True)

        stored: list[JobKey] = []
        for bound in bound_jobs:
            try:
                self._store(bound, overwrite_existing)
            except BindError as e:
                logger.error("job_bind_failed", **e.to_dict())
                continue
            stored.append(bound.key)
            logger.info(
                "job_bound",
                job_key=bound.job.key.name,
                trigger_key=bound.trigger.key.name,
                cron=bound.trigger.schedule.expression,
            )

        logger.info("engine_initialized", engine=self.name, jobs=len(stored))
        return stored

    def _store(self, bound: BoundJob, replace_existing: bool) -> None:
        job_record = bound.job
        try:
            self._scheduler.add_job(
                DISPATCH_REF,
                trigger=bound.trigger.trigger,
                id=job_record.key.name,
                name=bound.trigger.key.name,
                jobstore=alias_for(job_record.key.group),
                kwargs={
                    "engine_name": self.name,
                    "job_key": job_record.key.name,
                    "identifier": job_record.bound_data[BOUND_IDENTIFIER],
                    "entry_point": job_record.bound_data[BOUND_ENTRY_POINT],
                },
                max_instances=1 if job_record.disallow_concurrent else undefined,
                replace_existing=replace_existing,
            )
        except Exception as e:
            raise BindError(f"Could not store job {job_record.key.name}: {e}", cause=e).with_context(
                identifier=job_record.identifier, job_key=job_record.key.name
            ) from e

    # ------------------------------------------------------------------
    # Store introspection
    # ------------------------------------------------------------------

    def job_groups(self) -> list[str]:
        return [group_for(alias) for alias in self._jobstores]

    def job_keys(self, group: str = DEFAULT_GROUP) -> list[JobKey]:
        return [JobKey(job.id, group) for job in self._scheduler.get_jobs(jobstore=alias_for(group))]

    def trigger_keys(self, group: str = DEFAULT_GROUP) -> list[TriggerKey]:
        return [TriggerKey(job.name, group) for job in self._scheduler.get_jobs(jobstore=alias_for(group))]

    def delete_job(self, key: JobKey) -> None:
        self._scheduler.remove_job(key.name, jobstore=alias_for(key.group))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def resume(self) -> None:
        self._scheduler.resume()
        logger.info("engine_resumed", engine=self.name)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the scheduler; waits for running fires when *wait* is set."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("engine_stopped", engine=self.name)
        if self._shim is not None:
            detach_shim(self.name, self._shim)
            self._shim = None

    @property
    def running(self) -> bool:
        return self._scheduler.running

    # ------------------------------------------------------------------
    # Fire observability
    # ------------------------------------------------------------------

    def _on_job_event(self, event: JobEvent) -> None:
        key = JobKey(event.job_id, group_for(event.jobstore))

        if event.code == EVENT_JOB_MAX_INSTANCES:
            with self._lock:
                self._skipped[key] += 1
            logger.warning("job_fire_skipped", job_key=key.name, reason="previous fire still running")
            return

        if event.code == EVENT_JOB_MISSED:
            logger.warning("job_fire_missed", job_key=key.name, scheduled_at=str(event.scheduled_run_time))
            return

        now = datetime.now(UTC)
        if event.exception is not None:
            result = RunResult(
                job_key=key.name,
                succeeded=False,
                error=str(event.exception),
                scheduled_at=event.scheduled_run_time,
                finished_at=now,
            )
            logger.error(
                "job_fire_failed",
                job_key=key.name,
                error_type=type(event.exception).__name__,
                error=str(event.exception),
            )
        else:
            result = RunResult(
                job_key=key.name,
                value=event.retval,
                scheduled_at=event.scheduled_run_time,
                finished_at=now,
            )
            logger.info("job_fire_completed", job_key=key.name, has_result=event.retval is not None)

        with self._lock:
            self._results[key] = result

    def last_result(self, key: JobKey) -> RunResult | None:
        with self._lock:
            return self._results.get(key)

    def skipped_fires(self, key: JobKey) -> int:
        with self._lock:
            return self._skipped[key]

    def health(self) -> dict[str, Any]:
        running = self._scheduler.running
        with self._lock:
            skipped = sum(self._skipped.values())
            failed = sum(1 for r in self._results.values() if not r.succeeded)
        return {
            "healthy": running,
            "backend": self.name,
            "state": self._scheduler.state,
            "scheduled_jobs": len(self._scheduler.get_jobs()) if running else 0,
            "skipped_fires": skipped,
            "failing_jobs": failed,
        }
