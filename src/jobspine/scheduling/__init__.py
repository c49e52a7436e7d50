"""Declarative cron jobs on a persistent scheduling engine.

Manifesto:
    Business classes say WHEN they run with one decorator; everything else
    (job store rows, trigger naming, concurrency flags, cleanup of jobs
    that were deleted from the codebase) is derived at startup.  The store
    always ends up holding exactly the declared jobs.

┌──────────────────────────────────────────────────────────────────────────────┐
│  JOBSPINE SCHEDULING                                                          │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐   │
│  │   from jobspine.scheduling import job, discover, build_scheduler_handle│  │
│  │                                                                      │   │
│  │   @job(cron="0 0/1 * * * ?")                                         │   │
│  │   class Job1:                                                        │   │
│  │       def execute(self):                                             │   │
│  │           ...                                                        │   │
│  │                                                                      │   │
│  │   handle = build_scheduler_handle(discover("myapp.jobs"))            │   │
│  │   ...                                                                │   │
│  │   handle.shutdown()                                                  │   │
│  └──────────────────────────────────────────────────────────────────────┘   │
│                                                                               │
│  Components:                                                                  │
│  - declarations: @job decorator, discovery, JobDeclarationRegistry           │
│  - resolver:     ${key:default} placeholders in schedule expressions         │
│  - binder:       definitions → JobRecord + TriggerRecord (CronTrigger)       │
│  - instances:    identifier → live business object                           │
│  - dispatch:     fire → entry point call (module-level run_job)              │
│  - engine:       APScheduler BackgroundScheduler + job store                 │
│  - reconciler:   deletes stored jobs that are no longer declared             │
│  - bootstrap:    wires the above in the one safe order                       │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Resuming the engine before orphan cleanup has finished
    ✅ ``build_scheduler_handle`` starts paused, reconciles, then resumes
    ❌ Storing bound methods or lambdas in a persistent job store
    ✅ Every stored job points at ``dispatch.run_job`` plus string kwargs
    ❌ Running two fires of the same job side by side
    ✅ ``max_instances=1``; the overlapping fire is skipped and logged

Tags:
    jobspine, scheduling, cron, quartz, apscheduler, job-store, reconciliation
"""

from __future__ import annotations

from .binder import (
    DEFAULT_GROUP,
    BoundJob,
    JobKey,
    JobRecord,
    TriggerBinder,
    TriggerKey,
    TriggerRecord,
    build_cron_trigger,
    job_key_for,
    trigger_key_for,
)
from .bootstrap import SchedulerHandle, bootstrap_from_settings, build_scheduler_handle
from .declarations import (
    DeclarationCatalog,
    JobDeclaration,
    JobDeclarationRegistry,
    JobDefinition,
    catalog,
    declaration_of,
    discover,
    job,
)
from .dispatch import DispatchShim, FireContext, RunResult, run_job
from .engine import APSchedulerEngine
from .instances import InstanceRegistry
from .protocol import SchedulingEngine
from .reconciler import OrphanReconciler
from .resolver import (
    ChainedConfigSource,
    ConfigSource,
    EnvironmentConfigSource,
    MappingConfigSource,
    ResolvedSchedule,
    resolve_schedule,
)

__all__ = [
    # Declarations
    "job",
    "discover",
    "declaration_of",
    "catalog",
    "DeclarationCatalog",
    "JobDeclaration",
    "JobDefinition",
    "JobDeclarationRegistry",
    # Resolver
    "resolve_schedule",
    "ResolvedSchedule",
    "ConfigSource",
    "MappingConfigSource",
    "EnvironmentConfigSource",
    "ChainedConfigSource",
    # Binder
    "TriggerBinder",
    "BoundJob",
    "JobKey",
    "TriggerKey",
    "JobRecord",
    "TriggerRecord",
    "DEFAULT_GROUP",
    "job_key_for",
    "trigger_key_for",
    "build_cron_trigger",
    # Instances / dispatch
    "InstanceRegistry",
    "DispatchShim",
    "FireContext",
    "RunResult",
    "run_job",
    # Engine
    "SchedulingEngine",
    "APSchedulerEngine",
    "OrphanReconciler",
    # Bootstrap
    "SchedulerHandle",
    "build_scheduler_handle",
    "bootstrap_from_settings",
]
