"""Scheduling engine protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULING ENGINE PROTOCOL                                                   │
│                                                                               │
│  The engine owns timing, the durable store and the worker pool.  This        │
│  package owns WHAT gets stored (naming, concurrency flags) and WHAT runs      │
│  on fire (the dispatch shim).                                                 │
│                                                                               │
│   bootstrap                          engine                                   │
│   ─────────                          ──────                                   │
│   bound jobs ──── initialize() ────► start store + pool (paused)              │
│                                      write every job (overwrite existing)     │
│   reconciler ──── job_groups() ────► group names                              │
│              ──── job_keys(g) ─────► stored job keys                          │
│              ──── delete_job(k) ───► remove job + its trigger                 │
│   bootstrap  ──── resume() ────────► start firing                             │
│                                                                               │
│                    fire ──► dispatch.run_job(...) ──► DispatchShim            │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .binder import BoundJob, JobKey, TriggerKey
    from .dispatch import DispatchShim, RunResult


@runtime_checkable
class SchedulingEngine(Protocol):
    """Contract between the adapter and a persistent scheduling engine.

    Implementations:
        - APSchedulerEngine: APScheduler 3.x with a SQLAlchemy or memory job store
    """

    name: str

    def initialize(
        self,
        bound_jobs: Sequence[BoundJob],
        shim: DispatchShim,
        overwrite_existing: bool = True,
    ) -> list[JobKey]:
        """Start the store and worker pool paused, then store every bound job.

        Returns:
            Keys of the jobs actually written; jobs whose write failed are
            logged and left out.
        """
        ...

    def job_groups(self) -> list[str]:
        ...

    def job_keys(self, group: str) -> list[JobKey]:
        ...

    def trigger_keys(self, group: str) -> list[TriggerKey]:
        ...

    def delete_job(self, key: JobKey) -> None:
        """Delete a stored job together with its trigger."""
        ...

    def resume(self) -> None:
        """Begin firing triggers."""
        ...

    def shutdown(self, wait: bool = True) -> None:
        ...

    def last_result(self, key: JobKey) -> RunResult | None:
        ...

    def health(self) -> dict[str, Any]:
        ...
