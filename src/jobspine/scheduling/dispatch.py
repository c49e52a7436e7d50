"""Dispatch shim - the code the engine runs when a trigger fires.

Persistent job stores can only serialize module-level callables, so every
stored job points at the same function, :func:`run_job`, with the job's
bound data as keyword arguments.  ``run_job`` routes the fire to the
:class:`DispatchShim` attached to the named engine, which resolves the live
instance and calls its entry point::

    engine thread
        │  run_job(engine_name="jobspine", job_key="Job2Detail",
        │          identifier="Job2", entry_point="execute")
        ▼
    DispatchShim.fire(context)
        ├── InstanceRegistry.resolve("Job2")      InstanceLookupError
        ├── getattr(instance, "execute")          InvocationError
        ├── call it (awaited if a coroutine)      InvocationError
        └── context.set_result(666)
        │
        ▼
    return value ──► engine event ──► RunResult

Errors propagate to the engine, which records the fire as failed; the
trigger itself stays scheduled.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from jobspine.errors import InstanceLookupError, InvocationError
from jobspine.logging import LogContext, get_logger

from .binder import BOUND_ENTRY_POINT, BOUND_IDENTIFIER
from .instances import InstanceRegistry

logger = get_logger(__name__)

DISPATCH_REF = f"{__name__}:run_job"


@dataclass
class FireContext:
    """Mutable per-fire context handed to the shim."""

    job_key: str
    bound_data: Mapping[str, Any]
    scheduled_at: datetime | None = None
    result: Any = None

    def get_bound_data(self) -> dict[str, Any]:
        return dict(self.bound_data)

    def set_result(self, value: Any) -> None:
        self.result = value


@dataclass(frozen=True)
class RunResult:
    """Outcome of one fire, kept by the engine for observability."""

    job_key: str
    value: Any = None
    succeeded: bool = True
    error: str | None = None
    scheduled_at: datetime | None = None
    finished_at: datetime | None = field(default=None, compare=False)


class DispatchShim:
    """Resolves and invokes a job's entry point for one fire."""

    def __init__(self, instances: InstanceRegistry) -> None:
        self.instances = instances

    def fire(self, context: FireContext) -> Any:
        """Run the entry point named by *context*'s bound data.

        Returns:
            The entry point's return value (also set on the context), or None

        Raises:
            InstanceLookupError: No instance registered for the identifier
            InvocationError: Entry point missing, not callable, or it raised
        """
        data = context.get_bound_data()
        identifier = data[BOUND_IDENTIFIER]
        entry_point = data[BOUND_ENTRY_POINT]

        with LogContext(job_key=context.job_key):
            instance = self.instances.resolve(identifier)

            method = getattr(instance, entry_point, None)
            if method is None or not callable(method):
                raise InvocationError(
                    f"{type(instance).__name__} has no callable entry point {entry_point!r}"
                ).with_context(identifier=identifier, job_key=context.job_key)

            logger.debug("job_fire_started", entry_point=entry_point)
            try:
                value = method()
                if inspect.isawaitable(value):
                    value = asyncio.run(_await(value))
            except Exception as e:
                raise InvocationError(
                    f"Job {identifier} failed in {entry_point}: {e}", cause=e
                ).with_context(identifier=identifier, job_key=context.job_key) from e

            if value is not None:
                context.set_result(value)
            logger.debug("job_fire_finished", has_result=value is not None)
            return context.result


async def _await(awaitable: Any) -> Any:
    return await awaitable


# Engine name -> shim.  Written at engine initialize/shutdown, read on every fire.
_shims: dict[str, DispatchShim] = {}
_shims_lock = threading.Lock()


def attach_shim(engine_name: str, shim: DispatchShim) -> None:
    with _shims_lock:
        _shims[engine_name] = shim


def detach_shim(engine_name: str, shim: DispatchShim | None = None) -> None:
    """Drop the shim for *engine_name*; with *shim*, only if it is still the attached one."""
    with _shims_lock:
        if shim is None or _shims.get(engine_name) is shim:
            _shims.pop(engine_name, None)


def run_job(engine_name: str, job_key: str, identifier: str, entry_point: str) -> Any:
    """Engine-facing entry point stored with every job.

    Raises:
        InstanceLookupError: No shim is attached for *engine_name*
    """
    shim = _shims.get(engine_name)
    if shim is None:
        raise InstanceLookupError(
            identifier, f"No dispatcher attached for engine {engine_name!r}"
        )
    context = FireContext(
        job_key=job_key,
        bound_data={BOUND_IDENTIFIER: identifier, BOUND_ENTRY_POINT: entry_point},
    )
    return shim.fire(context)
