"""Process bootstrap - declarations in, running scheduler out.

Manifesto:
    Startup order is what keeps the store honest.  The full trigger set is
    computed before the engine starts, written in one initialization, and
    only then is the store swept for orphans.  The engine stays paused
    until the sweep is done, so a stale job never gets a chance to fire.

::

    declarations
        │
        ▼
    JobDeclarationRegistry.definitions()      ConfigurationError (fatal)
        │
        ▼
    InstanceRegistry  ◄── one instance per definition, then frozen
        │
        ▼
    TriggerBinder.bind_all()                  ConfigurationError (fatal)
        │                                     BindError (logged, job dropped)
        ▼
    engine.initialize(bound, shim)            BindError (logged, job dropped)
        │
        ▼
    OrphanReconciler.reconcile(bound keys)    ReconciliationError (fatal)
        │
        ▼
    engine.resume()  ──►  SchedulerHandle
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from jobspine.errors import BindError, ConfigurationError, JobSpineError
from jobspine.logging import get_logger

from .binder import JobKey, TriggerBinder, job_key_for
from .declarations import JobDeclaration, JobDeclarationRegistry, JobDefinition, discover
from .dispatch import DispatchShim, RunResult
from .engine import APSchedulerEngine
from .instances import InstanceRegistry
from .protocol import SchedulingEngine
from .reconciler import OrphanReconciler
from .resolver import ConfigSource

if TYPE_CHECKING:
    from jobspine.settings import JobSpineSettings

logger = get_logger(__name__)


@dataclass
class SchedulerHandle:
    """What the bootstrap hands back: the running engine plus what it did."""

    engine: SchedulingEngine
    definitions: list[JobDefinition]
    bound_keys: list[JobKey]
    deleted_keys: list[JobKey] = field(default_factory=list)
    instances: InstanceRegistry = field(default_factory=InstanceRegistry)

    def stored_keys(self) -> list[JobKey]:
        """Every job key currently in the engine's store."""
        return [key for group in self.engine.job_groups() for key in self.engine.job_keys(group)]

    def last_result(self, identifier: str) -> RunResult | None:
        return self.engine.last_result(job_key_for(identifier))

    def health(self) -> dict[str, Any]:
        return {
            **self.engine.health(),
            "declared_jobs": len(self.definitions),
            "bound_jobs": len(self.bound_keys),
            "orphans_deleted": len(self.deleted_keys),
        }

    def shutdown(self, wait: bool = True) -> None:
        self.engine.shutdown(wait=wait)


def _populate_instances(definitions: list[JobDefinition], instances: InstanceRegistry) -> None:
    for definition in definitions:
        if definition.identifier not in instances:
            try:
                instance = definition.create_instance()
            except Exception as e:
                raise ConfigurationError(
                    f"Could not create instance for job {definition.identifier}: {e}", cause=e
                ).with_context(identifier=definition.identifier) from e
            instances.register(definition.identifier, instance)

        if not callable(getattr(instances.resolve(definition.identifier), definition.entry_point, None)):
            logger.warning(
                "job_entry_point_missing",
                identifier=definition.identifier,
                entry_point=definition.entry_point,
            )


def build_scheduler_handle(
    declarations: Iterable[JobDeclaration],
    *,
    settings: JobSpineSettings | None = None,
    config: ConfigSource | None = None,
    instances: InstanceRegistry | None = None,
    engine: SchedulingEngine | None = None,
) -> SchedulerHandle:
    """Bind *declarations* to a persistent engine and clean up orphans.

    Args:
        declarations: Job declarations, e.g. from :func:`discover`
        settings: Defaults to :func:`jobspine.settings.get_settings`
        config: Placeholder source; defaults to ``settings.config_source()``
        instances: Pre-registered instances; missing ones are constructed
        engine: Defaults to an :class:`APSchedulerEngine` built from settings

    Raises:
        ConfigurationError: Bad placeholder, duplicate identifier, or an
            instance could not be constructed
        BindError: The engine could not be started
        ReconciliationError: Orphan cleanup failed
    """
    if settings is None:
        from jobspine.settings import get_settings

        settings = get_settings()

    definitions = JobDeclarationRegistry(declarations).definitions()

    instances = instances if instances is not None else InstanceRegistry()
    _populate_instances(definitions, instances)

    binder = TriggerBinder(timezone=settings.timezone)
    bound = binder.bind_all(definitions, config if config is not None else settings.config_source())

    if engine is None:
        try:
            engine = APSchedulerEngine(settings)
        except Exception as e:
            error = BindError(f"Scheduling engine could not be created: {e}", cause=e)
            logger.error("scheduler_startup_failed", **error.to_dict())
            raise error from e
    instances.freeze()

    try:
        try:
            bound_keys = engine.initialize(bound, DispatchShim(instances), overwrite_existing=True)
        except JobSpineError:
            raise
        except Exception as e:
            raise BindError(f"Scheduling engine failed to initialize: {e}", cause=e) from e
        deleted = OrphanReconciler(engine).reconcile(bound_keys)
    except JobSpineError as e:
        logger.error("scheduler_startup_failed", **e.to_dict())
        engine.shutdown(wait=False)
        raise

    if settings.start_paused:
        logger.info("scheduler_left_paused", jobs=len(bound_keys))
    else:
        engine.resume()

    logger.info(
        "scheduler_started",
        declared=len(definitions),
        bound=len(bound_keys),
        orphans_deleted=len(deleted),
    )
    return SchedulerHandle(
        engine=engine,
        definitions=definitions,
        bound_keys=bound_keys,
        deleted_keys=deleted,
        instances=instances,
    )


def bootstrap_from_settings(settings: JobSpineSettings | None = None) -> SchedulerHandle | None:
    """Discover declarations from ``settings.job_modules`` and start the scheduler.

    Returns:
        The handle, or None when ``settings.enabled`` is false
    """
    if settings is None:
        from jobspine.settings import get_settings

        settings = get_settings()

    if not settings.enabled:
        logger.warning("scheduler_disabled", hint="set JOBSPINE_ENABLED=true to start it")
        return None

    return build_scheduler_handle(discover(*settings.job_modules), settings=settings)
