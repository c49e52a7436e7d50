"""Orphan reconciler - deletes persisted jobs that are no longer declared.

The job store outlives any single deployment.  A job removed from the
codebase would otherwise keep firing from the store forever, so right after
the engine has been initialized with the current declarations, every stored
key outside the declared set is deleted.

The pass only removes; adding jobs is the binder's job during the same
initialization.  Any store failure aborts startup: a half-cleaned store
could leave stale jobs firing silently.
"""

from __future__ import annotations

from collections.abc import Iterable

from jobspine.errors import ReconciliationError
from jobspine.logging import get_logger

from .binder import JobKey
from .protocol import SchedulingEngine

logger = get_logger(__name__)


class OrphanReconciler:
    """Self-cleaning pass over the engine's job store.

    Example:
        >>> deleted = OrphanReconciler(engine).reconcile({JobKey("Job1Detail")})
        >>> [k.name for k in deleted]
        ['StaleJobDetail']
    """

    def __init__(self, engine: SchedulingEngine) -> None:
        self.engine = engine

    def reconcile(self, declared_keys: Iterable[JobKey]) -> list[JobKey]:
        """Delete every stored job whose key is not in *declared_keys*.

        Returns:
            The deleted keys, in store enumeration order

        Raises:
            ReconciliationError: Enumerating or deleting failed
        """
        declared = set(declared_keys)
        deleted: list[JobKey] = []

        try:
            groups = self.engine.job_groups()
        except Exception as e:
            raise ReconciliationError(f"Could not enumerate job groups: {e}", cause=e) from e

        for group in groups:
            try:
                stored = self.engine.job_keys(group)
            except Exception as e:
                raise ReconciliationError(
                    f"Could not enumerate jobs in group {group}: {e}", cause=e
                ).with_context(group=group) from e

            for key in stored:
                if key in declared:
                    continue
                try:
                    self.engine.delete_job(key)
                except Exception as e:
                    raise ReconciliationError(
                        f"Could not delete orphaned job {key}: {e}", cause=e
                    ).with_context(job_key=key.name, group=group) from e
                deleted.append(key)
                logger.info("orphaned_job_deleted", job_key=key.name, group=group)

        if deleted:
            logger.info("orphans_reconciled", deleted=len(deleted), declared=len(declared))
        return deleted
