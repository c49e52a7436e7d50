"""
jobspine - declarative cron jobs on a persistent scheduling engine.

Subpackages:
- jobspine.scheduling: declarations, binding, dispatch, engine, reconciliation
- jobspine.jobs: example jobs
- jobspine.cli: ``jobspine`` command line
"""

__version__ = "0.1.0"

from jobspine.errors import (
    BindError,
    ConfigurationError,
    InstanceLookupError,
    InvocationError,
    JobSpineError,
    ReconciliationError,
)
from jobspine.scheduling import (
    SchedulerHandle,
    bootstrap_from_settings,
    build_scheduler_handle,
    discover,
    job,
)

__all__ = [
    "__version__",
    "job",
    "discover",
    "build_scheduler_handle",
    "bootstrap_from_settings",
    "SchedulerHandle",
    "JobSpineError",
    "ConfigurationError",
    "BindError",
    "ReconciliationError",
    "InstanceLookupError",
    "InvocationError",
]
