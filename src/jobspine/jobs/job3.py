"""Configurable schedule, custom entry point, factory-built instance.

The schedule comes from the ``job3.cron`` key (``JOB3_CRON`` in the
environment, or ``schedule_overrides``) and falls back to every five
minutes.
"""

from __future__ import annotations

from jobspine.logging import get_logger
from jobspine.scheduling import job

logger = get_logger(__name__)


def make_job3() -> Job3:
    return Job3(name="job3")


@job(cron="${job3.cron:0 0/5 * * * ?}", entry_point="do_it", factory=make_job3)
class Job3:
    def __init__(self, name: str) -> None:
        self.name = name

    def do_it(self) -> None:
        logger.info("executing_job", job="Job3", name=self.name)
