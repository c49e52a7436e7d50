"""Every minute; logs and returns nothing."""

from jobspine.logging import get_logger
from jobspine.scheduling import job

logger = get_logger(__name__)


@job(cron="0 0/1 * * * ?")
class Job1:
    def execute(self) -> None:
        logger.info("executing_job", job="Job1")
