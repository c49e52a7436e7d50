"""Every minute; its return value is kept as the fire's result."""

from jobspine.logging import get_logger
from jobspine.scheduling import job

logger = get_logger(__name__)


@job(cron="0 0/1 * * * ?")
class Job2:
    def execute(self) -> int:
        logger.info("executing_job", job="Job2")
        return 666
