"""Trigger binder - job definitions to durable job/trigger records.

Each definition becomes exactly one job record and one cron trigger,
named deterministically from the job identifier so the same declaration
maps onto the same stored rows on every restart::

    Job1  ──►  JobKey("Job1Detail", "DEFAULT")
              TriggerKey("Job1Trigger", "DEFAULT")

Schedule expressions use the Quartz layout (seconds first, ``?`` for "no
specific value", day-of-week 1=SUN..7=SAT)::

    ┌──────── second
    │ ┌────── minute
    │ │   ┌── hour
    0 0/5 * * * ?  [year]
            │ │ └── day of week
            │ └──── month
            └────── day of month

Classic 5-field crontab lines are accepted too.  Both are translated to
an APScheduler ``CronTrigger``; anything APScheduler rejects is a
:class:`~jobspine.errors.BindError`.

Tags:
    jobspine, scheduling, binder, cron, quartz, apscheduler
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import tzinfo

from apscheduler.triggers.cron import CronTrigger

from jobspine.errors import BindError
from jobspine.logging import get_logger

from .declarations import JobDefinition
from .resolver import ConfigSource, Lookup, ResolvedSchedule, resolve_schedule

logger = get_logger(__name__)

DEFAULT_GROUP = "DEFAULT"
JOB_KEY_SUFFIX = "Detail"
TRIGGER_KEY_SUFFIX = "Trigger"

BOUND_IDENTIFIER = "job.identifier"
BOUND_ENTRY_POINT = "job.entry_point"

_QUARTZ_DAYS = {"1": "sun", "2": "mon", "3": "tue", "4": "wed", "5": "thu", "6": "fri", "7": "sat"}
_CRON_FIELDS = ("second", "minute", "hour", "day", "month", "day_of_week", "year")
_STEPPED_DAYS_RE = re.compile(r"(?P<start>\*|[1-7])(?:-(?P<end>[1-7]))?/(?P<step>\d+)")


@dataclass(frozen=True, order=True)
class JobKey:
    name: str
    group: str = DEFAULT_GROUP

    def __str__(self) -> str:
        return f"{self.group}.{self.name}"


@dataclass(frozen=True, order=True)
class TriggerKey:
    name: str
    group: str = DEFAULT_GROUP

    def __str__(self) -> str:
        return f"{self.group}.{self.name}"


def job_key_for(identifier: str) -> JobKey:
    return JobKey(f"{identifier}{JOB_KEY_SUFFIX}")


def trigger_key_for(identifier: str) -> TriggerKey:
    return TriggerKey(f"{identifier}{TRIGGER_KEY_SUFFIX}")


@dataclass(frozen=True)
class JobRecord:
    """Durable job: binds a key to the entry point dispatched on fire."""

    key: JobKey
    identifier: str
    entry_point: str
    durable: bool = True
    disallow_concurrent: bool = True

    @property
    def bound_data(self) -> Mapping[str, str]:
        return {BOUND_IDENTIFIER: self.identifier, BOUND_ENTRY_POINT: self.entry_point}


@dataclass(frozen=True)
class TriggerRecord:
    """Durable cron trigger pointing at exactly one job record."""

    key: TriggerKey
    job_key: JobKey
    schedule: ResolvedSchedule
    trigger: CronTrigger = field(compare=False, repr=False)
    start_delay: int = 0


@dataclass(frozen=True)
class BoundJob:
    job: JobRecord
    trigger: TriggerRecord

    @property
    def key(self) -> JobKey:
        return self.job.key


def _translate_weekdays(term: str) -> str:
    """One day-of-week term from Quartz numbering (1=SUN) to weekday names.

    Stepped numeric terms (``2/2``, ``1-5/2``, ``*/3``) are expanded to an
    explicit list, since APScheduler steps count from 0=MON.
    """
    stepped = _STEPPED_DAYS_RE.fullmatch(term)
    if stepped is None:
        return re.sub(r"\b([1-7])\b", lambda m: _QUARTZ_DAYS[m.group(1)], term)

    step = int(stepped.group("step"))
    if step < 1:
        raise ValueError(f"Day-of-week step must be positive: {term!r}")
    start = stepped.group("start")
    first = 1 if start == "*" else int(start)
    last = int(stepped.group("end") or 7)
    if last < first:
        raise ValueError(f"Day-of-week range runs backwards: {term!r}")
    return ",".join(_QUARTZ_DAYS[str(day)] for day in range(first, last + 1, step))


def quartz_to_cron_fields(expression: str) -> dict[str, str]:
    """Split a Quartz expression into APScheduler ``CronTrigger`` fields.

    Raises:
        ValueError: Wrong number of fields, or both day fields are specific.
    """
    parts = expression.split()
    if len(parts) not in (6, 7):
        raise ValueError(f"Expected 6 or 7 fields, got {len(parts)}: {expression!r}")

    fields = dict(zip(_CRON_FIELDS, parts, strict=False))
    if fields["day"] != "?" and fields["day_of_week"] != "?" and "*" not in (
        fields["day"],
        fields["day_of_week"],
    ):
        raise ValueError("Specifying both day-of-month and day-of-week is not supported")

    for name, value in list(fields.items()):
        if value == "?":
            fields[name] = "*"

    if fields["day"] == "L":
        fields["day"] = "last"
    fields["day_of_week"] = ",".join(_translate_weekdays(term) for term in fields["day_of_week"].split(","))
    return fields


def build_cron_trigger(expression: str, timezone: tzinfo | str | None = None) -> CronTrigger:
    """Build an APScheduler trigger from a Quartz or crontab expression.

    Raises:
        ValueError: APScheduler rejects the expression.
    """
    if len(expression.split()) == 5:
        return CronTrigger.from_crontab(expression, timezone=timezone)
    return CronTrigger(timezone=timezone, **quartz_to_cron_fields(expression))


class TriggerBinder:
    """Builds ``(JobRecord, TriggerRecord)`` pairs for the engine.

    Example:
        >>> binder = TriggerBinder(timezone="UTC")
        >>> bound = binder.bind(definition, ResolvedSchedule("0 0/1 * * * ?"))
        >>> bound.job.key.name, bound.trigger.key.name
        ('Job1Detail', 'Job1Trigger')
    """

    def __init__(self, timezone: tzinfo | str | None = None) -> None:
        self.timezone = timezone

    def bind(self, definition: JobDefinition, schedule: ResolvedSchedule) -> BoundJob:
        """Bind one definition.

        Raises:
            BindError: The resolved expression is malformed.
        """
        try:
            trigger = build_cron_trigger(schedule.expression, self.timezone)
        except ValueError as e:
            raise BindError(
                f"Invalid schedule for job {definition.identifier}: {e}", cause=e
            ).with_context(identifier=definition.identifier, expression=schedule.expression) from e

        job_record = JobRecord(
            key=job_key_for(definition.identifier),
            identifier=definition.identifier,
            entry_point=definition.entry_point,
        )
        trigger_record = TriggerRecord(
            key=trigger_key_for(definition.identifier),
            job_key=job_record.key,
            schedule=schedule,
            trigger=trigger,
        )
        return BoundJob(job=job_record, trigger=trigger_record)

    def bind_all(
        self,
        definitions: Iterable[JobDefinition],
        config: ConfigSource | Lookup,
    ) -> list[BoundJob]:
        """Resolve and bind every definition, skipping the ones that fail to bind.

        Raises:
            ConfigurationError: A schedule placeholder cannot be resolved.
        """
        bound: list[BoundJob] = []
        for definition in definitions:
            schedule = resolve_schedule(definition.schedule_expression, config)
            try:
                bound.append(self.bind(definition, schedule))
            except BindError as e:
                logger.error("job_bind_failed", **e.to_dict())
        return bound
