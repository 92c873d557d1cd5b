"""
Schedule model and next-run calculation.

Every frequency is anchored to ``time.hour:time.minute`` in the schedule's
timezone. ``compute_next_run`` is a pure function of (schedule, now): it
always returns the earliest matching instant strictly after ``now``.
"""
import calendar
import re
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, Field, field_validator, model_validator


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"


# Sunday-first numbering (0 = Sunday ... 6 = Saturday), as used by day_of_week and cron
WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
QUARTER_START_MONTHS = (1, 4, 7, 10)


class ScheduleTime(BaseModel):
    hour: int = Field(9, ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)


class Schedule(BaseModel):
    """When a scheduled report runs."""

    frequency: Frequency
    cron_expression: Optional[str] = Field(None, description="Five or six field cron, CUSTOM only")
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="0=Sunday ... 6=Saturday, WEEKLY only")
    day_of_month: Optional[int] = Field(None, ge=1, le=31, description="MONTHLY only")
    time: ScheduleTime = Field(default_factory=ScheduleTime)
    timezone: str = "UTC"

    @field_validator('frequency', mode='before')
    @classmethod
    def upper_frequency(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @model_validator(mode='after')
    def check_frequency_fields(self):
        if self.frequency == Frequency.WEEKLY and self.day_of_week is None:
            raise ValueError("day_of_week is required for WEEKLY schedules")
        if self.frequency == Frequency.MONTHLY and self.day_of_month is None:
            raise ValueError("day_of_month is required for MONTHLY schedules")
        if self.frequency == Frequency.CUSTOM:
            if not self.cron_expression:
                raise ValueError("cron_expression is required for CUSTOM schedules")
            build_cron_trigger(self.cron_expression, self.timezone)
        return self


def _weekday_number(token: str) -> int:
    if token.isdigit() and int(token) <= 7:
        return int(token)
    if token in WEEKDAY_NAMES:
        return WEEKDAY_NAMES.index(token)
    raise ValueError(f"Invalid weekday: {token}")


def _translate_weekdays(expression: str) -> str:
    """
    Expand a cron day-of-week field into explicit day names.

    Values follow cron numbering (0 and 7 are Sunday) and may be numbers or
    three-letter names. APScheduler numbers weekdays from Monday, so every
    value, range and step is resolved here before it reaches the trigger.
    A range ending on Sunday ('fri-sun', '5-0') runs through the weekend.
    """
    days = []
    for part in expression.split(','):
        token = part.strip().lower()
        match = re.fullmatch(r'(\*|[a-z]+|\d+)(?:-([a-z]+|\d+))?(?:/(\d+))?', token)
        if not match:
            raise ValueError(f"Invalid day-of-week field: {part}")
        start, end, step = match.groups()

        if start == '*':
            if end:
                raise ValueError(f"Invalid day-of-week field: {part}")
            first, last = 0, 6
        else:
            first = _weekday_number(start)
            if end:
                last = _weekday_number(end)
                if last == 0 and first > 0:
                    last = 7
            elif step:
                last = max(first, 6)
            else:
                last = first

        step = int(step) if step else 1
        if first > last or step < 1:
            raise ValueError(f"Invalid day-of-week field: {part}")
        for day in range(first, last + 1, step):
            name = WEEKDAY_NAMES[day % 7]
            if name not in days:
                days.append(name)
    return ','.join(days)


def build_cron_trigger(expression: str, tz_name: str = "UTC") -> CronTrigger:
    """
    Build a trigger from a five-field (minute hour day month weekday) or
    six-field (second minute hour day month weekday) cron expression.

    Raises:
        ValueError: on a malformed expression.
    """
    fields = expression.split()
    if len(fields) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = fields
    elif len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    else:
        raise ValueError(f"Cron expression must have 5 or 6 fields, got {len(fields)}: {expression!r}")

    return CronTrigger(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_translate_weekdays(day_of_week),
        timezone=ZoneInfo(tz_name),
    )


def _ensure_aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _at_anchor(day: date, schedule: Schedule, tz: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, schedule.time.hour, schedule.time.minute, tzinfo=tz)


def _clamped_day(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _add_months(year: int, month: int, months: int) -> tuple:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def compute_next_run(schedule: Schedule, now: Optional[datetime] = None) -> datetime:
    """
    Next execution instant for a schedule, strictly after ``now``.

    Args:
        schedule: the schedule definition
        now: reference instant; naive values are read as UTC (defaults to the current time)

    Returns:
        Timezone-aware datetime in UTC.
    """
    now = _ensure_aware(now or datetime.now(timezone.utc))
    tz = ZoneInfo(schedule.timezone)
    local_today = now.astimezone(tz).date()

    if schedule.frequency == Frequency.DAILY:
        candidate = _at_anchor(local_today, schedule, tz)
        if candidate <= now:
            candidate = _at_anchor(local_today + timedelta(days=1), schedule, tz)

    elif schedule.frequency == Frequency.WEEKLY:
        today_index = (local_today.weekday() + 1) % 7
        days_ahead = (schedule.day_of_week - today_index + 7) % 7
        candidate = _at_anchor(local_today + timedelta(days=days_ahead), schedule, tz)
        if candidate <= now:
            candidate = _at_anchor(local_today + timedelta(days=days_ahead + 7), schedule, tz)

    elif schedule.frequency == Frequency.MONTHLY:
        year, month = local_today.year, local_today.month
        candidate = _at_anchor(_clamped_day(year, month, schedule.day_of_month), schedule, tz)
        if candidate <= now:
            year, month = _add_months(year, month, 1)
            candidate = _at_anchor(_clamped_day(year, month, schedule.day_of_month), schedule, tz)

    elif schedule.frequency == Frequency.QUARTERLY:
        candidate = None
        for year in (local_today.year, local_today.year + 1):
            for month in QUARTER_START_MONTHS:
                option = _at_anchor(date(year, month, 1), schedule, tz)
                if option > now:
                    candidate = option
                    break
            if candidate is not None:
                break

    elif schedule.frequency == Frequency.YEARLY:
        candidate = _at_anchor(date(local_today.year, 1, 1), schedule, tz)
        if candidate <= now:
            candidate = _at_anchor(date(local_today.year + 1, 1, 1), schedule, tz)

    elif schedule.frequency == Frequency.CUSTOM:
        trigger = build_cron_trigger(schedule.cron_expression, schedule.timezone)
        candidate = trigger.get_next_fire_time(None, now + timedelta(microseconds=1))
        if candidate is None:
            raise ValueError(f"Cron expression never fires: {schedule.cron_expression!r}")

    else:
        raise ValueError(f"Unsupported frequency: {schedule.frequency}")

    return candidate.astimezone(timezone.utc)
