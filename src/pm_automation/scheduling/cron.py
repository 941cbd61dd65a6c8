"""Five-field cron expressions backed by APScheduler's ``CronTrigger``.

Fields are ``minute hour day month day_of_week`` with the usual ``*``, ranges,
steps, lists and three-letter month/weekday names. Day-of-week follows crontab:
0 and 7 both mean Sunday. When both day-of-month and day-of-week are restricted,
a time matches if either one does.

The macros ``@hourly``, ``@daily``, ``@midnight``, ``@weekly``, ``@monthly``,
``@yearly``/``@annually`` and the bare words ``hourly``, ``daily``, ``weekly`` are
accepted as shorthands.

Matching works on wall-clock fields: ``when`` is read as UTC whatever its
``tzinfo`` says.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache

from apscheduler.triggers.cron import CronTrigger

from pm_automation.errors import CronParseError

_MACROS: dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
    "weekly": "0 0 * * 0",
    "daily": "0 0 * * *",
    "hourly": "0 * * * *",
}

# Crontab numbering. APScheduler numbers weekdays from Monday, so numeric
# fields are expanded to names before they reach CronTrigger.
_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

_TICK = timedelta(microseconds=1)


def _weekday_number(token: str) -> int:
    if token in _WEEKDAYS:
        return _WEEKDAYS.index(token)
    try:
        value = int(token)
    except ValueError:
        raise CronParseError(f"Invalid cron weekday: {token!r}") from None
    if not 0 <= value <= 7:
        raise CronParseError(f"Cron weekday {value} out of range 0-7")
    return value


def _weekday_field(text: str) -> str:
    """Rewrite a crontab day-of-week field as a list of APScheduler day names."""

    if text == "*":
        return text
    days: set[int] = set()
    for part in text.lower().split(","):
        body, has_step, step_text = part.partition("/")
        try:
            step = int(step_text) if has_step else 1
        except ValueError:
            raise CronParseError(f"Invalid cron step: {step_text!r}") from None
        if step <= 0:
            raise CronParseError(f"Cron step must be positive: {step}")

        if body == "*":
            start, end = 0, 6
        elif "-" in body:
            left, right = body.split("-", 1)
            start, end = _weekday_number(left), _weekday_number(right)
            if start > end:
                raise CronParseError(f"Inverted cron range: {part!r}")
        else:
            start = _weekday_number(body)
            end = 6 if has_step else start
        days.update(day % 7 for day in range(start, end + 1, step))
    return ",".join(_WEEKDAYS[day] for day in sorted(days))


def _trigger(minute: str, hour: str, day: str, month: str, weekday: str) -> CronTrigger:
    try:
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=weekday,
            second=0,
            timezone=UTC,
        )
    except ValueError as e:
        raise CronParseError(str(e)) from None


@dataclass(frozen=True, slots=True)
class CronExpression:
    expression: str
    triggers: tuple[CronTrigger, ...]

    @classmethod
    def parse(cls, expression: str) -> CronExpression:
        normalized = " ".join(expression.split())
        expanded = _MACROS.get(normalized.lower(), normalized)
        parts = expanded.split(" ")
        if len(parts) != 5:
            raise CronParseError(
                f"Cron expression must have 5 fields, got {len(parts)}: {expression!r}"
            )

        minute, hour, day, month, weekday = parts
        both_restricted = not day.startswith("*") and not weekday.startswith("*")
        weekday = _weekday_field(weekday)
        if both_restricted:
            # Either field may select the day.
            triggers = (
                _trigger(minute, hour, day, month, "*"),
                _trigger(minute, hour, "*", month, weekday),
            )
        else:
            triggers = (_trigger(minute, hour, day, month, weekday),)
        return cls(expression=normalized, triggers=triggers)

    def matches(self, when: datetime) -> bool:
        """Return True if ``when`` falls inside a minute selected by this expression."""

        minute = when.replace(second=0, microsecond=0, tzinfo=UTC)
        return any(
            trigger.get_next_fire_time(None, minute - _TICK) == minute
            for trigger in self.triggers
        )

    def next_fire_time(self, after: datetime) -> datetime | None:
        """First selected minute strictly after ``after`` (UTC), or None if there is none."""

        start = after.replace(tzinfo=UTC) + _TICK
        times = [trigger.get_next_fire_time(None, start) for trigger in self.triggers]
        upcoming = [t for t in times if t is not None]
        return min(upcoming) if upcoming else None


@lru_cache(maxsize=256)
def parse_cron(expression: str) -> CronExpression:
    return CronExpression.parse(expression)


def cron_matches(expression: str, when: datetime) -> bool:
    return parse_cron(expression).matches(when)


def next_fire_time(expression: str, after: datetime) -> datetime | None:
    return parse_cron(expression).next_fire_time(after)
