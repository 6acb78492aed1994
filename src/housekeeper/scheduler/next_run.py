"""Next run time calculation for scheduled tasks.

The scheduler talks to a :class:`NextRunCalculator`; the default
:class:`ReducedCronCalculator` understands a deliberately reduced cron
dialect:

* the expression has the usual five fields
  ``minute hour day-of-month month weekday``;
* only ``minute`` and ``hour`` are honored, each either a number or ``*``,
  and ``*`` resolves to ``0`` (``"* * * * *"`` means daily at midnight);
* ``day-of-month``, ``month`` and ``weekday`` are accepted but always treated
  as wildcards.

The result is the next occurrence of that time of day strictly after
``now``: today if it is still ahead, otherwise tomorrow.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from ..exceptions import InvalidCronExpressionError


class NextRunCalculator(Protocol):
    def validate(self, expression: str) -> None:
        """Raise :class:`InvalidCronExpressionError` for unsupported input."""

    def next_run(self, expression: str, now: datetime) -> datetime:
        """Return the first run time strictly after ``now``."""


@dataclass(frozen=True, slots=True)
class DailyTime:
    hour: int
    minute: int


def _parse_field(value: str, *, name: str, upper: int) -> int:
    if value == "*":
        return 0
    if not (value.isascii() and value.isdigit()):
        raise InvalidCronExpressionError(f"unsupported {name} field '{value}'")
    number = int(value)
    if number > upper:
        raise InvalidCronExpressionError(f"{name} field '{value}' out of range 0-{upper}")
    return number


class ReducedCronCalculator:
    """Minute/hour-only cron evaluation."""

    def parse(self, expression: str) -> DailyTime:
        parts = expression.split()
        if len(parts) != 5:
            raise InvalidCronExpressionError(
                f"cron expression '{expression}' must have 5 fields, got {len(parts)}"
            )
        minute = _parse_field(parts[0], name="minute", upper=59)
        hour = _parse_field(parts[1], name="hour", upper=23)
        return DailyTime(hour=hour, minute=minute)

    def validate(self, expression: str) -> None:
        self.parse(expression)

    def next_run(self, expression: str, now: datetime) -> datetime:
        target = self.parse(expression)
        candidate = now.replace(hour=target.hour, minute=target.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate
