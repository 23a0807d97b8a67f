"""
Aggregation Window Resolution

Turns a filter keyword (plus optional calendar dates) into the inclusive
creation-time window the aggregation query scans.

| filter        | start                  | end                    |
|---------------|------------------------|------------------------|
| pastWeek      | now - 1 day            | now                    |
| pastMonth     | now - 1 month          | now                    |
| last3Months   | now - 3 months         | now                    |
| custom        | startDate 00:00:00.000 | endDate 23:59:59.999   |

Resolution is pure: it never touches storage, so a bad keyword or date
is rejected before any query runs.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator

from expense_ledger.errors import InvalidFilterError, ValidationError
from expense_ledger.models.expense import ValidationIssue, to_epoch_millis


CALENDAR_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

END_OF_DAY = time(23, 59, 59, 999000)


class ExpenseFilter(str, Enum):
    """Supported aggregation filters."""
    PAST_WEEK = "pastWeek"
    PAST_MONTH = "pastMonth"
    LAST_3_MONTHS = "last3Months"
    CUSTOM = "custom"


class DateWindow(BaseModel):
    """Inclusive [start, end] range of creation timestamps."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_order(self) -> "DateWindow":
        if self.end < self.start:
            raise ValueError("Window end cannot be before start")
        return self

    @property
    def start_millis(self) -> int:
        return to_epoch_millis(self.start)

    @property
    def end_millis(self) -> int:
        return to_epoch_millis(self.end)

    def contains(self, millis: int) -> bool:
        return self.start_millis <= millis <= self.end_millis

    def describe(self) -> str:
        """Format the window for logs and audit events."""
        if self.start.date() == self.end.date():
            return f"on {self.start.strftime('%d %b %Y')}"
        if self.start.year == self.end.year:
            return f"from {self.start.strftime('%d %b')} to {self.end.strftime('%d %b %Y')}"
        return f"from {self.start.strftime('%d %b %Y')} to {self.end.strftime('%d %b %Y')}"


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def subtract_months(moment: datetime, months: int) -> datetime:
    """
    Move ``moment`` back by whole calendar months.

    The day is clamped to the end of the target month, so 31 March
    minus one month is 29 (or 28) February.
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_calendar_date(value: Optional[str], field: str) -> date:
    """
    Parse a strict ``YYYY-MM-DD`` date.

    Raises:
        ValidationError: If the value is missing or not a valid calendar date
    """
    if value is None or not CALENDAR_DATE_PATTERN.match(value.strip()):
        raise ValidationError(
            f"{field} must be a date in YYYY-MM-DD format, got {value!r}",
            issues=[ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Expected a date in YYYY-MM-DD format",
                severity="error",
            )],
        )
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(
            f"{field} is not a valid calendar date: {e}",
            issues=[ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=str(e),
                severity="error",
            )],
        ) from e


def parse_filter(value: Optional[str]) -> ExpenseFilter:
    """
    Map a filter keyword to ``ExpenseFilter``.

    Keywords are matched exactly (case-sensitive).

    Raises:
        InvalidFilterError: For anything that is not a known keyword
    """
    try:
        return ExpenseFilter(value)
    except ValueError:
        raise InvalidFilterError("cannot find filter") from None


def resolve_window(
    now: datetime,
    filter_name: Optional[str],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> tuple[ExpenseFilter, DateWindow]:
    """
    Resolve a filter keyword against the reference instant ``now``.

    Naive ``now`` values are taken as UTC. The custom window ignores ``now``.

    Raises:
        InvalidFilterError: Unknown keyword
        ValidationError: Bad or inverted custom dates
    """
    expense_filter = parse_filter(filter_name)
    now = _as_utc(now)

    if expense_filter == ExpenseFilter.PAST_WEEK:
        return expense_filter, DateWindow(start=now - timedelta(days=1), end=now)
    if expense_filter == ExpenseFilter.PAST_MONTH:
        return expense_filter, DateWindow(start=subtract_months(now, 1), end=now)
    if expense_filter == ExpenseFilter.LAST_3_MONTHS:
        return expense_filter, DateWindow(start=subtract_months(now, 3), end=now)

    start_day = parse_calendar_date(start_date, "startDate")
    end_day = parse_calendar_date(end_date, "endDate")
    if end_day < start_day:
        raise ValidationError(
            "startDate cannot be after endDate",
            issues=[ValidationIssue(
                field="endDate",
                issue_type="invalid_range",
                message="End date is before start date",
                severity="error",
            )],
        )
    return expense_filter, DateWindow(
        start=datetime.combine(start_day, time.min, tzinfo=timezone.utc),
        end=datetime.combine(end_day, END_OF_DAY, tzinfo=timezone.utc),
    )
