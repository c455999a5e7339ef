"""
Report windows. Every range is half-open: ``start <= t < end``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import StrEnum

from kungfu import Error, Ok, Result

from evergreen.errors import CommerceError, Errors


class ReportKind(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class ChartPeriod(StrEnum):
    TODAY = "today"
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class DateRange:
    start: datetime
    end: datetime

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def _midnight(day: date, like: datetime) -> datetime:
    return datetime.combine(day, time.min, tzinfo=like.tzinfo)


def _day(day: date, like: datetime) -> DateRange:
    start = _midnight(day, like)
    return DateRange(start, start + timedelta(days=1))


def _month(now: datetime) -> DateRange:
    start = _midnight(now.date().replace(day=1), now)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return DateRange(start, end)


def _year(now: datetime) -> DateRange:
    start = _midnight(date(now.year, 1, 1), now)
    return DateRange(start, start.replace(year=now.year + 1))


def date_range(
    kind: ReportKind | str,
    now: datetime,
    start: date | None = None,
    end: date | None = None,
) -> Result[DateRange, CommerceError]:
    """
    Window for a sales report.

    Weeks start on Sunday. A custom range covers whole days, ``end`` included.
    """
    try:
        kind = ReportKind(kind)
    except ValueError:
        return Error(Errors.bad_request("Invalid report type."))

    match kind:
        case ReportKind.DAILY:
            return Ok(_day(now.date(), now))
        case ReportKind.WEEKLY:
            sunday = now.date() - timedelta(days=(now.weekday() + 1) % 7)
            first = _midnight(sunday, now)
            return Ok(DateRange(first, first + timedelta(days=7)))
        case ReportKind.MONTHLY:
            return Ok(_month(now))
        case ReportKind.YEARLY:
            return Ok(_year(now))
        case ReportKind.CUSTOM:
            if start is None or end is None:
                return Error(Errors.bad_request("Please select both a start and an end date."))
            if start > end:
                return Error(Errors.bad_request("Start date must be on or before the end date."))
            return Ok(DateRange(_midnight(start, now), _midnight(end, now) + timedelta(days=1)))


def chart_range(
    period: ChartPeriod | str,
    now: datetime,
    day: date | None = None,
) -> Result[DateRange, CommerceError]:
    try:
        period = ChartPeriod(period)
    except ValueError:
        return Error(Errors.bad_request("Invalid chart period."))

    match period:
        case ChartPeriod.TODAY:
            return Ok(_day(now.date(), now))
        case ChartPeriod.MONTH:
            return Ok(_month(now))
        case ChartPeriod.YEAR:
            return Ok(_year(now))
        case ChartPeriod.CUSTOM:
            if day is None:
                return Error(Errors.bad_request("Please select a date."))
            return Ok(_day(day, now))


__all__ = ("ReportKind", "ChartPeriod", "DateRange", "date_range", "chart_range")
