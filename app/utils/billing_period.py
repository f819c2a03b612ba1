"""
Billing period arithmetic for monthly usage resets.
"""
import calendar
from datetime import datetime

from app.core.plan_limits import BILLING_PERIOD_MONTHS


def add_months(value: datetime, months: int) -> datetime:
    """
    Shift a datetime by whole calendar months.
    The day is clamped to the last day of the target month (Jan 31 + 1 month -> Feb 28/29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def first_period_end(now: datetime) -> datetime:
    """Period end for a freshly provisioned account."""
    return add_months(now, BILLING_PERIOD_MONTHS)


def next_period_end(period_end: datetime, now: datetime) -> datetime:
    """
    Advance an expired period end by one period.
    If the account sat idle for several periods, one step is not enough to reach
    the future; start a fresh period from now instead.
    """
    advanced = add_months(period_end, BILLING_PERIOD_MONTHS)
    if advanced <= now:
        return add_months(now, BILLING_PERIOD_MONTHS)
    return advanced
