from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Iterable

from .models import BillingWindow, CalendarDay, PaymentRecord, PaymentStatus, Tenant


def _round_amount(value: float) -> float:
    return round(float(value), 2)


def is_within_window(window: BillingWindow, day: int) -> bool:
    return window.start_day <= day <= window.end_day


def paid_for_month(payments: Iterable[PaymentRecord], *, year: int, month: int) -> float:
    return _round_amount(sum(p.amount for p in payments if p.month == month and p.year == year))


def paid_this_cycle(payments: Iterable[PaymentRecord], now: datetime | date) -> float:
    return paid_for_month(payments, year=now.year, month=now.month)


def is_paid_for_month(tenant: Tenant, payments: Iterable[PaymentRecord], *, year: int, month: int) -> bool:
    return paid_for_month(payments, year=year, month=month) >= (tenant.rent_amount or 0)


def classify(
    tenant: Tenant,
    payments: Iterable[PaymentRecord],
    window: BillingWindow,
    now: datetime | date,
) -> PaymentStatus:
    """Return the tenant's status for the calendar month containing ``now``.

    The checks form a priority chain: paid, then overdue, then due, then upcoming.
    """
    if is_paid_for_month(tenant, payments, year=now.year, month=now.month):
        return "Paid"
    if now.day > window.end_day:
        return "Overdue"
    if is_within_window(window, now.day):
        return "Due"
    return "Upcoming"


def is_month_overdue(
    tenant: Tenant,
    payments: Iterable[PaymentRecord],
    window: BillingWindow,
    *,
    year: int,
    month: int,
    today: date,
) -> bool:
    if (year, month) > (today.year, today.month):
        return False
    if is_paid_for_month(tenant, payments, year=year, month=month):
        return False
    if (year, month) == (today.year, today.month):
        return today.day > window.end_day
    return True


def month_calendar(
    tenant: Tenant,
    payments: Iterable[PaymentRecord],
    window: BillingWindow,
    *,
    year: int,
    month: int,
    today: date,
) -> tuple[bool, bool, list[CalendarDay]]:
    """Build the rent calendar for one month: (paid, overdue, days)."""
    records = list(payments)
    paid = is_paid_for_month(tenant, records, year=year, month=month)
    overdue = is_month_overdue(tenant, records, window, year=year, month=month, today=today)
    _, days_in_month = calendar.monthrange(year, month)
    days = [
        CalendarDay(
            day=day,
            weekday=date(year, month, day).weekday(),
            in_window=is_within_window(window, day),
            is_today=(year, month, day) == (today.year, today.month, today.day),
        )
        for day in range(1, days_in_month + 1)
    ]
    return paid, overdue, days
