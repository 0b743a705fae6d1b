"""Automatic reminder generation over an immutable :class:`RentSnapshot`.

Per tenant and calendar month the automatic records move through
``none -> reminder -> late``. Manual records sit beside that progression and
never block it. ``recompute`` returns the history it was given when nothing
needs to be appended, so callers can skip the write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping

from .billing_window import classify, is_within_window
from .models import ReminderRecord, RentSnapshot, Tenant
from .templates import render_template

ReminderHistory = Mapping[str, tuple[ReminderRecord, ...]]


@dataclass(frozen=True)
class AppendedReminder:
    tenant_id: str
    record: ReminderRecord


@dataclass(frozen=True)
class RecomputeOutcome:
    reminder_history: ReminderHistory
    changed: bool
    evaluated_count: int
    appended: tuple[AppendedReminder, ...] = ()


def _is_reminder_recipient(tenant: Tenant) -> bool:
    return tenant.role == "tenant" and bool(tenant.phone.strip())


def _sent_this_month(records: Iterable[ReminderRecord], reminder_type: str, now: datetime) -> bool:
    return any(
        record.type == reminder_type
        and record.date.year == now.year
        and record.date.month == now.month
        for record in records
    )


def plan_reminder(snapshot: RentSnapshot, tenant: Tenant, now: datetime) -> ReminderRecord | None:
    """Return the automatic record the tenant is owed right now, if any."""
    payments = snapshot.ledger.get(tenant.tenant_id, ())
    if classify(tenant, payments, snapshot.window, now) == "Paid":
        return None

    existing = snapshot.reminder_history.get(tenant.tenant_id, ())
    window = snapshot.window
    if is_within_window(window, now.day) and not _sent_this_month(existing, "reminder", now):
        return ReminderRecord(
            date=now,
            type="reminder",
            message=render_template(snapshot.templates.reminder, tenant, window),
        )
    if now.day > window.end_day and not _sent_this_month(existing, "late", now):
        return ReminderRecord(
            date=now,
            type="late",
            message=render_template(snapshot.templates.late, tenant, window),
        )
    return None


def recompute(snapshot: RentSnapshot, now: datetime) -> RecomputeOutcome:
    evaluated = 0
    appended: list[AppendedReminder] = []
    for tenant in snapshot.tenants:
        if not _is_reminder_recipient(tenant):
            continue
        evaluated += 1
        record = plan_reminder(snapshot, tenant, now)
        if record is not None:
            appended.append(AppendedReminder(tenant_id=tenant.tenant_id, record=record))

    if not appended:
        return RecomputeOutcome(
            reminder_history=snapshot.reminder_history,
            changed=False,
            evaluated_count=evaluated,
        )

    history = dict(snapshot.reminder_history)
    for item in appended:
        history[item.tenant_id] = (*history.get(item.tenant_id, ()), item.record)
    return RecomputeOutcome(
        reminder_history=history,
        changed=True,
        evaluated_count=evaluated,
        appended=tuple(appended),
    )


def send_manual(
    history: ReminderHistory,
    tenant_id: str,
    message: str,
    now: datetime,
) -> tuple[ReminderHistory, ReminderRecord]:
    record = ReminderRecord(date=now, type="manual", message=message)
    updated = dict(history)
    updated[tenant_id] = (*updated.get(tenant_id, ()), record)
    return updated, record
