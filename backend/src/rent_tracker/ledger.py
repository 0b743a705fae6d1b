"""Read-only aggregations over payment and reminder records.

Every function here takes name-tagged collections and never writes. The
on-time classification reads the billing window passed at query time, so a
window change reclassifies historical payments.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from .billing_window import is_within_window
from .models import (
    BillingWindow,
    LedgerSummaryResponse,
    LedgerTransaction,
    PaymentRecord,
    ReminderLogItem,
    ReminderRecord,
    TenantLedgerStats,
)

DEFAULT_RECENT_LIMIT = 10


def _round_amount(value: float) -> float:
    return round(float(value), 2)


def _tagged_payments(ledger: Mapping[str, Sequence[PaymentRecord]]) -> list[LedgerTransaction]:
    return [
        LedgerTransaction(
            tenant_name=tenant_name,
            id=payment.id,
            date=payment.date,
            amount=payment.amount,
            month=payment.month,
            year=payment.year,
        )
        for tenant_name, payments in ledger.items()
        for payment in payments
    ]


def recent_transactions(
    ledger: Mapping[str, Sequence[PaymentRecord]],
    *,
    limit: int = DEFAULT_RECENT_LIMIT,
) -> list[LedgerTransaction]:
    # sorted() is stable, so equal dates keep ledger insertion order.
    ordered = sorted(_tagged_payments(ledger), key=lambda value: value.date, reverse=True)
    return ordered[: max(limit, 0)]


def ledger_summary(
    ledger: Mapping[str, Sequence[PaymentRecord]],
    *,
    limit: int = DEFAULT_RECENT_LIMIT,
) -> LedgerSummaryResponse:
    all_payments = [payment for payments in ledger.values() for payment in payments]
    return LedgerSummaryResponse(
        total_revenue=_round_amount(sum(payment.amount for payment in all_payments)),
        total_transactions=len(all_payments),
        recent_transactions=recent_transactions(ledger, limit=limit),
    )


def tenant_stats(
    tenant_name: str,
    payments: Iterable[PaymentRecord],
    window: BillingWindow,
) -> TenantLedgerStats:
    records = list(payments)
    on_time = sum(1 for payment in records if is_within_window(window, payment.date.day))
    return TenantLedgerStats(
        tenant_name=tenant_name,
        payment_count=len(records),
        total_paid=_round_amount(sum(payment.amount for payment in records)),
        on_time_count=on_time,
        late_count=len(records) - on_time,
    )


def reminder_log(history: Mapping[str, Sequence[ReminderRecord]]) -> list[ReminderLogItem]:
    items = [
        ReminderLogItem(
            tenant_name=tenant_name,
            date=record.date,
            type=record.type,
            message=record.message,
        )
        for tenant_name, records in history.items()
        for record in records
    ]
    return sorted(items, key=lambda value: value.date, reverse=True)
