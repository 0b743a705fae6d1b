from __future__ import annotations

from datetime import datetime

from rent_tracker.ledger import ledger_summary, recent_transactions, reminder_log, tenant_stats
from rent_tracker.models import BillingWindow, PaymentRecord, ReminderRecord


def _payment(payment_id: str, when: datetime, amount: float = 100.0) -> PaymentRecord:
    return PaymentRecord(id=payment_id, date=when, amount=amount, month=when.month, year=when.year)


def test_summary_totals_and_recent_order() -> None:
    ledger = {
        "Alice": [_payment("a1", datetime(2026, 1, 2), 1000.0), _payment("a2", datetime(2026, 2, 3), 1000.0)],
        "Bob": [_payment("b1", datetime(2026, 1, 20), 850.5)],
    }
    summary = ledger_summary(ledger)
    assert summary.total_revenue == 2850.5
    assert summary.total_transactions == 3
    assert [item.id for item in summary.recent_transactions] == ["a2", "b1", "a1"]
    assert summary.recent_transactions[1].tenant_name == "Bob"


def test_recent_transactions_limit_and_stable_ties() -> None:
    same_time = datetime(2026, 3, 1, 12, 0)
    ledger = {
        "Alice": [_payment("a1", same_time), _payment("a2", same_time)],
        "Bob": [_payment("b1", same_time)],
    }
    assert [item.id for item in recent_transactions(ledger, limit=10)] == ["a1", "a2", "b1"]
    assert [item.id for item in recent_transactions(ledger, limit=2)] == ["a1", "a2"]
    assert recent_transactions(ledger, limit=0) == []


def test_empty_ledger_summary() -> None:
    summary = ledger_summary({})
    assert summary.total_revenue == 0
    assert summary.total_transactions == 0
    assert summary.recent_transactions == []


def test_tenant_stats_use_the_current_window() -> None:
    payments = [
        _payment("p1", datetime(2026, 1, 3)),
        _payment("p2", datetime(2026, 2, 9)),
        _payment("p3", datetime(2026, 3, 5)),
    ]
    narrow = tenant_stats("Alice", payments, BillingWindow(start_day=1, end_day=5))
    assert (narrow.payment_count, narrow.on_time_count, narrow.late_count) == (3, 2, 1)
    assert narrow.total_paid == 300.0

    wide = tenant_stats("Alice", payments, BillingWindow(start_day=1, end_day=10))
    assert (wide.on_time_count, wide.late_count) == (3, 0)


def test_reminder_log_is_most_recent_first() -> None:
    history = {
        "Alice": [ReminderRecord(date=datetime(2026, 3, 1), type="reminder", message="r")],
        "Bob": [
            ReminderRecord(date=datetime(2026, 2, 10), type="late", message="l"),
            ReminderRecord(date=datetime(2026, 3, 2), type="manual", message="m"),
        ],
    }
    items = reminder_log(history)
    assert [(item.tenant_name, item.type) for item in items] == [
        ("Bob", "manual"),
        ("Alice", "reminder"),
        ("Bob", "late"),
    ]
