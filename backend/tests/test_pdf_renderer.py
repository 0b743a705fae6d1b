from __future__ import annotations

from datetime import datetime

from rent_tracker.models import PaymentRecord, Tenant
from rent_tracker.pdf_renderer import render_payment_receipt_pdf, rent_period_label


def _payment() -> PaymentRecord:
    return PaymentRecord(id="PAY-1772533800000-abc123", date=datetime(2026, 3, 3, 10, 30), amount=1000.0, month=3, year=2026)


def test_receipt_pdf_renders() -> None:
    tenant = Tenant(tenant_id="tnt_000001", name="Jane <Doe> & Co", address="1 Main St", rent_amount=1000.0)
    content = render_payment_receipt_pdf(tenant, _payment())
    assert content.startswith(b"%PDF")
    assert len(content) > 1000


def test_rent_period_label() -> None:
    assert rent_period_label(_payment()) == "Rent for March 2026"
