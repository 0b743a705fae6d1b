from __future__ import annotations

from rent_tracker.models import BillingWindow, Tenant
from rent_tracker.templates import first_name, format_rent_amount, render_template


def _tenant(name: str = "Jane Doe", rent: float | None = 950.0) -> Tenant:
    return Tenant(tenant_id="tnt_000001", name=name, address="1 Main St", phone="555-0100", rent_amount=rent)


def test_renders_all_placeholders() -> None:
    message = render_template(
        "Hi {tenant_name}, rent is {rent_amount} due by {due_date_end}",
        _tenant(),
        BillingWindow(start_day=1, end_day=5),
    )
    assert message == "Hi Jane, rent is $950.00 due by 5"


def test_replaces_every_occurrence_and_keeps_unknown_placeholders() -> None:
    message = render_template(
        "{tenant_name} {tenant_name} {due_date_start}-{due_date_end} {unit_number}",
        _tenant(),
        BillingWindow(start_day=3, end_day=7),
    )
    assert message == "Jane Jane 3-7 {unit_number}"


def test_substituted_values_are_not_rescanned() -> None:
    message = render_template("Hello {tenant_name}", _tenant(name="{rent_amount} Smith"), BillingWindow())
    assert message == "Hello {rent_amount}"


def test_rent_amount_formatting() -> None:
    assert format_rent_amount(1200) == "$1200.00"
    assert format_rent_amount(10.005) == "$10.01"
    assert format_rent_amount(None) == "$0.00"


def test_first_name_handles_blank_and_padded_names() -> None:
    assert first_name("  Maria   de la Cruz ") == "Maria"
    assert first_name("   ") == ""
