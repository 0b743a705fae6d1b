from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

from .models import BillingWindow, Tenant

CENTS = Decimal("0.01")
PLACEHOLDER_RE = re.compile(r"\{(tenant_name|rent_amount|due_date_start|due_date_end)\}")


def format_rent_amount(value: float | None) -> str:
    # No thousands separator: "$1200.00".
    amount = Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return f"${amount:.2f}"


def first_name(full_name: str) -> str:
    tokens = full_name.split()
    return tokens[0] if tokens else ""


def render_template(template: str, tenant: Tenant, window: BillingWindow) -> str:
    """Fill the recognized placeholders in one pass; anything else in braces is left as-is."""
    values = {
        "tenant_name": first_name(tenant.name),
        "rent_amount": format_rent_amount(tenant.rent_amount),
        "due_date_start": str(window.start_day),
        "due_date_end": str(window.end_day),
    }
    return PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], template)
