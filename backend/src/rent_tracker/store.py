from __future__ import annotations

import secrets
from datetime import datetime
from threading import Lock
from typing import Mapping

from . import reminder_engine
from .models import (
    BillingWindow,
    PaymentRecord,
    ReminderRecord,
    RentSnapshot,
    RentStoreState,
    SmsTemplateSet,
    SortDirection,
    SubTenant,
    SubTenantInput,
    Tenant,
    TenantCreateRequest,
    TenantMutationResult,
    TenantSortKey,
    TenantUpdateRequest,
)


class TenantNotFoundError(KeyError):
    """Raised when a payment or notification references an unknown tenant name."""


def _now_local() -> datetime:
    return datetime.now().astimezone()


def _coerce_local(value: datetime) -> datetime:
    # Naive values are read as host-local wall time.
    return value.astimezone()


def _name_key(name: str) -> str:
    return name.strip().casefold()


def _round_amount(value: float) -> float:
    return round(float(value), 2)


_TENANT_SORT_KEYS = {
    "name": lambda tenant: tenant.name.casefold(),
    "address": lambda tenant: tenant.address.casefold(),
    "rent_amount": lambda tenant: tenant.rent_amount or 0,
}


def _failure(reason: str, message: str) -> TenantMutationResult:
    return TenantMutationResult(success=False, reason=reason, message=message)


def _build_sub_tenants(items: list[SubTenantInput]) -> tuple[SubTenant, ...]:
    return tuple(
        SubTenant(
            id=item.id or f"sub_{secrets.token_hex(6)}",
            name=item.name,
            lease_details=item.lease_details,
        )
        for item in items
    )


class InMemoryRentStore:
    """Holds the current tenants, ledger, reminder history, window, and templates.

    Ledger and reminder history are keyed by the synthetic ``tenant_id`` so a
    rename only touches the tenant record; name-keyed views are derived on read.
    """

    def __init__(
        self,
        *,
        default_window: BillingWindow | None = None,
        default_templates: SmsTemplateSet | None = None,
    ) -> None:
        self._lock = Lock()
        self._default_window = default_window or BillingWindow()
        self._default_templates = default_templates or SmsTemplateSet()
        self._next_tenant_seq = 1
        self._tenants: dict[str, Tenant] = {}
        self._ledger: dict[str, tuple[PaymentRecord, ...]] = {}
        self._reminders: dict[str, tuple[ReminderRecord, ...]] = {}
        self._window = self._default_window
        self._templates = self._default_templates

    def reset(self) -> None:
        with self._lock:
            self._next_tenant_seq = 1
            self._tenants.clear()
            self._ledger.clear()
            self._reminders.clear()
            self._window = self._default_window
            self._templates = self._default_templates

    # -- snapshot ---------------------------------------------------------

    def snapshot(self) -> RentSnapshot:
        with self._lock:
            return self._snapshot_unlocked()

    def _snapshot_unlocked(self) -> RentSnapshot:
        return RentSnapshot(
            tenants=tuple(self._tenants.values()),
            ledger=dict(self._ledger),
            window=self._window,
            templates=self._templates,
            reminder_history=dict(self._reminders),
        )

    # -- settings ---------------------------------------------------------

    def get_window(self) -> BillingWindow:
        with self._lock:
            return self._window

    def set_window(self, window: BillingWindow) -> BillingWindow:
        with self._lock:
            self._window = window
            return window

    def get_templates(self) -> SmsTemplateSet:
        with self._lock:
            return self._templates

    def set_templates(self, templates: SmsTemplateSet) -> SmsTemplateSet:
        with self._lock:
            self._templates = templates
            return templates

    # -- tenants ----------------------------------------------------------

    def list_tenants(
        self,
        *,
        sort_key: TenantSortKey = "name",
        direction: SortDirection = "asc",
    ) -> list[Tenant]:
        with self._lock:
            tenants = list(self._tenants.values())
        return sorted(tenants, key=_TENANT_SORT_KEYS[sort_key], reverse=direction == "desc")

    def get_tenant(self, name: str) -> Tenant | None:
        with self._lock:
            return self._find_unlocked(name)

    def _find_unlocked(self, name: str) -> Tenant | None:
        wanted = _name_key(name)
        for tenant in self._tenants.values():
            if _name_key(tenant.name) == wanted:
                return tenant
        return None

    def _require_unlocked(self, name: str) -> Tenant:
        tenant = self._find_unlocked(name)
        if tenant is None:
            raise TenantNotFoundError(name)
        return tenant

    def create_tenant(self, payload: TenantCreateRequest) -> TenantMutationResult:
        name = payload.name.strip()
        address = payload.address.strip()
        phone = payload.phone.strip()
        if not name:
            return _failure("blank_field", "Tenant name is required.")
        if not address:
            return _failure("blank_field", "Tenant address is required.")
        if not phone:
            return _failure("blank_field", "Tenant phone is required.")
        if payload.rent_amount <= 0:
            return _failure("invalid_rent", "Rent amount must be greater than zero.")

        with self._lock:
            if self._find_unlocked(name) is not None:
                return _failure("duplicate_name", f"A tenant with the name '{name}' already exists.")
            tenant = Tenant(
                tenant_id=f"tnt_{self._next_tenant_seq:06d}",
                name=name,
                address=address,
                phone=phone,
                rent_amount=_round_amount(payload.rent_amount),
                role=payload.role,
                sub_tenants=_build_sub_tenants(payload.sub_tenants),
            )
            self._next_tenant_seq += 1
            self._tenants[tenant.tenant_id] = tenant
            self._ledger.setdefault(tenant.tenant_id, ())
            return TenantMutationResult(success=True, tenant=tenant)

    def update_tenant(self, original_name: str, patch: TenantUpdateRequest) -> TenantMutationResult:
        with self._lock:
            current = self._find_unlocked(original_name)
            if current is None:
                return _failure("not_found", f"Tenant '{original_name}' was not found.")

            changes: dict[str, object] = {}
            if patch.name is not None:
                new_name = patch.name.strip()
                if not new_name:
                    return _failure("blank_field", "Tenant name is required.")
                clash = self._find_unlocked(new_name)
                if clash is not None and clash.tenant_id != current.tenant_id:
                    return _failure("duplicate_name", f"A tenant with the name '{new_name}' already exists.")
                changes["name"] = new_name
            if patch.address is not None:
                address = patch.address.strip()
                if not address:
                    return _failure("blank_field", "Tenant address is required.")
                changes["address"] = address
            if patch.phone is not None:
                phone = patch.phone.strip()
                if not phone:
                    return _failure("blank_field", "Tenant phone is required.")
                changes["phone"] = phone
            if patch.rent_amount is not None:
                if patch.rent_amount <= 0:
                    return _failure("invalid_rent", "Rent amount must be greater than zero.")
                changes["rent_amount"] = _round_amount(patch.rent_amount)
            if patch.sub_tenants is not None:
                changes["sub_tenants"] = _build_sub_tenants(patch.sub_tenants)

            updated = current.model_copy(update=changes)
            self._tenants[current.tenant_id] = updated
            return TenantMutationResult(success=True, tenant=updated)

    def delete_tenant(self, name: str) -> TenantMutationResult:
        with self._lock:
            tenant = self._find_unlocked(name)
            if tenant is None:
                return _failure("not_found", f"Tenant '{name}' was not found.")
            del self._tenants[tenant.tenant_id]
            self._ledger.pop(tenant.tenant_id, None)
            self._reminders.pop(tenant.tenant_id, None)
            return TenantMutationResult(success=True, tenant=tenant)

    # -- payments ---------------------------------------------------------

    def record_payment(
        self,
        tenant_name: str,
        amount: float | None = None,
        when: datetime | None = None,
    ) -> PaymentRecord:
        paid_at = _coerce_local(when) if when is not None else _now_local()
        with self._lock:
            tenant = self._require_unlocked(tenant_name)
            value = amount if amount is not None else (tenant.rent_amount or 0)
            if value <= 0:
                raise ValueError("payment amount must be greater than zero")
            record = PaymentRecord(
                id=f"PAY-{int(paid_at.timestamp() * 1000)}-{secrets.token_hex(3)}",
                date=paid_at,
                amount=_round_amount(value),
                month=paid_at.month,
                year=paid_at.year,
            )
            self._ledger[tenant.tenant_id] = (*self._ledger.get(tenant.tenant_id, ()), record)
            return record

    def payments_for(self, name: str) -> list[PaymentRecord]:
        with self._lock:
            tenant = self._find_unlocked(name)
            if tenant is None:
                return []
            return list(self._ledger.get(tenant.tenant_id, ()))

    def get_payment(self, name: str, payment_id: str) -> PaymentRecord | None:
        return next((value for value in self.payments_for(name) if value.id == payment_id), None)

    def payment_history(self) -> dict[str, list[PaymentRecord]]:
        with self._lock:
            return {
                tenant.name: list(self._ledger.get(tenant_id, ()))
                for tenant_id, tenant in self._tenants.items()
            }

    # -- reminders --------------------------------------------------------

    def reminders_for(self, name: str) -> list[ReminderRecord]:
        with self._lock:
            tenant = self._find_unlocked(name)
            if tenant is None:
                return []
            return list(self._reminders.get(tenant.tenant_id, ()))

    def reminder_history(self) -> dict[str, list[ReminderRecord]]:
        with self._lock:
            return {
                tenant.name: list(self._reminders[tenant_id])
                for tenant_id, tenant in self._tenants.items()
                if tenant_id in self._reminders
            }

    def send_manual(self, tenant_name: str, message: str, now: datetime | None = None) -> ReminderRecord:
        sent_at = _coerce_local(now) if now is not None else _now_local()
        with self._lock:
            tenant = self._require_unlocked(tenant_name)
            history, record = reminder_engine.send_manual(self._reminders, tenant.tenant_id, message, sent_at)
            self._reminders = dict(history)
            return record

    def apply_reminder_history(self, history: Mapping[str, tuple[ReminderRecord, ...]]) -> None:
        """Replace the stored history; entries for deleted tenants are dropped."""
        with self._lock:
            self._reminders = {
                tenant_id: tuple(records)
                for tenant_id, records in history.items()
                if tenant_id in self._tenants
            }

    def recompute(self, now: datetime | None = None) -> reminder_engine.RecomputeOutcome:
        run_at = _coerce_local(now) if now is not None else _now_local()
        with self._lock:
            outcome = reminder_engine.recompute(self._snapshot_unlocked(), run_at)
            if outcome.changed:
                self._reminders = dict(outcome.reminder_history)
            return outcome

    def tenant_name_for(self, tenant_id: str) -> str | None:
        with self._lock:
            tenant = self._tenants.get(tenant_id)
            return tenant.name if tenant is not None else None

    # -- persistence hooks ------------------------------------------------

    def export_state(self) -> RentStoreState:
        with self._lock:
            return RentStoreState(
                next_tenant_seq=self._next_tenant_seq,
                tenants=list(self._tenants.values()),
                ledger={key: list(value) for key, value in self._ledger.items()},
                reminder_history={key: list(value) for key, value in self._reminders.items()},
                window=self._window,
                templates=self._templates,
            )

    def load_state(self, state: RentStoreState) -> None:
        with self._lock:
            self._next_tenant_seq = state.next_tenant_seq
            self._tenants = {tenant.tenant_id: tenant for tenant in state.tenants}
            self._ledger = {key: tuple(value) for key, value in state.ledger.items()}
            self._reminders = {key: tuple(value) for key, value in state.reminder_history.items()}
            self._window = state.window
            self._templates = state.templates
