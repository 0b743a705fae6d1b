from __future__ import annotations

import logging
import secrets
from datetime import datetime

from fastapi import APIRouter, HTTPException, Request, Response, status

from . import ledger
from .billing_window import classify, is_within_window, month_calendar, paid_this_cycle
from .config import get_settings
from .models import (
    BillingWindow,
    LedgerSummaryResponse,
    ManualReminderRequest,
    PaymentRecord,
    PaymentRequest,
    RecomputeRequest,
    RecomputeRunListResponse,
    RecomputeRunResponse,
    ReminderLogItem,
    ReminderLogResponse,
    RentCalendarResponse,
    SmsTemplateSet,
    SortDirection,
    TemplateKind,
    TemplatePreviewResponse,
    Tenant,
    TenantCreateRequest,
    TenantLedgerStats,
    TenantListResponse,
    TenantMutationResult,
    TenantSortKey,
    TenantStatusResponse,
    TenantUpdateRequest,
)
from .pdf_renderer import render_payment_receipt_pdf
from .reminder_runs import ReminderRecomputeService, create_recompute_run_repository
from .store import InMemoryRentStore, TenantNotFoundError
from .store_backends import create_rent_store, default_window_from_settings
from .templates import render_template

logger = logging.getLogger(__name__)

_FAILURE_STATUS = {
    "duplicate_name": status.HTTP_409_CONFLICT,
    "not_found": status.HTTP_404_NOT_FOUND,
}


_settings = get_settings()
router = APIRouter(prefix=f"{_settings.api_prefix}/rent", tags=["rent"])
rent_store: InMemoryRentStore = create_rent_store(
    backend=_settings.rent_store_backend,
    database_url=_settings.database_url,
    default_window=default_window_from_settings(_settings),
)
run_repository = create_recompute_run_repository(
    backend=_settings.reminder_run_store_backend,
    database_url=_settings.database_url,
)
recompute_service = ReminderRecomputeService(repository=run_repository, store=rent_store)


def reset_runtime_state_for_tests() -> None:
    rent_store.reset()
    run_repository.reset()


def _require_admin(request: Request) -> None:
    if not _settings.admin_auth_enabled:
        return
    expected = _settings.admin_api_key.strip()
    provided = request.headers.get("X-Admin-Key", "").strip()
    if not provided or not secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("rejected admin request to %s", request.url.path)
        raise HTTPException(status_code=401, detail="admin key required")


def _after_change() -> None:
    if _settings.recompute_on_change:
        recompute_service.run_once(trigger="on_change")


def _now() -> datetime:
    return datetime.now().astimezone()


def _as_of(value: datetime | None) -> datetime:
    return value.astimezone() if value is not None else _now()


def _require_tenant(name: str) -> Tenant:
    tenant = rent_store.get_tenant(name)
    if tenant is None:
        raise HTTPException(status_code=404, detail=f"tenant not found: {name}")
    return tenant


def _mutation_or_raise(result: TenantMutationResult) -> TenantMutationResult:
    if result.success:
        return result
    status_code = _FAILURE_STATUS.get(result.reason or "", status.HTTP_422_UNPROCESSABLE_ENTITY)
    raise HTTPException(status_code=status_code, detail={"reason": result.reason, "message": result.message})


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@router.get("/settings/window", response_model=BillingWindow)
def get_window() -> BillingWindow:
    return rent_store.get_window()


@router.put("/settings/window", response_model=BillingWindow)
def put_window(payload: BillingWindow, request: Request) -> BillingWindow:
    _require_admin(request)
    window = rent_store.set_window(payload)
    _after_change()
    return window


@router.get("/settings/templates", response_model=SmsTemplateSet)
def get_templates() -> SmsTemplateSet:
    return rent_store.get_templates()


@router.put("/settings/templates", response_model=SmsTemplateSet)
def put_templates(payload: SmsTemplateSet, request: Request) -> SmsTemplateSet:
    _require_admin(request)
    templates = rent_store.set_templates(payload)
    _after_change()
    return templates


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------


@router.get("/tenants", response_model=TenantListResponse)
def list_tenants(sort_key: TenantSortKey = "name", direction: SortDirection = "asc") -> TenantListResponse:
    return TenantListResponse(tenants=rent_store.list_tenants(sort_key=sort_key, direction=direction))


@router.post("/tenants", response_model=TenantMutationResult, status_code=status.HTTP_201_CREATED)
def create_tenant(payload: TenantCreateRequest, request: Request) -> TenantMutationResult:
    _require_admin(request)
    result = _mutation_or_raise(rent_store.create_tenant(payload))
    _after_change()
    return result


@router.get("/tenants/{name}", response_model=Tenant)
def get_tenant(name: str) -> Tenant:
    return _require_tenant(name)


@router.patch("/tenants/{name}", response_model=TenantMutationResult)
def update_tenant(name: str, payload: TenantUpdateRequest, request: Request) -> TenantMutationResult:
    _require_admin(request)
    result = _mutation_or_raise(rent_store.update_tenant(name, payload))
    _after_change()
    return result


@router.delete("/tenants/{name}", response_model=TenantMutationResult)
def delete_tenant(name: str, request: Request) -> TenantMutationResult:
    _require_admin(request)
    result = _mutation_or_raise(rent_store.delete_tenant(name))
    _after_change()
    return result


@router.get("/tenants/{name}/status", response_model=TenantStatusResponse)
def get_tenant_status(name: str, as_of: datetime | None = None) -> TenantStatusResponse:
    tenant = _require_tenant(name)
    now = _as_of(as_of)
    window = rent_store.get_window()
    payments = rent_store.payments_for(tenant.name)
    payment_status = classify(tenant, payments, window, now)
    within_window = is_within_window(window, now.day)
    return TenantStatusResponse(
        tenant_name=tenant.name,
        status=payment_status,
        rent_amount=tenant.rent_amount or 0,
        paid_this_cycle=paid_this_cycle(payments, now),
        is_within_pay_window=within_window,
        can_pay=within_window and payment_status != "Paid",
        window=window,
        as_of=now,
    )


@router.get("/tenants/{name}/stats", response_model=TenantLedgerStats)
def get_tenant_stats(name: str) -> TenantLedgerStats:
    tenant = _require_tenant(name)
    return ledger.tenant_stats(tenant.name, rent_store.payments_for(tenant.name), rent_store.get_window())


@router.get("/tenants/{name}/calendar", response_model=RentCalendarResponse)
def get_tenant_calendar(
    name: str,
    year: int | None = None,
    month: int | None = None,
    as_of: datetime | None = None,
) -> RentCalendarResponse:
    tenant = _require_tenant(name)
    today = _as_of(as_of).date()
    view_year = year if year is not None else today.year
    view_month = month if month is not None else today.month
    if not 1 <= view_month <= 12:
        raise HTTPException(status_code=422, detail="month must be between 1 and 12")
    if not 1 <= view_year <= 9999:
        raise HTTPException(status_code=422, detail="year must be between 1 and 9999")
    window = rent_store.get_window()
    paid, overdue, days = month_calendar(
        tenant,
        rent_store.payments_for(tenant.name),
        window,
        year=view_year,
        month=view_month,
        today=today,
    )
    return RentCalendarResponse(
        tenant_name=tenant.name,
        year=view_year,
        month=view_month,
        paid=paid,
        overdue=overdue,
        window=window,
        days=days,
    )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@router.get("/tenants/{name}/payments", response_model=list[PaymentRecord])
def list_payments(name: str) -> list[PaymentRecord]:
    tenant = _require_tenant(name)
    return rent_store.payments_for(tenant.name)


@router.post("/tenants/{name}/payments", response_model=PaymentRecord, status_code=status.HTTP_201_CREATED)
def record_payment(name: str, payload: PaymentRequest | None = None) -> PaymentRecord:
    body = payload or PaymentRequest()
    try:
        record = rent_store.record_payment(name, amount=body.amount, when=body.paid_at)
    except TenantNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"tenant not found: {name}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    _after_change()
    return record


@router.get("/tenants/{name}/payments/{payment_id}/receipt")
def get_payment_receipt(name: str, payment_id: str) -> Response:
    tenant = _require_tenant(name)
    payment = rent_store.get_payment(tenant.name, payment_id)
    if payment is None:
        raise HTTPException(status_code=404, detail=f"payment not found: {payment_id}")
    pdf_content = render_payment_receipt_pdf(tenant, payment)
    headers = {"Content-Disposition": f'inline; filename="{payment.id}.pdf"'}
    return Response(content=pdf_content, media_type="application/pdf", headers=headers)


@router.get("/ledger/summary", response_model=LedgerSummaryResponse)
def get_ledger_summary() -> LedgerSummaryResponse:
    return ledger.ledger_summary(rent_store.payment_history(), limit=_settings.recent_transactions_limit)


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


@router.get("/tenants/{name}/templates/{kind}/preview", response_model=TemplatePreviewResponse)
def preview_template(name: str, kind: TemplateKind, request: Request) -> TemplatePreviewResponse:
    _require_admin(request)
    tenant = _require_tenant(name)
    message = render_template(rent_store.get_templates().for_kind(kind), tenant, rent_store.get_window())
    return TemplatePreviewResponse(tenant_name=tenant.name, kind=kind, message=message)


@router.post(
    "/tenants/{name}/reminders/manual",
    response_model=ReminderLogItem,
    status_code=status.HTTP_201_CREATED,
)
def send_manual_reminder(name: str, payload: ManualReminderRequest, request: Request) -> ReminderLogItem:
    _require_admin(request)
    tenant = _require_tenant(name)
    try:
        record = rent_store.send_manual(tenant.name, payload.message, payload.sent_at)
    except TenantNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"tenant not found: {name}") from exc
    _after_change()
    return ReminderLogItem(tenant_name=tenant.name, date=record.date, type=record.type, message=record.message)


@router.get("/reminders", response_model=ReminderLogResponse)
def get_reminder_log() -> ReminderLogResponse:
    return ReminderLogResponse(items=ledger.reminder_log(rent_store.reminder_history()))


@router.post("/reminders/recompute", response_model=RecomputeRunResponse)
def recompute_reminders(request: Request, payload: RecomputeRequest | None = None) -> RecomputeRunResponse:
    _require_admin(request)
    body = payload or RecomputeRequest()
    return recompute_service.run_once(now=body.now_override, trigger="api")


@router.get("/reminders/runs", response_model=RecomputeRunListResponse)
def list_recompute_runs(request: Request, limit: int = 50) -> RecomputeRunListResponse:
    _require_admin(request)
    return RecomputeRunListResponse(runs=recompute_service.list_runs(limit=max(limit, 0)))
