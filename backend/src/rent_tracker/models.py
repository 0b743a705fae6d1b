from __future__ import annotations

from datetime import datetime
from typing import Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TenantRole = Literal["tenant", "admin"]
PaymentStatus = Literal["Paid", "Due", "Overdue", "Upcoming"]
ReminderType = Literal["reminder", "late", "manual"]
TemplateKind = Literal["reminder", "late"]
MutationFailureReason = Literal["duplicate_name", "blank_field", "invalid_rent", "not_found"]
TenantSortKey = Literal["name", "address", "rent_amount"]
SortDirection = Literal["asc", "desc"]

DEFAULT_REMINDER_TEMPLATE = (
    "Hi {tenant_name}, just a friendly reminder that your rent of {rent_amount} is due by the {due_date_end}th."
)
DEFAULT_LATE_TEMPLATE = (
    "Hi {tenant_name}, your rent payment of {rent_amount} is now overdue. Please submit payment as soon as possible."
)


class SubTenant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    lease_details: str = ""


class Tenant(BaseModel):
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    name: str
    address: str = ""
    phone: str = ""
    rent_amount: float | None = Field(default=None, ge=0)
    role: TenantRole = "tenant"
    sub_tenants: tuple[SubTenant, ...] = ()


class BillingWindow(BaseModel):
    """Inclusive day-of-month range in which rent is considered on time."""

    model_config = ConfigDict(frozen=True)

    start_day: int = Field(default=1, ge=1, le=31)
    end_day: int = Field(default=5, ge=1, le=31)

    @model_validator(mode="after")
    def _validate_order(self) -> BillingWindow:
        if self.end_day < self.start_day:
            raise ValueError("end_day must be greater than or equal to start_day")
        return self


class PaymentRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    date: datetime
    amount: float
    month: int = Field(ge=1, le=12)
    year: int


class ReminderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime
    type: ReminderType
    message: str


class SmsTemplateSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    reminder: str = DEFAULT_REMINDER_TEMPLATE
    late: str = DEFAULT_LATE_TEMPLATE

    def for_kind(self, kind: TemplateKind) -> str:
        return self.reminder if kind == "reminder" else self.late


class RentSnapshot(BaseModel):
    """Point-in-time view of every engine input. Ledger and history are keyed by tenant_id."""

    model_config = ConfigDict(frozen=True)

    tenants: tuple[Tenant, ...] = ()
    ledger: Mapping[str, tuple[PaymentRecord, ...]] = Field(default_factory=dict)
    window: BillingWindow = Field(default_factory=BillingWindow)
    templates: SmsTemplateSet = Field(default_factory=SmsTemplateSet)
    reminder_history: Mapping[str, tuple[ReminderRecord, ...]] = Field(default_factory=dict)


class RentStoreState(BaseModel):
    next_tenant_seq: int = 1
    tenants: list[Tenant] = Field(default_factory=list)
    ledger: dict[str, list[PaymentRecord]] = Field(default_factory=dict)
    reminder_history: dict[str, list[ReminderRecord]] = Field(default_factory=dict)
    window: BillingWindow = Field(default_factory=BillingWindow)
    templates: SmsTemplateSet = Field(default_factory=SmsTemplateSet)


class SubTenantInput(BaseModel):
    id: str | None = Field(default=None, min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=256)
    lease_details: str = Field(min_length=1, max_length=2000)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        normalized = str(value).strip()
        if not normalized:
            raise ValueError("sub-tenant name cannot be blank")
        return normalized

    @field_validator("lease_details")
    @classmethod
    def _normalize_details(cls, value: str) -> str:
        normalized = str(value).strip()
        if not normalized:
            raise ValueError("lease details cannot be blank")
        return normalized


class TenantCreateRequest(BaseModel):
    name: str = Field(max_length=256)
    address: str = Field(default="", max_length=512)
    phone: str = Field(default="", max_length=64)
    rent_amount: float
    role: TenantRole = "tenant"
    sub_tenants: list[SubTenantInput] = Field(default_factory=list)


class TenantUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=256)
    address: str | None = Field(default=None, max_length=512)
    phone: str | None = Field(default=None, max_length=64)
    rent_amount: float | None = None
    sub_tenants: list[SubTenantInput] | None = None


class TenantMutationResult(BaseModel):
    success: bool
    reason: MutationFailureReason | None = None
    message: str | None = None
    tenant: Tenant | None = None


class TenantListResponse(BaseModel):
    tenants: list[Tenant]


class PaymentRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    paid_at: datetime | None = None


class ManualReminderRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1600)
    sent_at: datetime | None = None

    @field_validator("message")
    @classmethod
    def _normalize_message(cls, value: str) -> str:
        normalized = str(value).strip()
        if not normalized:
            raise ValueError("message cannot be blank")
        return normalized


class TenantStatusResponse(BaseModel):
    tenant_name: str
    status: PaymentStatus
    rent_amount: float
    paid_this_cycle: float
    is_within_pay_window: bool
    can_pay: bool
    window: BillingWindow
    as_of: datetime


class TenantLedgerStats(BaseModel):
    tenant_name: str
    payment_count: int
    total_paid: float
    on_time_count: int
    late_count: int


class LedgerTransaction(BaseModel):
    tenant_name: str
    id: str
    date: datetime
    amount: float
    month: int
    year: int


class LedgerSummaryResponse(BaseModel):
    total_revenue: float
    total_transactions: int
    recent_transactions: list[LedgerTransaction]


class ReminderLogItem(BaseModel):
    tenant_name: str
    date: datetime
    type: ReminderType
    message: str


class ReminderLogResponse(BaseModel):
    items: list[ReminderLogItem]


class CalendarDay(BaseModel):
    day: int
    weekday: int
    in_window: bool
    is_today: bool


class RentCalendarResponse(BaseModel):
    tenant_name: str
    year: int
    month: int
    paid: bool
    overdue: bool
    window: BillingWindow
    days: list[CalendarDay]


class TemplatePreviewResponse(BaseModel):
    tenant_name: str
    kind: TemplateKind
    message: str


class RecomputeRequest(BaseModel):
    now_override: datetime | None = None


class RecomputeRunResponse(BaseModel):
    run_id: str
    run_at: datetime
    trigger: str
    evaluated_count: int
    appended_count: int
    changed: bool
    appended: list[ReminderLogItem] = Field(default_factory=list)


class RecomputeRunListResponse(BaseModel):
    runs: list[RecomputeRunResponse]
