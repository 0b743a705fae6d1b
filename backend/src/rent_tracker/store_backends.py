from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, TypeVar

from pydantic import ValidationError
from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .config import Settings
from .models import BillingWindow, RentStoreState, SmsTemplateSet
from .reminder_engine import RecomputeOutcome
from .store import InMemoryRentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RentStoreBase(DeclarativeBase):
    pass


class _RentStoreStateRow(RentStoreBase):
    __tablename__ = "rent_store_state"

    store_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SqlAlchemyRentStore(InMemoryRentStore):
    """In-memory store backed by one JSON state row.

    Every mutation reloads the row under a row lock, applies the change and
    writes the result back in the same transaction, so stores in separate
    processes sharing one database never overwrite each other's writes.
    Reads refresh from the row first.
    """

    _STORE_KEY = "default"
    _PERSISTING_METHODS = (
        "reset",
        "set_window",
        "set_templates",
        "create_tenant",
        "update_tenant",
        "delete_tenant",
        "record_payment",
        "send_manual",
        "apply_reminder_history",
    )
    _REFRESHING_METHODS = (
        "snapshot",
        "get_window",
        "get_templates",
        "list_tenants",
        "get_tenant",
        "payments_for",
        "payment_history",
        "reminders_for",
        "reminder_history",
        "tenant_name_for",
    )

    def __init__(
        self,
        database_url: str,
        *,
        default_window: BillingWindow | None = None,
        default_templates: SmsTemplateSet | None = None,
    ) -> None:
        if not database_url:
            raise RuntimeError("DATABASE_URL is required for RENT_STORE_BACKEND=postgres")
        super().__init__(default_window=default_window, default_templates=default_templates)
        self._persist_lock = RLock()
        self._engine = create_engine(database_url, future=True, pool_pre_ping=True)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        if database_url.startswith("sqlite"):
            RentStoreBase.metadata.create_all(self._engine)
        self._refresh()

    def _session(self):
        return self._session_factory()

    def _refresh(self) -> None:
        with self._persist_lock:
            with self._session() as session:
                row = session.get(_RentStoreStateRow, self._STORE_KEY)
                payload = row.payload_json if row is not None else None
            if payload is not None:
                self.load_state(RentStoreState.model_validate_json(payload))

    def _read_modify_write(self, apply: Callable[[], tuple[T, bool]]) -> T:
        with self._persist_lock:
            try:
                with self._session() as session:
                    with session.begin():
                        row = session.get(_RentStoreStateRow, self._STORE_KEY, with_for_update=True)
                        if row is not None:
                            self.load_state(RentStoreState.model_validate_json(row.payload_json))
                        result, changed = apply()
                        if changed:
                            payload = self.export_state().model_dump_json()
                            now = _now_utc()
                            if row is None:
                                session.add(
                                    _RentStoreStateRow(
                                        store_key=self._STORE_KEY,
                                        payload_json=payload,
                                        updated_at=now,
                                    )
                                )
                            else:
                                row.payload_json = payload
                                row.updated_at = now
            except SQLAlchemyError:
                logger.exception("failed to persist rent store state")
                raise
            return result

    def recompute(self, now: datetime | None = None) -> RecomputeOutcome:
        def _apply() -> tuple[RecomputeOutcome, bool]:
            outcome = InMemoryRentStore.recompute(self, now)
            return outcome, outcome.changed

        return self._read_modify_write(_apply)


def _make_persisting_method(method_name: str) -> Callable:
    base_method = getattr(InMemoryRentStore, method_name)

    def _wrapped(self: SqlAlchemyRentStore, *args, **kwargs):
        return self._read_modify_write(lambda: (base_method(self, *args, **kwargs), True))

    _wrapped.__name__ = method_name
    return _wrapped


def _make_refreshing_method(method_name: str) -> Callable:
    base_method = getattr(InMemoryRentStore, method_name)

    def _wrapped(self: SqlAlchemyRentStore, *args, **kwargs):
        with self._persist_lock:
            self._refresh()
            return base_method(self, *args, **kwargs)

    _wrapped.__name__ = method_name
    return _wrapped


for _method_name in SqlAlchemyRentStore._PERSISTING_METHODS:
    setattr(SqlAlchemyRentStore, _method_name, _make_persisting_method(_method_name))

for _method_name in SqlAlchemyRentStore._REFRESHING_METHODS:
    setattr(SqlAlchemyRentStore, _method_name, _make_refreshing_method(_method_name))


def create_rent_store(
    *,
    backend: str,
    database_url: str,
    default_window: BillingWindow | None = None,
) -> InMemoryRentStore:
    normalized = backend.strip().lower()
    if normalized == "postgres":
        logger.info("using SQL rent store backend")
        return SqlAlchemyRentStore(database_url, default_window=default_window)
    if normalized == "inmemory":
        return InMemoryRentStore(default_window=default_window)
    raise RuntimeError(f"unsupported RENT_STORE_BACKEND: {backend}")


def default_window_from_settings(settings: Settings) -> BillingWindow:
    try:
        return BillingWindow(
            start_day=settings.default_window_start_day,
            end_day=settings.default_window_end_day,
        )
    except ValidationError:
        logger.warning(
            "ignoring invalid default billing window %s-%s",
            settings.default_window_start_day,
            settings.default_window_end_day,
        )
        return BillingWindow()
