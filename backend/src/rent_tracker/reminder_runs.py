from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Boolean, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .models import RecomputeRunResponse, ReminderLogItem
from .store import InMemoryRentStore

logger = logging.getLogger(__name__)

DEFAULT_RUN_LIST_LIMIT = 50


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class RecomputeRunRecord:
    run_id: str
    run_at: datetime
    trigger: str
    evaluated_count: int
    appended_count: int
    changed: bool
    appended: tuple[ReminderLogItem, ...]
    created_at: datetime

    def to_response(self) -> RecomputeRunResponse:
        return RecomputeRunResponse(
            run_id=self.run_id,
            run_at=self.run_at,
            trigger=self.trigger,
            evaluated_count=self.evaluated_count,
            appended_count=self.appended_count,
            changed=self.changed,
            appended=list(self.appended),
        )


class RecomputeRunRepository(Protocol):
    def reset(self) -> None: ...

    def create_run(
        self,
        *,
        run_at: datetime,
        trigger: str,
        evaluated_count: int,
        changed: bool,
        appended: list[ReminderLogItem],
    ) -> RecomputeRunRecord: ...

    def get_run(self, run_id: str) -> RecomputeRunRecord | None: ...

    def list_runs(self, *, limit: int = DEFAULT_RUN_LIST_LIMIT) -> list[RecomputeRunRecord]: ...


class InMemoryRecomputeRunRepository:
    def __init__(self) -> None:
        self._run_counter = 1
        self._runs: dict[str, RecomputeRunRecord] = {}

    def reset(self) -> None:
        self._run_counter = 1
        self._runs.clear()

    def create_run(
        self,
        *,
        run_at: datetime,
        trigger: str,
        evaluated_count: int,
        changed: bool,
        appended: list[ReminderLogItem],
    ) -> RecomputeRunRecord:
        run_id = f"rrun_{self._run_counter:06d}"
        self._run_counter += 1
        record = RecomputeRunRecord(
            run_id=run_id,
            run_at=run_at,
            trigger=trigger,
            evaluated_count=evaluated_count,
            appended_count=len(appended),
            changed=changed,
            appended=tuple(appended),
            created_at=_now_utc(),
        )
        self._runs[run_id] = record
        return record

    def get_run(self, run_id: str) -> RecomputeRunRecord | None:
        return self._runs.get(run_id)

    def list_runs(self, *, limit: int = DEFAULT_RUN_LIST_LIMIT) -> list[RecomputeRunRecord]:
        ordered = sorted(self._runs.values(), key=lambda value: (value.created_at, value.run_id), reverse=True)
        return ordered[:limit]


class RecomputeRunsBase(DeclarativeBase):
    pass


class _RecomputeRunRow(RecomputeRunsBase):
    __tablename__ = "reminder_recompute_runs"

    run_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    run_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    trigger: Mapped[str] = mapped_column(String(32), nullable=False)
    evaluated_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    appended_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    changed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    appended_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _row_to_record(row: _RecomputeRunRow) -> RecomputeRunRecord:
    return RecomputeRunRecord(
        run_id=row.run_id,
        run_at=_coerce_utc(row.run_at),
        trigger=row.trigger,
        evaluated_count=row.evaluated_count,
        appended_count=row.appended_count,
        changed=row.changed,
        appended=tuple(ReminderLogItem.model_validate(item) for item in json.loads(row.appended_json)),
        created_at=_coerce_utc(row.created_at),
    )


class SqlAlchemyRecomputeRunRepository:
    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise RuntimeError("DATABASE_URL is required for REMINDER_RUN_STORE_BACKEND=postgres")
        self._engine = create_engine(database_url, future=True, pool_pre_ping=True)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        if database_url.startswith("sqlite"):
            RecomputeRunsBase.metadata.create_all(self._engine)

    def _session(self):
        return self._session_factory()

    def reset(self) -> None:
        with self._session() as session:
            with session.begin():
                session.query(_RecomputeRunRow).delete()

    def create_run(
        self,
        *,
        run_at: datetime,
        trigger: str,
        evaluated_count: int,
        changed: bool,
        appended: list[ReminderLogItem],
    ) -> RecomputeRunRecord:
        row = _RecomputeRunRow(
            run_id=f"rrun_{secrets.token_hex(8)}",
            run_at=_coerce_utc(run_at),
            trigger=trigger,
            evaluated_count=evaluated_count,
            appended_count=len(appended),
            changed=changed,
            appended_json=json.dumps(
                [item.model_dump(mode="json") for item in appended],
                sort_keys=True,
                separators=(",", ":"),
            ),
            created_at=_now_utc(),
        )
        with self._session() as session:
            with session.begin():
                session.add(row)
            return _row_to_record(row)

    def get_run(self, run_id: str) -> RecomputeRunRecord | None:
        with self._session() as session:
            row = session.get(_RecomputeRunRow, run_id)
            if row is None:
                return None
            return _row_to_record(row)

    def list_runs(self, *, limit: int = DEFAULT_RUN_LIST_LIMIT) -> list[RecomputeRunRecord]:
        with self._session() as session:
            rows = session.execute(
                select(_RecomputeRunRow)
                .order_by(_RecomputeRunRow.created_at.desc(), _RecomputeRunRow.run_id.desc())
                .limit(limit)
            ).scalars()
            return [_row_to_record(row) for row in rows]


def create_recompute_run_repository(*, backend: str, database_url: str) -> RecomputeRunRepository:
    normalized = backend.strip().lower()
    if normalized == "postgres":
        return SqlAlchemyRecomputeRunRepository(database_url)
    return InMemoryRecomputeRunRepository()


class ReminderRecomputeService:
    """Runs one reminder pass against the store and records it as a run."""

    def __init__(self, *, repository: RecomputeRunRepository, store: InMemoryRentStore) -> None:
        self._repository = repository
        self._store = store

    def run_once(self, *, now: datetime | None = None, trigger: str = "manual") -> RecomputeRunResponse:
        run_at = now.astimezone() if now is not None else datetime.now().astimezone()
        outcome = self._store.recompute(run_at)
        appended = [
            ReminderLogItem(
                tenant_name=self._store.tenant_name_for(item.tenant_id) or item.tenant_id,
                date=item.record.date,
                type=item.record.type,
                message=item.record.message,
            )
            for item in outcome.appended
        ]
        record = self._repository.create_run(
            run_at=run_at,
            trigger=trigger,
            evaluated_count=outcome.evaluated_count,
            changed=outcome.changed,
            appended=appended,
        )
        if outcome.changed:
            logger.info(
                "reminder recompute %s appended %d record(s) across %d tenant(s)",
                record.run_id,
                len(appended),
                outcome.evaluated_count,
            )
        return record.to_response()

    def list_runs(self, *, limit: int = DEFAULT_RUN_LIST_LIMIT) -> list[RecomputeRunResponse]:
        return [record.to_response() for record in self._repository.list_runs(limit=limit)]
