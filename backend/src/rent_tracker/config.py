from __future__ import annotations

import os
from dataclasses import dataclass


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _as_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _normalize_mode(value: str | None, *, default: str, allowed: set[str]) -> str:
    if value is None:
        return default
    normalized = value.strip().lower()
    return normalized if normalized in allowed else default


def _is_placeholder(value: str, *, defaults: set[str]) -> bool:
    normalized = value.strip()
    if not normalized:
        return True
    if normalized in defaults:
        return True
    lower = normalized.lower()
    return lower in {"change-me", "replace-me", "placeholder", "changeme"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "Rent Tracker"
    api_prefix: str = "/api/v1"
    rent_store_backend: str = "inmemory"
    reminder_run_store_backend: str = "inmemory"
    database_url: str = ""
    default_window_start_day: int = 1
    default_window_end_day: int = 5
    recompute_on_change: bool = True
    recent_transactions_limit: int = 10
    admin_api_key: str = ""
    runtime_secret_guard_mode: str = "warn"

    @property
    def admin_auth_enabled(self) -> bool:
        return bool(self.admin_api_key.strip())


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("RENT_APP_NAME", "Rent Tracker"),
        api_prefix=os.getenv("RENT_API_PREFIX", "/api/v1"),
        rent_store_backend=os.getenv("RENT_STORE_BACKEND", "inmemory"),
        reminder_run_store_backend=os.getenv("REMINDER_RUN_STORE_BACKEND", "inmemory"),
        database_url=os.getenv("DATABASE_URL", ""),
        default_window_start_day=_as_int(os.getenv("DEFAULT_WINDOW_START_DAY"), 1),
        default_window_end_day=_as_int(os.getenv("DEFAULT_WINDOW_END_DAY"), 5),
        recompute_on_change=_as_bool(os.getenv("RECOMPUTE_ON_CHANGE"), True),
        recent_transactions_limit=_as_int(os.getenv("RECENT_TRANSACTIONS_LIMIT"), 10),
        admin_api_key=os.getenv("ADMIN_API_KEY", ""),
        runtime_secret_guard_mode=_normalize_mode(
            os.getenv("RUNTIME_SECRET_GUARD_MODE"),
            default="warn",
            allowed={"off", "warn", "enforce"},
        ),
    )


def runtime_secret_issues(settings: Settings) -> tuple[str, ...]:
    issues: list[str] = []
    if _is_placeholder(settings.admin_api_key, defaults={"dev-admin-key", "admin"}):
        issues.append("ADMIN_API_KEY is empty or uses a placeholder value; admin endpoints are unauthenticated")
    uses_sql = "postgres" in {
        settings.rent_store_backend.strip().lower(),
        settings.reminder_run_store_backend.strip().lower(),
    }
    if uses_sql and not settings.database_url.strip():
        issues.append("DATABASE_URL is required when RENT_STORE_BACKEND or REMINDER_RUN_STORE_BACKEND is postgres")
    if not (1 <= settings.default_window_start_day <= settings.default_window_end_day <= 31):
        issues.append(
            "DEFAULT_WINDOW_START_DAY and DEFAULT_WINDOW_END_DAY must satisfy 1 <= start <= end <= 31"
        )
    return tuple(issues)
