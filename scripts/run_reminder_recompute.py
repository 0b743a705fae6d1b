#!/usr/bin/env python3
"""Run one reminder recompute pass against the configured store (cron entry point)."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
BACKEND_SRC = ROOT_DIR / "backend" / "src"
if str(BACKEND_SRC) not in sys.path:
    sys.path.insert(0, str(BACKEND_SRC))

from rent_tracker.config import get_settings
from rent_tracker.reminder_runs import ReminderRecomputeService, create_recompute_run_repository
from rent_tracker.store_backends import create_rent_store, default_window_from_settings


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Append any due reminder or late notices and record the run.")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="ISO timestamp to evaluate at instead of the host clock",
    )
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    settings = get_settings()
    store = create_rent_store(
        backend=settings.rent_store_backend,
        database_url=settings.database_url,
        default_window=default_window_from_settings(settings),
    )
    service = ReminderRecomputeService(
        repository=create_recompute_run_repository(
            backend=settings.reminder_run_store_backend,
            database_url=settings.database_url,
        ),
        store=store,
    )
    run = service.run_once(now=args.now, trigger="cron")
    print(f"{run.run_id}: evaluated={run.evaluated_count} appended={run.appended_count}")
    for item in run.appended:
        print(f"  {item.type:<8} {item.tenant_name}: {item.message}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
