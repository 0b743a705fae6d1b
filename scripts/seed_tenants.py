#!/usr/bin/env python3
"""Seed tenants from a JSON file into a running rent tracker backend."""

from __future__ import annotations

import argparse
import json
import sys
import urllib.error
import urllib.request
from pathlib import Path

BASE_URL_DEFAULT = "http://localhost:8000/api/v1/rent"


def post_json(url: str, data: dict, *, admin_key: str) -> dict:
    """POST JSON to a URL and return parsed response."""
    headers = {"Content-Type": "application/json"}
    if admin_key:
        headers["X-Admin-Key"] = admin_key
    req = urllib.request.Request(
        url,
        data=json.dumps(data).encode("utf-8"),
        headers=headers,
        method="POST",
    )
    with urllib.request.urlopen(req) as resp:
        return json.loads(resp.read().decode("utf-8"))


def load_tenants(path: Path) -> list[dict]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("tenants", [])
    if not isinstance(payload, list):
        raise ValueError(f"expected a list of tenants in {path}")
    return payload


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create tenants in the rent tracker from a JSON file.")
    parser.add_argument("tenants_json", type=Path, help="JSON list of tenant objects (name, address, phone, rent_amount)")
    parser.add_argument("--base-url", default=BASE_URL_DEFAULT, help="Rent API base URL")
    parser.add_argument("--admin-key", default="", help="Value for the X-Admin-Key header")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    if not args.tenants_json.is_file():
        print(f"tenants file not found: {args.tenants_json}", file=sys.stderr)
        return 1

    created = 0
    skipped = 0
    for tenant in load_tenants(args.tenants_json):
        try:
            result = post_json(f"{args.base_url}/tenants", tenant, admin_key=args.admin_key)
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else "unknown"
            print(f"  WARN: {tenant.get('name', '?')}: {e.code} {error_body}")
            skipped += 1
            continue
        created += 1
        print(f"  Created {result['tenant']['name']} ({result['tenant']['tenant_id']})")

    print(f"\nCreated: {created}  Skipped: {skipped}")
    return 0 if skipped == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
