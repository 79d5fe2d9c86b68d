#!/usr/bin/env python3
"""
Issue an API key carrying the "admin" scope.

Keys from POST /auth/signup and POST /auth/keys only carry "user", so the
first admin key has to come from outside the API. The key is written to
the store configured in .env (STORE_BACKEND, DATABASE_URL).

Usage:
    uv run python scripts/issue_admin_key.py ops-team --name "ops laptop"

The raw key is printed once; only its hash is stored.
"""

import argparse
import asyncio

from jurifly.config import settings
from jurifly.db.engine import create_all_tables
from jurifly.services.auth import issue_api_key
from jurifly.services.store import get_store


async def main(uid: str, name: str, rate_limit_rpm: int | None) -> None:
    if settings.store_backend == "sql":
        await create_all_tables()

    raw_key, record = await issue_api_key(
        get_store(), uid, name,
        scopes=["admin", "user"],
        rate_limit_rpm=rate_limit_rpm,
    )
    print(f"Issued key {record.key_prefix}... (id {record.id}) for uid={uid}")
    print(f"  {raw_key}")
    print("Store this key securely. It cannot be shown again.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("uid", help="Profile id the key authenticates as")
    parser.add_argument("--name", default="admin", help="Label for the key")
    parser.add_argument("--rate-limit", type=int, default=None, dest="rate_limit_rpm")
    args = parser.parse_args()
    asyncio.run(main(args.uid, args.name, args.rate_limit_rpm))
