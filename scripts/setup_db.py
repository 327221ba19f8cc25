from __future__ import annotations

"""setup_db.py — Create the byobucket tables.

Run once against a fresh database (or use `alembic upgrade head`):
    python scripts/setup_db.py

Creates:
  - accounts         (AWS credentials per Heroku owner, secret Fernet-encrypted)
  - addon_resources  (bucket + IAM user per add-on instance)
"""

import asyncio
import sys
from pathlib import Path

# Allow running from project root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncpg

from byobucket.config import settings

# Convert asyncpg URL to plain postgres URL for asyncpg.connect()
_DB_URL = settings.database_url.replace("postgresql+asyncpg://", "postgresql://")

_CREATE_ACCOUNTS_TABLE = """
CREATE TABLE IF NOT EXISTS accounts (
    owner_id                     TEXT PRIMARY KEY,
    aws_access_key_id            TEXT NOT NULL,
    aws_secret_access_key_token  BYTEA NOT NULL,
    created_at                   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_CREATE_ADDON_RESOURCES_TABLE = """
CREATE TABLE IF NOT EXISTS addon_resources (
    provider_resource_id  TEXT PRIMARY KEY,
    owner_id              TEXT NOT NULL,
    heroku_resource_id    TEXT NOT NULL,
    aws_access_key_id     TEXT NOT NULL,
    mark_for_deletion     BOOLEAN NOT NULL DEFAULT FALSE,
    deleted_at            TIMESTAMPTZ,
    created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_addon_resources_owner_id ON addon_resources (owner_id);
"""


async def main() -> None:
    print(f"Connecting to {_DB_URL!r} …")
    conn = await asyncpg.connect(_DB_URL)
    try:
        print("Creating accounts table …")
        await conn.execute(_CREATE_ACCOUNTS_TABLE)

        print("Creating addon_resources table …")
        await conn.execute(_CREATE_ADDON_RESOURCES_TABLE)

        print("✓ Database setup complete.")
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())
