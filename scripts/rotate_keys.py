from __future__ import annotations

"""rotate_keys.py — Re-encrypt every stored AWS secret under the first FERNET_KEYS key.

    FERNET_KEYS=<new>,<old> python scripts/rotate_keys.py

Afterwards the old key can be removed from FERNET_KEYS.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from byobucket.config import settings
from byobucket.core.crypto import SecretCipher
from byobucket.db.session import build_engine, build_sessionmaker
from byobucket.store.credential_store import CredentialStore


async def main() -> None:
    engine = build_engine(settings.database_url)
    try:
        store = CredentialStore(build_sessionmaker(engine), SecretCipher(settings.fernet_keys))
        rotated = await store.rotate_secrets()
        print(f"✓ Re-encrypted {rotated} account secrets.")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
