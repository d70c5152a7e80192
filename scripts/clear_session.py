#!/usr/bin/env python3
"""Show or clear the persisted assessment session."""

import asyncio
import sys

from deep_mirror.core.config import settings
from deep_mirror.persistence.backends import SqliteStorageBackend
from deep_mirror.persistence.store import PersistedStore


async def main(argv=None, store=None):
    argv = sys.argv[1:] if argv is None else argv
    if store is None:
        store = PersistedStore(
            SqliteStorageBackend(settings.database_path),
            key=settings.storage_key,
            version=settings.storage_version,
        )

    # Read the row directly: load() hides snapshots from other versions
    if await store.backend.read(store.key) is None:
        print(f"No session stored under {store.key!r}")
        return False

    snapshot = await store.load()
    if snapshot is None:
        print(f"Found a session this version cannot read (expected version {store.version})")
    else:
        print(f"Found session at stage {snapshot.get('stage')} (version {snapshot.get('version')})")

    if "--yes" not in argv:
        confirm = input("Delete it? (yes/no): ")
        if confirm.lower() != "yes":
            print("Cancelled.")
            return False

    await store.clear()
    deleted = await store.backend.read(store.key) is None
    print("Deleted." if deleted else "Session is still present.")
    return deleted


if __name__ == "__main__":
    asyncio.run(main())
