#!/usr/bin/env python3
"""
Replay queued offline changes and run cache housekeeping.

Usage:
    python sync_data.py              # Probe connectivity, replay pending changes
    python sync_data.py --stats      # Show cache and offline store stats
    python sync_data.py --purge      # Delete expired shared cache entries
    python sync_data.py --conflicts  # List changes parked as conflicts
"""

import asyncio
import sys
from pathlib import Path

# Add project to path
sys.path.insert(0, str(Path(__file__).parent))

from app.container import container
from settings import SYNC_BATCH_SIZE
from settings.logging import setup_logging

logger = setup_logging(level="INFO", to_file=True)


def show_stats() -> None:
    """Print shared cache and offline store counts."""
    cache = container.shared_cache.stats()
    offline = asyncio.run(container.offline_sync.snapshot_stats())

    print("\n" + "=" * 60)
    print("CACHE REPORT")
    print("=" * 60)
    print(f"  Shared cache live entries:    {cache['live']:,}")
    print(f"  Shared cache expired entries: {cache['expired']:,}")
    print(f"  Offline records:              {offline['records']:,} ({offline['users']} users)")
    print(f"  Pending offline changes:      {offline['pending_mutations']:,}")
    print("=" * 60 + "\n")


def show_conflicts() -> None:
    conflicts = asyncio.run(container.offline_sync.conflicts())
    if not conflicts:
        print("\nNo conflicts.\n")
        return
    for c in conflicts:
        print(f"{c.mutation_id}  record={c.record_id}  detected={c.detected_at:%Y-%m-%d %H:%M}")
        print(f"    local:  {c.local_patch}")
        print(f"    remote: updated {c.remote_row.get('updated_at')} by {c.remote_row.get('updated_by')}")


async def replay() -> None:
    """Check connectivity, then drain the pending queue batch by batch."""
    if not await container.connectivity.check():
        logger.warning("Offline, nothing replayed")
        return

    while True:
        report = await container.offline_sync.process_queue(SYNC_BATCH_SIZE)
        if report.processed == 0:
            break
    logger.info("Queue drained")


def main():
    args = sys.argv[1:]
    container.init()

    if "--stats" in args:
        show_stats()
        return

    if "--purge" in args:
        removed = container.shared_cache.purge_expired()
        logger.info("Purged {} expired cache entries", removed)
        return

    if "--conflicts" in args:
        show_conflicts()
        return

    if args:
        print(__doc__)
        sys.exit(1)

    asyncio.run(replay())


if __name__ == "__main__":
    main()
