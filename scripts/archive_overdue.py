"""
Daily sweep: archive cards that have been overdue for too long.

Meant to run once a day from an external scheduler (cron, Cloud Scheduler).
Each run only touches cards that are still active, so re-running is harmless.

Usage:
    # Sweep every user with active cards
    python -m scripts.archive_overdue

    # Sweep specific users
    python -m scripts.archive_overdue --user-id alice --user-id bob

    # Also refresh the cached is_due flags
    python -m scripts.archive_overdue --refresh-due-flags

    # Show what would be archived without writing
    python -m scripts.archive_overdue --dry-run

Requires MONGO_URI (and optionally TEST_MODE) in the environment.
"""

from __future__ import annotations

import argparse
import logging

from pymongo.errors import PyMongoError

from mistake_srs import SrsError, build_engine, init_db
from mistake_srs.engine import SrsEngine

logger = logging.getLogger(__name__)


def sweep(engine: SrsEngine, user_ids: list[str], refresh_due_flags: bool = False, dry_run: bool = False) -> dict:
    """
    Archive (or count, for a dry run) stale cards per user.

    A user whose sweep fails is logged and skipped; the next scheduled run
    picks their cards up.
    """
    today = engine.clock.today()
    cutoff = engine.archiver.overdue_cutoff(today)

    totals = {"users": 0, "archived": 0, "flags_refreshed": 0, "failed": 0}
    for user_id in user_ids:
        try:
            if dry_run:
                archived = len(engine.cards.query_overdue_before(user_id, cutoff, 0))
            else:
                archived = engine.archive_overdue_cards(user_id, today)

            refreshed = 0
            if refresh_due_flags and not dry_run:
                refreshed = engine.refresh_due_flags(user_id, today)
        except (PyMongoError, SrsError) as exc:
            totals["failed"] += 1
            logger.error("Sweep failed for %s: %s", user_id, exc)
            print(f"  {user_id}: FAILED ({exc})")
            continue

        totals["users"] += 1
        totals["archived"] += archived
        totals["flags_refreshed"] += refreshed
        print(f"  {user_id}: {archived} archived, {refreshed} due flags refreshed")

    return totals


def main():
    parser = argparse.ArgumentParser(
        description="Archive SRS cards that have been overdue past the retention window"
    )
    parser.add_argument(
        "--user-id",
        action="append",
        dest="user_ids",
        help="User to sweep (repeatable; default: every user with active cards)"
    )
    parser.add_argument(
        "--refresh-due-flags",
        action="store_true",
        help="Also recompute the cached is_due flag of active cards"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only count the cards that would be archived"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    engine = build_engine()
    init_db(engine.store.db)

    user_ids = args.user_ids or engine.cards.user_ids_with_active_cards()

    print("=" * 60)
    print(f"Overdue sweep for {engine.clock.today()} ({engine.config.database_name})")
    print("=" * 60)

    totals = sweep(engine, user_ids, refresh_due_flags=args.refresh_due_flags, dry_run=args.dry_run)

    print("-" * 60)
    print(f"Users swept:          {totals['users']}")
    print(f"Cards archived:       {totals['archived']}")
    print(f"Due flags refreshed:  {totals['flags_refreshed']}")
    print(f"Users failed:         {totals['failed']}")
    if args.dry_run:
        print("\n⚠ DRY RUN MODE - No changes were made to MongoDB")


if __name__ == "__main__":
    main()
