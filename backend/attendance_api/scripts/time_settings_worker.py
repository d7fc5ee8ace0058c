from __future__ import annotations

import argparse
import logging
import time

from attendance_api.core.logging import configure_logging
from attendance_api.core.settings import settings
from attendance_api.core.token_store import purge_expired_tokens
from attendance_api.db.session import SessionLocal
from attendance_api.services.time_settings import reconcile_once, time_settings_status


logger = logging.getLogger("attendance.reconcile")


def main() -> None:
    parser = argparse.ArgumentParser(description="Give every user a default time settings row.")
    parser.add_argument("--once", action="store_true", help="Run once and exit.")
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.time_settings_sync_interval_seconds,
        help="Seconds between passes.",
    )
    args = parser.parse_args()

    configure_logging(level=settings.log_level)

    while True:
        created = reconcile_once(SessionLocal)
        purged = purge_expired_tokens(SessionLocal)
        with SessionLocal() as db:
            status = time_settings_status(db)
        logger.info(
            "Reconciliation pass: created=%s missing=%d total=%d purged_tokens=%s",
            created,
            status.missing_count,
            status.total_users,
            purged,
        )
        if args.once:
            break
        time.sleep(args.interval)


if __name__ == "__main__":
    main()
