#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging

from db.engine import SessionLocal, init_db
from services.errors import PersistenceError
from services.scheduler import process_due_for_user, run_scheduled_tick


def main() -> int:
    parser = argparse.ArgumentParser(description="Materialize due planned transactions once (for cron)")
    parser.add_argument("--user", default=None, help="Only process this user id; default is every user with active plans")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()

    try:
        if args.user:
            session = SessionLocal()
            try:
                processed = {args.user: process_due_for_user(session, args.user)}
            finally:
                session.close()
        else:
            processed = run_scheduled_tick(SessionLocal)
    except PersistenceError as exc:
        print(f"Processing failed: {exc}")
        return 1

    total = sum(processed.values())
    print(f"Processed {total} planned transaction(s) for {len(processed)} user(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
