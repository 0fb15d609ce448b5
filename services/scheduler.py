from __future__ import annotations

from datetime import datetime
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import select

from db import models
from services.app_state import load_app_state
from services.finance_workspace import process_due_planned_transactions
from services.repositories import Store

logger = logging.getLogger(__name__)

TICK_JOB_ID = "planned_transaction_tick"
TICK_INTERVAL_MINUTES = 60


def users_with_active_plans(session) -> list[str]:
    return list(
        session.scalars(
            select(models.PlannedTransaction.user_id)
            .where(models.PlannedTransaction.is_active == True)  # noqa: E712
            .distinct()
        ).all()
    )


def process_due_for_user(session, user_id: str, now: datetime | None = None) -> int:
    store = Store(session)
    state = load_app_state(store, user_id)
    created = process_due_planned_transactions(store, state, now)
    if created:
        logger.info("Materialized %d planned transaction(s) for %s", len(created), user_id)
    return len(created)


def run_scheduled_tick(session_factory, now: datetime | None = None) -> dict[str, int]:
    session = session_factory()
    try:
        processed = {}
        for user_id in users_with_active_plans(session):
            processed[user_id] = process_due_for_user(session, user_id, now)
        return processed
    except Exception:
        logger.exception("Planned transaction tick failed")
        raise
    finally:
        session.close()


def build_scheduler(session_factory) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_scheduled_tick,
        "interval",
        minutes=TICK_INTERVAL_MINUTES,
        id=TICK_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
        args=[session_factory],
    )
    return scheduler


def start_local_scheduler(session_factory) -> BackgroundScheduler:
    scheduler = build_scheduler(session_factory)
    scheduler.start()
    logger.info("Planned transaction scheduler started (every %d min)", TICK_INTERVAL_MINUTES)
    return scheduler
