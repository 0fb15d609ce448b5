from __future__ import annotations

from dataclasses import dataclass
import logging

from db.engine import SessionLocal, init_db
from services.app_state import AppState, load_app_state
from services.repositories import Store
from services.scheduler import start_local_scheduler

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Composition root handed to the presentation layer."""

    session: object
    store: Store
    state: AppState
    scheduler: object | None = None

    def close(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.session.close()


def open_workspace(user_id: str, session_factory=SessionLocal, with_scheduler: bool = False) -> Workspace:
    init_db()
    session = session_factory()
    store = Store(session)
    state = load_app_state(store, user_id)
    scheduler = start_local_scheduler(session_factory) if with_scheduler else None
    logger.info("Workspace ready for %s (scheduler: %s)", user_id, bool(scheduler))
    return Workspace(session=session, store=store, state=state, scheduler=scheduler)
