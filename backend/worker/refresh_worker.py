"""
Background auto-refresh of store cookies.

Every REFRESH_INTERVAL_MINUTES the scheduler logs into every active store
with saved credentials and replaces its cookies. Playwright is synchronous,
so each batch runs in a worker thread via asyncio.to_thread() to keep the
FastAPI event loop free.

Key design:
- One batch at a time: RefreshState is the reentrancy guard, shared by the
  timer loop and manual "run now" jobs.
- Stores are processed sequentially, each with its own DB session.
- One store failing never stops the batch.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from backend.automation.driver import CookieLoginDriver
from backend.config import settings
from backend.database import SessionLocal
from backend.errors import CookieManagerError
from backend.models.store import Store
from backend.services import vault
from backend.services.activity_service import ActivityNotifier, notifier as default_notifier
from backend.services.cookie_sync import CycleOutcome, run_cookie_cycle
from backend.worker.task_queue import WorkerTask, TaskType, task_registry

logger = logging.getLogger("cookie_manager")


class RefreshState:
    """Reentrancy guard and schedule for the refresh loop."""

    def __init__(self):
        self._lock = threading.Lock()
        self._refreshing = False
        self.next_refresh_at: Optional[datetime] = None

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def try_begin_cycle(self) -> bool:
        """Claim the guard. Returns False if a batch is already running."""
        with self._lock:
            if self._refreshing:
                return False
            self._refreshing = True
            return True

    def end_cycle(self, interval: timedelta, now: Optional[datetime] = None):
        """Release the guard and schedule the next batch."""
        with self._lock:
            self._refreshing = False
            self.next_refresh_at = (now or datetime.utcnow()) + interval

    def schedule(self, interval: timedelta, now: Optional[datetime] = None):
        with self._lock:
            self.next_refresh_at = (now or datetime.utcnow()) + interval

    def seconds_until_next(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.next_refresh_at is None:
            return None
        return (self.next_refresh_at - (now or datetime.utcnow())).total_seconds()

    def time_remaining(self, now: Optional[datetime] = None) -> str:
        remaining = self.seconds_until_next(now)
        if remaining is None:
            return "Not scheduled yet"
        if remaining <= 0:
            return "Refreshing now..."

        total = int(remaining)
        hours, rest = divmod(total, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours > 0:
            return f"{hours}h {minutes}m"
        if minutes > 0:
            return f"{minutes}m {seconds}s"
        return f"{seconds}s"


@dataclass
class BatchSummary:
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: list[CycleOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "total": self.total,
            "error": self.error,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def scope_summary(data: Optional[dict], store_ids: set) -> Optional[dict]:
    """A batch summary dict reduced to the outcomes of the given stores."""
    if data is None:
        return None
    outcomes = [o for o in data.get("outcomes", []) if o["store_id"] in store_ids]
    succeeded = sum(1 for o in outcomes if o["success"])
    return {
        **data,
        "succeeded": succeeded,
        "failed": len(outcomes) - succeeded,
        "total": len(outcomes),
        "outcomes": outcomes,
    }


def eligible_stores(db: Session) -> list[Store]:
    """Active stores that have both credential fields saved."""
    return (
        db.query(Store)
        .filter(
            Store.status == "active",
            Store.encrypted_email.isnot(None),
            Store.encrypted_email != "",
            Store.encrypted_password.isnot(None),
            Store.encrypted_password != "",
        )
        .order_by(Store.id)
        .all()
    )


class RefreshScheduler:
    """Timer-driven loop that refreshes cookies for all eligible stores."""

    def __init__(
        self,
        driver_factory: Callable[[], CookieLoginDriver] = CookieLoginDriver,
        session_factory=SessionLocal,
        notifier: Optional[ActivityNotifier] = None,
        interval_minutes: Optional[int] = None,
        state: Optional[RefreshState] = None,
    ):
        self.driver_factory = driver_factory
        self.session_factory = session_factory
        self.notifier = notifier or default_notifier
        self.interval = timedelta(minutes=interval_minutes or settings.refresh_interval_minutes)
        self.state = state or RefreshState()
        self.last_summary: Optional[BatchSummary] = None
        self._running = False
        self._loop_task = None
        self._jobs: set = set()

    @property
    def status(self) -> str:
        if not self._running:
            return "stopped"
        return "refreshing" if self.state.is_refreshing else "idle"

    async def start(self):
        """Start the timer loop."""
        if not settings.auto_refresh_enabled:
            logger.info("Auto-refresh disabled (AUTO_REFRESH_ENABLED=false).")
            return
        self.state.schedule(self.interval)
        self._running = True
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info(
            f"Auto-refresh scheduler started: every {int(self.interval.total_seconds() // 60)} "
            f"minutes, next run in {self.state.time_remaining()}."
        )

    async def stop(self):
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        logger.info("Auto-refresh scheduler stopped.")

    async def _run_loop(self):
        countdown_every = settings.refresh_countdown_log_minutes * 60
        while self._running:
            remaining = self.state.seconds_until_next()
            if remaining is None or remaining > 0:
                try:
                    await asyncio.sleep(min(remaining or countdown_every, countdown_every))
                except asyncio.CancelledError:
                    break
                if (self.state.seconds_until_next() or 0) > 0:
                    logger.info(f"Next cookie refresh in: {self.state.time_remaining()}")
                continue

            summary = await asyncio.to_thread(self.refresh_all_stores)
            if summary is None:
                # Another batch holds the guard; it reschedules when it ends
                await asyncio.sleep(min(60, self.interval.total_seconds()))
            task_registry.prune()

    async def trigger_now(self) -> WorkerTask:
        """Run a batch immediately in the background. Returns the tracking task."""
        task_registry.prune()
        task = WorkerTask(task_type=TaskType.REFRESH_ALL)
        task_registry.register(task)
        if self.state.is_refreshing:
            task.skip("Refresh already in progress")
            return task
        job = asyncio.create_task(asyncio.to_thread(self.refresh_all_stores, task))
        self._jobs.add(job)
        job.add_done_callback(self._jobs.discard)
        logger.info(f"Task {task.task_id} ({task.task_type.value}) started.")
        return task

    # --- Batch (runs in a worker thread) ---

    def refresh_all_stores(self, task: Optional[WorkerTask] = None) -> Optional[BatchSummary]:
        """
        Refresh every eligible store once. Returns None if a batch was
        already running.
        """
        if not self.state.try_begin_cycle():
            logger.warning("Refresh already in progress, skipping...")
            if task:
                task.skip("Refresh already in progress")
            return None

        summary = BatchSummary(started_at=datetime.utcnow())
        logger.info("AUTO-REFRESH: Starting cookie refresh for all stores...")

        try:
            db = self.session_factory()
            try:
                store_ids = [s.id for s in eligible_stores(db)]
            finally:
                db.close()

            if not store_ids:
                logger.warning("No active stores with saved credentials found.")
            else:
                logger.info(f"Found {len(store_ids)} active store(s) with credentials")
            if task:
                task.start(total=len(store_ids))

            driver = self.driver_factory()
            for store_id in store_ids:
                summary.outcomes.append(self._refresh_store(store_id, driver))
                if task:
                    task.advance()

        except Exception as e:
            summary.error = str(e)
            logger.exception(f"AUTO-REFRESH ERROR: {e}")
        finally:
            summary.finished_at = datetime.utcnow()
            self.last_summary = summary
            self.state.end_cycle(self.interval)
            logger.info(
                f"AUTO-REFRESH SUMMARY: {summary.succeeded} succeeded, "
                f"{summary.failed} failed, {summary.total} total. "
                f"Next refresh in {self.state.time_remaining()}."
            )

        if task:
            task.finish(result=summary.to_dict(), error=summary.error)
        return summary

    def _refresh_store(self, store_id: int, driver: CookieLoginDriver) -> CycleOutcome:
        db = self.session_factory()
        store_name, user_id = f"store {store_id}", None
        try:
            store = db.get(Store, store_id)
            if store is None:
                return CycleOutcome(store_id, store_name, False, error="Store no longer exists")
            store_name, user_id = store.name, store.user_id

            logger.info(f"[{store_name}] Starting refresh...")
            email, password = vault.decrypt_credentials(store)
            return run_cookie_cycle(
                db, store, email, password, driver,
                notifier=self.notifier, trigger="refresh",
            )

        except Exception as e:
            if isinstance(e, CookieManagerError):
                logger.error(f"[{store_name}] Refresh error: {e}")
            else:
                logger.exception(f"[{store_name}] Unexpected refresh error: {e}")
            if user_id is not None:
                self.notifier.notify(
                    user_id, "Cookies refresh error", "error", store_name, store_id, details=str(e)
                )
            return CycleOutcome(store_id, store_name, False, error=str(e))
        finally:
            db.close()


# Global scheduler instance
scheduler = RefreshScheduler()
