"""
Persistence of a store's captured cookie set.

replace_cookies() swaps the whole set for a store in one transaction: the
old rows are deleted and the new ones inserted before a single commit, so a
crash in between leaves the previous set in place instead of an empty store.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.automation.cookies import CookieRecord, dedupe_cookies
from backend.errors import PersistenceError
from backend.models.cookie import Cookie
from backend.models.store import Store

logger = logging.getLogger("cookie_manager")

_locks_guard = threading.Lock()
_store_locks: dict[int, threading.Lock] = {}


def store_lock(store_id: int) -> threading.Lock:
    """Per-store lock: one login/replace cycle per store at a time."""
    with _locks_guard:
        lock = _store_locks.get(store_id)
        if lock is None:
            lock = _store_locks[store_id] = threading.Lock()
        return lock


@contextmanager
def locked_store(store_id: int):
    lock = store_lock(store_id)
    if not lock.acquire(blocking=False):
        logger.info(f"Store {store_id} is busy, waiting for the running cycle to finish...")
        lock.acquire()
    try:
        yield
    finally:
        lock.release()


def _to_row(record: CookieRecord, store_id: int, user_id: int, default_domain: Optional[str]) -> Cookie:
    return Cookie(
        store_id=store_id,
        user_id=user_id,
        name=record.name,
        value=record.value,
        domain=record.domain or default_domain or "",
        path=record.path or "/",
        expiration_date=record.expiration_date,
        http_only=record.http_only,
        secure=record.secure,
        same_site=record.same_site or "Lax",
        is_valid=None,
        health_status="unknown",
    )


def replace_cookies(
    db: Session,
    store_id: int,
    user_id: int,
    cookies: Iterable[CookieRecord],
    default_domain: Optional[str] = None,
) -> list[Cookie]:
    """Delete every cookie of (store, user) and insert the given set."""
    records = dedupe_cookies(cookies)
    try:
        deleted = (
            db.query(Cookie)
            .filter(Cookie.store_id == store_id, Cookie.user_id == user_id)
            .delete(synchronize_session=False)
        )
        rows = [_to_row(r, store_id, user_id, default_domain) for r in records]
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to replace cookies for store {store_id}: {e}") from e

    logger.info(f"Store {store_id}: replaced {deleted} old cookies with {len(rows)} new ones.")
    return rows


def touch_store(db: Session, store: Store) -> Store:
    """Mark a store as freshly synced."""
    try:
        store.last_cookie_update = datetime.utcnow()
        store.status = "active"
        db.commit()
        db.refresh(store)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to update store {store.id}: {e}") from e
    return store
