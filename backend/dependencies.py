from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from backend.automation.driver import CookieLoginDriver
from backend.database import get_db
from backend.models.store import Store
from backend.models.user import User
from backend.services.activity_service import ActivityNotifier, notifier


def get_current_user(
    x_user_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the calling user. Authentication itself happens upstream
    (gateway/proxy), which forwards the user id in X-User-Id.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    user = db.get(User, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def get_driver() -> CookieLoginDriver:
    return CookieLoginDriver()


def get_notifier() -> ActivityNotifier:
    return notifier


def get_user_store(db: Session, store_id: int, user: User) -> Store:
    store = (
        db.query(Store)
        .filter(Store.id == store_id, Store.user_id == user.id)
        .first()
    )
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return store
