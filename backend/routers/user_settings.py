import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.dependencies import get_current_user, get_notifier
from backend.models.store import Store
from backend.models.user import User
from backend.schemas.settings import SettingsOut, SettingsUpdate, StoreSyncResult, SyncNowOut
from backend.services.activity_service import ActivityNotifier
from backend.services.health_check import check_store_health

router = APIRouter()
logger = logging.getLogger("cookie_manager")

MIN_SYNC_INTERVAL = 5
MAX_SYNC_INTERVAL = 1440


@router.get("", response_model=SettingsOut)
def get_settings(user: User = Depends(get_current_user)):
    return user


@router.put("", response_model=SettingsOut)
def update_settings(
    update: SettingsUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    interval = update.auto_sync_interval
    if interval is not None and not MIN_SYNC_INTERVAL <= interval <= MAX_SYNC_INTERVAL:
        raise HTTPException(
            status_code=400,
            detail=f"Interval must be between {MIN_SYNC_INTERVAL} and {MAX_SYNC_INTERVAL} minutes",
        )

    for field, value in update.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    notifier.notify(
        user.id,
        "Auto-sync enabled" if user.auto_sync_enabled else "Auto-sync disabled",
        "info",
        details=f"Interval: {user.auto_sync_interval} minutes",
    )
    return user


@router.post("/sync-now", response_model=SyncNowOut)
def sync_now(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    """Health-check every store of the caller and record the sync time."""
    stores = db.query(Store).filter(Store.user_id == user.id).order_by(Store.id).all()
    if not stores:
        raise HTTPException(status_code=400, detail="No stores to sync")

    logger.info(f"Manual sync triggered for user {user.id} ({len(stores)} stores)")
    results = []
    for store in stores:
        check = check_store_health(db, store.id, user.id)
        data = check.data
        results.append(StoreSyncResult(
            store_id=store.id,
            store_name=store.name,
            success=check.success,
            valid_cookies=data.valid_cookies if data else 0,
            expired_cookies=data.expired_cookies if data else 0,
            error=None if check.success else (check.error or check.message),
        ))

    user.last_auto_sync = datetime.utcnow()
    db.commit()
    db.refresh(user)

    synced = sum(1 for r in results if r.success)
    notifier.notify(
        user.id, "Manual sync completed", "success" if synced == len(results) else "warning",
        details=f"{synced} of {len(results)} stores checked",
    )
    return SyncNowOut(
        message=f"Sync completed for {len(stores)} stores",
        synced_stores=len(stores),
        results=results,
        last_sync=user.last_auto_sync,
    )
