import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.automation.driver import CookieLoginDriver
from backend.database import get_db
from backend.dependencies import get_current_user, get_driver, get_notifier, get_user_store
from backend.errors import ConfigurationError, DecryptionError, PersistenceError
from backend.models.store import Store
from backend.models.user import User
from backend.schemas.store import (
    StoreCreate,
    StoreUpdate,
    StoreOut,
    CredentialsOut,
    GenerateRequest,
    GenerateOut,
)
from backend.services import vault
from backend.services.activity_service import ActivityNotifier
from backend.services.cookie_sync import run_cookie_cycle

router = APIRouter()
logger = logging.getLogger("cookie_manager")


@router.get("", response_model=list[StoreOut])
def list_stores(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return (
        db.query(Store)
        .filter(Store.user_id == user.id)
        .order_by(Store.created_at.desc(), Store.id.desc())
        .all()
    )


@router.post("", response_model=StoreOut, status_code=201)
def create_store(
    payload: StoreCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    store = Store(user_id=user.id, **payload.model_dump())
    db.add(store)
    db.commit()
    db.refresh(store)
    logger.info(f"Store created: {store.name}")
    notifier.notify(user.id, "New store added", "success", store.name, store.id)
    return store


@router.get("/{store_id}", response_model=StoreOut)
def get_store(store_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return get_user_store(db, store_id, user)


@router.put("/{store_id}", response_model=StoreOut)
def update_store(
    store_id: int,
    update: StoreUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    store = get_user_store(db, store_id, user)
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(store, field, value)
    db.commit()
    db.refresh(store)
    notifier.notify(user.id, "Store updated", "info", store.name, store.id)
    return store


@router.delete("/{store_id}")
def delete_store(
    store_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    store = get_user_store(db, store_id, user)
    name = store.name
    db.delete(store)  # cookies cascade
    db.commit()
    logger.info(f"Store and all cookies deleted: {name}")
    notifier.notify(user.id, "Store deleted", "warning", name, store_id)
    return {"success": True, "message": "Store deleted successfully"}


@router.get("/{store_id}/has-credentials", response_model=CredentialsOut)
def has_credentials(store_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    store = get_user_store(db, store_id, user)
    if not store.has_credentials:
        return CredentialsOut(has_credentials=False)
    try:
        email = vault.decrypt(store.encrypted_email)
    except DecryptionError as e:
        logger.error(f"Failed to decrypt email for store {store_id}: {e}")
        email = None
    return CredentialsOut(has_credentials=True, email=email)


def _run_cycle(db, store, email, password, driver, notifier, trigger, save_credentials=False) -> GenerateOut:
    try:
        outcome = run_cookie_cycle(
            db, store, email, password, driver,
            notifier=notifier, trigger=trigger, save_credentials=save_credentials,
        )
    except PersistenceError as e:
        logger.error(f"Cookie {trigger} for store {store.id} failed to persist: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to {trigger} cookies: {e}")
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if not outcome.success:
        raise HTTPException(status_code=400, detail=outcome.error)

    db.refresh(store)
    return GenerateOut(
        success=True,
        message=f"Cookies {'generated' if trigger == 'generate' else 'synced'} successfully",
        cookie_count=outcome.cookie_count,
        attempts=outcome.attempts,
        store=StoreOut.model_validate(store),
    )


@router.post("/{store_id}/generate", response_model=GenerateOut)
def generate_cookies(
    store_id: int,
    req: GenerateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    driver: CookieLoginDriver = Depends(get_driver),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    """
    Log in with the supplied credentials (falling back to saved ones) and
    store the captured cookies. Supplied credentials are saved on success.
    Automation can take up to a minute.
    """
    store = get_user_store(db, store_id, user)
    email, password = req.email, req.password

    if not (email and password):
        if not store.has_credentials:
            raise HTTPException(status_code=400, detail="Email and password are required")
        try:
            saved_email, saved_password = vault.decrypt_credentials(store)
        except DecryptionError as e:
            raise HTTPException(status_code=400, detail=f"Saved credentials unusable: {e}")
        email = email or saved_email
        password = password or saved_password

    return _run_cycle(
        db, store, email, password, driver, notifier,
        trigger="generate", save_credentials=bool(req.email or req.password),
    )


@router.post("/{store_id}/sync", response_model=GenerateOut)
def sync_cookies(
    store_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    driver: CookieLoginDriver = Depends(get_driver),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    """Re-run the login with the saved credentials."""
    store = get_user_store(db, store_id, user)
    if not store.has_credentials:
        raise HTTPException(status_code=400, detail="Store has no saved credentials")
    try:
        email, password = vault.decrypt_credentials(store)
    except DecryptionError as e:
        raise HTTPException(status_code=400, detail=f"Saved credentials unusable: {e}")

    return _run_cycle(db, store, email, password, driver, notifier, trigger="sync")
