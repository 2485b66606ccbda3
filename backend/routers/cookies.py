import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.automation.cookies import parse_cookie_payload
from backend.database import get_db
from backend.dependencies import get_current_user, get_notifier, get_user_store
from backend.errors import CookieFormatError, PersistenceError
from backend.expiry import expiry_to_datetime
from backend.models.cookie import Cookie
from backend.models.user import User
from backend.schemas.cookie import (
    CookieCreate,
    CookieUpdate,
    CookieOut,
    CookieImportRequest,
    CookieImportOut,
    HealthCheckOut,
)
from backend.services.activity_service import ActivityNotifier
from backend.services.cookie_store import locked_store, replace_cookies
from backend.services.health_check import check_store_health

router = APIRouter()
logger = logging.getLogger("cookie_manager")


def _get_user_cookie(db: Session, cookie_id: int, user: User) -> Cookie:
    cookie = (
        db.query(Cookie)
        .filter(Cookie.id == cookie_id, Cookie.user_id == user.id)
        .first()
    )
    if not cookie:
        raise HTTPException(status_code=404, detail="Cookie not found")
    return cookie


@router.get("", response_model=list[CookieOut])
def list_cookies(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return (
        db.query(Cookie)
        .filter(Cookie.user_id == user.id)
        .order_by(Cookie.created_at.desc(), Cookie.id.desc())
        .all()
    )


@router.get("/store/{store_id}", response_model=list[CookieOut])
def list_store_cookies(store_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    get_user_store(db, store_id, user)
    return (
        db.query(Cookie)
        .filter(Cookie.store_id == store_id, Cookie.user_id == user.id)
        .order_by(Cookie.id)
        .all()
    )


@router.post("", response_model=CookieOut, status_code=201)
def create_cookie(
    payload: CookieCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    store = get_user_store(db, payload.store_id, user)
    data = payload.model_dump(exclude={"store_id", "expiration_date"})
    data["domain"] = data.get("domain") or store.domain
    cookie = Cookie(
        store_id=store.id,
        user_id=user.id,
        expiration_date=expiry_to_datetime(payload.expiration_date),
        **data,
    )
    db.add(cookie)
    db.commit()
    db.refresh(cookie)
    notifier.notify(user.id, "Cookie added", "success", store.name, store.id, details=cookie.name)
    return cookie


@router.post("/import", response_model=CookieImportOut)
def import_cookies(
    req: CookieImportRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    """
    Replace a store's cookies with an imported set: a JSON array exported
    from a browser extension, or a raw "name=value; name2=value2" string.
    """
    store = get_user_store(db, req.store_id, user)
    try:
        records = parse_cookie_payload(req.cookies, default_domain=store.domain)
    except CookieFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        with locked_store(store.id):
            rows = replace_cookies(db, store.id, user.id, records, default_domain=store.domain)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    for row in rows:
        db.refresh(row)
    logger.info(f"[{store.name}] Imported {len(rows)} cookies.")
    notifier.notify(
        user.id, "Cookies imported", "success", store.name, store.id,
        details=f"{len(rows)} cookies imported",
    )
    return CookieImportOut(
        message=f"Successfully imported {len(rows)} cookies",
        count=len(rows),
        cookies=[CookieOut.model_validate(r) for r in rows],
    )


@router.put("/{cookie_id}", response_model=CookieOut)
def update_cookie(
    cookie_id: int,
    update: CookieUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cookie = _get_user_cookie(db, cookie_id, user)
    changes = update.model_dump(exclude_unset=True)

    if "expiration_date" in changes:
        cookie.expiration_date = expiry_to_datetime(changes.pop("expiration_date"))
        # Stale verdict until the next health check
        cookie.is_valid = None
        cookie.health_status = "unknown"
        cookie.status_message = None

    for field, value in changes.items():
        if value is not None:
            setattr(cookie, field, value)

    db.commit()
    db.refresh(cookie)
    return cookie


@router.delete("/store/{store_id}")
def delete_store_cookies(
    store_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    store = get_user_store(db, store_id, user)
    deleted = (
        db.query(Cookie)
        .filter(Cookie.store_id == store_id, Cookie.user_id == user.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    notifier.notify(
        user.id, "Cookies cleared", "warning", store.name, store.id,
        details=f"{deleted} cookies deleted",
    )
    return {"success": True, "deleted": deleted}


@router.delete("/{cookie_id}")
def delete_cookie(
    cookie_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cookie = _get_user_cookie(db, cookie_id, user)
    db.delete(cookie)
    db.commit()
    return {"success": True, "message": "Cookie deleted successfully"}


@router.post("/health-check/{store_id}", response_model=HealthCheckOut)
def health_check(
    store_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: ActivityNotifier = Depends(get_notifier),
):
    store = get_user_store(db, store_id, user)
    result = check_store_health(db, store.id, user.id)

    if result.success:
        data = result.data
        notifier.notify(
            user.id,
            "Health check completed",
            "success" if data.expired_cookies == 0 else "warning",
            store.name,
            store.id,
            details=f"{data.valid_cookies} valid, {data.expired_cookies} expired",
        )
    return result
