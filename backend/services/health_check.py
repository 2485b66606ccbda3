import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.expiry import Invalid, Missing, parse_expiry, to_instant
from backend.models.cookie import Cookie
from backend.schemas.cookie import CookieHealthOut, HealthCheckData, HealthCheckOut

logger = logging.getLogger("cookie_manager")


@dataclass
class ExpiryVerdict:
    is_expired: bool
    reason: str  # no_expiry/unknown_format/invalid_date/expired_date/valid_date
    message: str
    expiry_date: Optional[datetime] = None
    time_remaining: Optional[str] = None


def format_time_remaining(diff: timedelta) -> str:
    seconds = diff.total_seconds()
    days = math.floor(seconds / 86400)
    hours = math.floor(seconds / 3600)
    if seconds < 0:
        return f"Expired {abs(days)} days ago"
    if days > 0:
        return f"Valid for {days} days"
    return f"Valid for {hours} hours"


def _raw_expiry(cookie: Any) -> Any:
    if isinstance(cookie, dict):
        return cookie.get("expiration_date", cookie.get("expirationDate"))
    return getattr(cookie, "expiration_date", cookie)


def evaluate_expiry(cookie: Any, now: Optional[datetime] = None) -> ExpiryVerdict:
    """
    Classify a cookie (row, dict, or bare expiry value) as expired or not.
    Missing and unreadable expiries are treated as valid.
    """
    expiry = to_instant(parse_expiry(_raw_expiry(cookie)))

    if isinstance(expiry, Missing):
        return ExpiryVerdict(False, "no_expiry", "Session cookie (no expiry)")
    if isinstance(expiry, Invalid):
        if expiry.reason == "unknown_format":
            return ExpiryVerdict(False, "unknown_format", "Unknown date format, assumed valid")
        return ExpiryVerdict(False, "invalid_date", "Invalid date, assumed valid")

    now = now or datetime.utcnow()
    expiry_date = expiry.value
    is_expired = expiry_date < now
    return ExpiryVerdict(
        is_expired=is_expired,
        reason="expired_date" if is_expired else "valid_date",
        message=(
            f"Cookie expired on {expiry_date.isoformat()}Z"
            if is_expired
            else f"Cookie valid until {expiry_date.isoformat()}Z"
        ),
        expiry_date=expiry_date,
        time_remaining=format_time_remaining(expiry_date - now),
    )


def _store_cookies(db: Session, store_id: int, user_id: int) -> list[Cookie]:
    return (
        db.query(Cookie)
        .filter(Cookie.store_id == store_id, Cookie.user_id == user_id)
        .order_by(Cookie.id)
        .all()
    )


def check_store_health(
    db: Session, store_id: int, user_id: int, now: Optional[datetime] = None
) -> HealthCheckOut:
    """
    Evaluate every cookie of a store, persist the verdicts, and return the
    re-read rows with aggregate counts. Never raises.
    """
    try:
        cookies = _store_cookies(db, store_id, user_id)
        if not cookies:
            return HealthCheckOut(
                success=False,
                message="No cookies found for this store",
                data=HealthCheckData(store_id=store_id),
            )

        checked_at = now or datetime.utcnow()
        logger.info(f"Health check start: store {store_id}, {len(cookies)} cookies.")

        verdicts: dict[int, ExpiryVerdict] = {}
        for cookie in cookies:
            verdict = evaluate_expiry(cookie, now=checked_at)
            verdicts[cookie.id] = verdict
            cookie.is_valid = not verdict.is_expired
            cookie.health_status = "expired" if verdict.is_expired else "valid"
            cookie.checked_at = checked_at
            cookie.status_message = verdict.message
            logger.debug(
                f"  {cookie.name}: {cookie.health_status.upper()} "
                f"({verdict.time_remaining or verdict.reason})"
            )
        db.commit()

        updated = _store_cookies(db, store_id, user_id)
        cookies_with_health = []
        for cookie in updated:
            verdict = verdicts.get(cookie.id) or evaluate_expiry(cookie, now=checked_at)
            item = CookieHealthOut.model_validate(cookie)
            item.reason = verdict.reason
            item.time_remaining = verdict.time_remaining
            cookies_with_health.append(item)

        valid = sum(1 for c in updated if c.is_valid)
        expired = len(updated) - valid
        logger.info(
            f"Health check completed: store {store_id}, {valid} valid, "
            f"{expired} expired (total {len(updated)})."
        )

        return HealthCheckOut(
            success=True,
            message="Health check completed successfully",
            data=HealthCheckData(
                store_id=store_id,
                total_cookies=len(updated),
                valid_cookies=valid,
                expired_cookies=expired,
                checked_at=checked_at,
                cookies=cookies_with_health,
            ),
        )

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Health check error for store {store_id}: {e}")
        return HealthCheckOut(success=False, message="Health check failed", error=str(e))
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected health check error for store {store_id}: {e}")
        return HealthCheckOut(success=False, message="Health check failed", error=str(e))
