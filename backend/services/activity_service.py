import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from backend.database import SessionLocal
from backend.models.activity import Activity, ACTIVITY_TYPES
from backend.schemas.activity import ActivityOut

logger = logging.getLogger("cookie_manager")


class ActivityNotifier:
    """
    Fire-and-forget activity log.

    Each notification is written in its own session so a failure here can
    never roll back or break the caller's work.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def notify(
        self,
        user_id: int,
        action: str,
        severity: str = "info",
        store_name: Optional[str] = None,
        store_id: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        if severity not in ACTIVITY_TYPES:
            severity = "info"
        try:
            db = self.session_factory()
            try:
                db.add(
                    Activity(
                        user_id=user_id,
                        action=action,
                        type=severity,
                        store=store_name,
                        store_id=store_id,
                        details=details,
                    )
                )
                db.commit()
            finally:
                db.close()
            logger.debug(f"Activity logged: {action} ({severity})")
        except Exception as e:
            logger.warning(f"Failed to log activity '{action}': {e}")


def time_ago(moment: datetime, now: Optional[datetime] = None) -> str:
    seconds = int(((now or datetime.utcnow()) - moment).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = hours // 24
    return f"{days} day{'s' if days != 1 else ''} ago"


def _with_time_ago(activities: list[Activity]) -> list[ActivityOut]:
    now = datetime.utcnow()
    out = []
    for activity in activities:
        item = ActivityOut.model_validate(activity)
        item.time_ago = time_ago(activity.created_at, now)
        out.append(item)
    return out


def list_activities(db: Session, user_id: int, limit: int = 10, skip: int = 0) -> list[ActivityOut]:
    activities = (
        db.query(Activity)
        .filter(Activity.user_id == user_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return _with_time_ago(activities)


def recent_activities(db: Session, user_id: int) -> list[ActivityOut]:
    return list_activities(db, user_id, limit=5)


def cleanup_old_activities(db: Session, user_id: int, days: int = 30) -> int:
    """Delete activities older than `days`. Returns the number removed."""
    cutoff = datetime.utcnow() - timedelta(days=days)
    deleted = (
        db.query(Activity)
        .filter(Activity.user_id == user_id, Activity.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Removed {deleted} activities older than {days} days for user {user_id}.")
    return deleted


# Global notifier instance
notifier = ActivityNotifier()
