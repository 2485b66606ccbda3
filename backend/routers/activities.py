from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.user import User
from backend.schemas.activity import ActivityOut, CleanupOut
from backend.services.activity_service import (
    list_activities,
    recent_activities,
    cleanup_old_activities,
)

router = APIRouter()


@router.get("", response_model=list[ActivityOut])
def get_activities(
    limit: int = Query(10, ge=1, le=100),
    skip: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return list_activities(db, user.id, limit=limit, skip=skip)


@router.get("/recent", response_model=list[ActivityOut])
def get_recent(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return recent_activities(db, user.id)


@router.delete("/cleanup", response_model=CleanupOut)
def cleanup(
    days: int = Query(30, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return CleanupOut(deleted=cleanup_old_activities(db, user.id, days=days))
