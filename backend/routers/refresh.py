from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.config import settings
from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.store import Store
from backend.models.user import User
from backend.schemas.job import JobStatusOut, RefreshStatusOut
from backend.worker.refresh_worker import scheduler, scope_summary
from backend.worker.task_queue import WorkerTask, task_registry

router = APIRouter()


def _user_store_ids(db: Session, user: User) -> set:
    return {store_id for (store_id,) in db.query(Store.id).filter(Store.user_id == user.id)}


def _job_out(task: WorkerTask, store_ids: set) -> dict:
    data = task.to_dict()
    data["result"] = scope_summary(data["result"], store_ids)
    return data


@router.get("/status", response_model=RefreshStatusOut)
def refresh_status(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    state = scheduler.state
    last = scheduler.last_summary.to_dict() if scheduler.last_summary else None
    return RefreshStatusOut(
        enabled=settings.auto_refresh_enabled,
        is_refreshing=state.is_refreshing,
        interval_minutes=int(scheduler.interval.total_seconds() // 60),
        next_refresh_at=state.next_refresh_at,
        time_remaining=state.time_remaining(),
        last_summary=scope_summary(last, _user_store_ids(db, user)),
    )


@router.post("/run", response_model=JobStatusOut)
async def run_refresh(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Start a refresh of all eligible stores in the background. Poll /job/{job_id}."""
    task = await scheduler.trigger_now()
    return _job_out(task, _user_store_ids(db, user))


@router.get("/job/{job_id}", response_model=JobStatusOut)
def get_job_status(job_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    task = task_registry.get(job_id)
    if not task:
        raise HTTPException(status_code=404, detail="Job not found")
    return _job_out(task, _user_store_ids(db, user))
