from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class JobStatusOut(BaseModel):
    job_id: str
    status: str  # queued/running/completed/failed/skipped
    progress: int = 0
    total: int = 0
    error: Optional[str] = None
    result: Optional[dict] = None
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class RefreshStatusOut(BaseModel):
    enabled: bool
    is_refreshing: bool
    interval_minutes: int
    next_refresh_at: Optional[datetime] = None
    time_remaining: str
    last_summary: Optional[dict] = None
