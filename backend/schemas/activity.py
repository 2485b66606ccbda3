from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ActivityOut(BaseModel):
    id: int
    action: str
    type: str
    store: Optional[str] = None
    store_id: Optional[int] = None
    details: Optional[str] = None
    created_at: datetime
    time_ago: str = ""

    class Config:
        from_attributes = True


class CleanupOut(BaseModel):
    deleted: int
