from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class SettingsOut(BaseModel):
    auto_sync_enabled: bool = False
    auto_sync_interval: int = 60
    last_auto_sync: Optional[datetime] = None

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    auto_sync_enabled: Optional[bool] = None
    auto_sync_interval: Optional[int] = None


class StoreSyncResult(BaseModel):
    store_id: int
    store_name: str
    success: bool
    valid_cookies: int = 0
    expired_cookies: int = 0
    error: Optional[str] = None


class SyncNowOut(BaseModel):
    success: bool = True
    message: str
    synced_stores: int
    results: list[StoreSyncResult] = []
    last_sync: Optional[datetime] = None
