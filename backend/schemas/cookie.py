from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Literal, Optional, Union

SameSite = Literal["Lax", "Strict", "None"]


class CookieBase(BaseModel):
    name: str = Field(min_length=1)
    value: str = Field(min_length=1)
    domain: Optional[str] = None
    path: str = "/"
    http_only: bool = False
    secure: bool = False
    same_site: SameSite = "Lax"


class CookieCreate(CookieBase):
    store_id: int
    # Unix seconds, milliseconds, or an ISO 8601 string
    expiration_date: Optional[Union[float, str]] = None


class CookieUpdate(BaseModel):
    name: Optional[str] = None
    value: Optional[str] = None
    domain: Optional[str] = None
    path: Optional[str] = None
    expiration_date: Optional[Union[float, str]] = None
    http_only: Optional[bool] = None
    secure: Optional[bool] = None
    same_site: Optional[SameSite] = None


class CookieOut(BaseModel):
    id: int
    store_id: int
    name: str
    value: str
    domain: str
    path: str
    expiration_date: Optional[datetime] = None
    http_only: bool
    secure: bool
    same_site: str
    is_valid: Optional[bool] = None
    health_status: str = "unknown"
    checked_at: Optional[datetime] = None
    status_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CookieHealthOut(CookieOut):
    reason: Optional[str] = None
    time_remaining: Optional[str] = None


class CookieImportRequest(BaseModel):
    store_id: int
    # JSON array of cookie objects, or a raw "a=1; b=2" cookie string
    cookies: Union[list[dict[str, Any]], dict[str, Any], str]


class CookieImportOut(BaseModel):
    success: bool = True
    message: str
    count: int
    cookies: list[CookieOut] = []


class HealthCheckData(BaseModel):
    store_id: int
    total_cookies: int = 0
    valid_cookies: int = 0
    expired_cookies: int = 0
    checked_at: Optional[datetime] = None
    cookies: list[CookieHealthOut] = []


class HealthCheckOut(BaseModel):
    success: bool
    message: str
    data: Optional[HealthCheckData] = None
    error: Optional[str] = None
