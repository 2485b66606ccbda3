from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

StoreStatus = Literal["inactive", "active", "error"]


class StoreCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    domain: str = Field(min_length=1, max_length=255)
    status: StoreStatus = "inactive"


class StoreUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    domain: Optional[str] = Field(default=None, min_length=1, max_length=255)
    status: Optional[StoreStatus] = None


class StoreOut(BaseModel):
    id: int
    name: str
    domain: str
    status: str
    has_credentials: bool = False
    last_cookie_update: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CredentialsOut(BaseModel):
    has_credentials: bool
    email: Optional[str] = None


class GenerateRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GenerateOut(BaseModel):
    success: bool
    message: str
    cookie_count: int = 0
    attempts: int = 0
    store: StoreOut
