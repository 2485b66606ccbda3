from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from backend.database import Base
from datetime import datetime


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(200), nullable=False)

    # Auto-sync preferences
    auto_sync_enabled = Column(Boolean, default=False)
    auto_sync_interval = Column(Integer, default=60)  # minutes, 5-1440
    last_auto_sync = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    stores = relationship("Store", back_populates="user", cascade="all, delete-orphan")
