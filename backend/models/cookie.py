from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from backend.database import Base
from datetime import datetime


class Cookie(Base):
    __tablename__ = "cookies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    value = Column(Text, nullable=False)
    domain = Column(String(255), nullable=False)
    path = Column(String(255), default="/")
    expiration_date = Column(DateTime, nullable=True)
    http_only = Column(Boolean, default=False)
    secure = Column(Boolean, default=False)
    same_site = Column(String(10), default="Lax")  # Lax/Strict/None

    # Health record
    is_valid = Column(Boolean, nullable=True)  # None = not checked yet
    health_status = Column(String(20), default="unknown")  # unknown/valid/expired/invalid
    checked_at = Column(DateTime, nullable=True)
    status_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    store = relationship("Store", back_populates="cookies")
