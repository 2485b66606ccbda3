from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from backend.database import Base
from datetime import datetime

ACTIVITY_TYPES = ("success", "info", "warning", "error")


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(200), nullable=False)
    type = Column(String(20), default="info")  # success/info/warning/error
    store = Column(String(200), nullable=True)  # store name for display
    store_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
