from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from backend.database import Base
from datetime import datetime


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    domain = Column(String(255), nullable=False)
    status = Column(String(20), default="inactive")  # inactive/active/error

    # Vault ciphertexts ("iv:ciphertext", hex)
    encrypted_email = Column(String(512), nullable=True)
    encrypted_password = Column(String(512), nullable=True)

    last_cookie_update = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="stores")
    cookies = relationship(
        "Cookie", back_populates="store", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.encrypted_email and self.encrypted_password)
