"""User model."""
from sqlalchemy import Column, String, DateTime, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.database import Base


class UserRole(str, enum.Enum):
    """User role enum."""
    ADVERTISER = "ADVERTISER"
    PARTNER = "PARTNER"
    ADMIN = "ADMIN"


class User(Base):
    """User with API key authentication."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    api_key_hash = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    campaigns = relationship("Campaign", back_populates="advertiser", cascade="all, delete-orphan")
    partner = relationship("Partner", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User {self.id} role={self.role.value}>"
