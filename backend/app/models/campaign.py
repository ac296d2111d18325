"""Campaign and ad creative models.

Campaign CRUD lives outside this service; these tables are read to check
ownership and creative membership.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from app.database import Base


class Campaign(Base):
    """Advertiser campaign."""

    __tablename__ = "campaigns"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    advertiser_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    advertiser = relationship("User", back_populates="campaigns")
    creatives = relationship("AdCreative", back_populates="campaign", cascade="all, delete-orphan")
    experiments = relationship("Experiment", back_populates="campaign", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Campaign {self.id}>"


class AdCreative(Base):
    """Creative asset attached to a campaign."""

    __tablename__ = "ad_creatives"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id = Column(Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    campaign = relationship("Campaign", back_populates="creatives")

    def __repr__(self):
        return f"<AdCreative {self.id}>"
