"""Experiment (A/B test) and variant models."""
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Numeric, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.database import Base


class ExperimentStatus(str, enum.Enum):
    """Experiment lifecycle status."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({ExperimentStatus.COMPLETED, ExperimentStatus.CANCELLED})

# Statuses in which the delivery path may still move variant counters
COUNTING_STATUSES = frozenset({ExperimentStatus.ACTIVE, ExperimentStatus.PAUSED})


class Experiment(Base):
    """A/B test comparing creatives within one campaign."""

    __tablename__ = "experiments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id = Column(Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    status = Column(SQLEnum(ExperimentStatus), default=ExperimentStatus.DRAFT, nullable=False, index=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime)
    winning_variant_id = Column(Uuid, ForeignKey("variants.id", use_alter=True, name="fk_experiments_winning_variant"))
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    campaign = relationship("Campaign", back_populates="experiments")
    variants = relationship(
        "Variant",
        back_populates="experiment",
        cascade="all, delete-orphan",
        foreign_keys="Variant.experiment_id",
        order_by="Variant.position",
    )

    # Every UPDATE is issued as "... WHERE version = :seen" and bumps the version
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<Experiment {self.id} status={self.status.value}>"


class Variant(Base):
    """One creative in an experiment with its traffic share and counters."""

    __tablename__ = "variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    experiment_id = Column(Uuid, ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False, index=True)
    ad_creative_id = Column(Uuid, ForeignKey("ad_creatives.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False, default=0)  # input order, used for tie-breaks
    traffic_allocation = Column(Numeric(5, 2), nullable=False)

    # Performance counters
    impressions = Column(Integer, nullable=False, default=0)
    engagements = Column(Integer, nullable=False, default=0)
    conversions = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    experiment = relationship("Experiment", back_populates="variants", foreign_keys=[experiment_id])

    def __repr__(self):
        return f"<Variant {self.id} name={self.name}>"
