"""Partner, earnings and payout models."""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Numeric, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.config import get_settings
from app.database import Base


class EarningStatus(str, enum.Enum):
    """Billing period status."""
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PayoutStatus(str, enum.Enum):
    """Payout request status."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


# Unlinked payouts in these states draw on the pending earnings pool
CLAIMING_PAYOUT_STATUSES = frozenset({PayoutStatus.PENDING, PayoutStatus.APPROVED, PayoutStatus.COMPLETED})


class PaymentMethodType(str, enum.Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYPAL = "PAYPAL"
    MOBILE_MONEY = "MOBILE_MONEY"


class Partner(Base):
    """Display host that earns a commission on delivered impressions."""

    __tablename__ = "partners"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_name = Column(String(255), nullable=False)
    commission_rate = Column(Numeric(5, 4), nullable=False, default=get_settings().default_commission_rate)  # fraction in [0, 1]
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_payout_at = Column(DateTime)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user = relationship("User", back_populates="partner")
    earnings = relationship("PartnerEarning", back_populates="partner", order_by="PartnerEarning.period_start.desc()")
    payment_methods = relationship("PaymentMethod", back_populates="partner", cascade="all, delete-orphan")
    payouts = relationship("PayoutRequest", back_populates="partner", order_by="PayoutRequest.request_date.desc()")

    def __repr__(self):
        return f"<Partner {self.id}>"


class PartnerEarning(Base):
    """Earnings for one billing period."""

    __tablename__ = "partner_earnings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    partner_id = Column(Uuid, ForeignKey("partners.id", ondelete="RESTRICT"), nullable=False, index=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    total_impressions = Column(Integer, nullable=False)
    total_engagements = Column(Integer, nullable=False)
    commission_rate = Column(Numeric(5, 4), nullable=False)  # rate used to compute amount
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(SQLEnum(EarningStatus), default=EarningStatus.PENDING, nullable=False, index=True)
    paid_date = Column(DateTime)
    transaction_id = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    partner = relationship("Partner", back_populates="earnings")

    def __repr__(self):
        return f"<PartnerEarning {self.id} status={self.status.value}>"


class PaymentMethod(Base):
    """Where a partner's payouts are sent."""

    __tablename__ = "payment_methods"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    partner_id = Column(Uuid, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(PaymentMethodType), nullable=False)
    label = Column(String(255))
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    partner = relationship("Partner", back_populates="payment_methods")

    def __repr__(self):
        return f"<PaymentMethod {self.id} type={self.type.value}>"


class PayoutRequest(Base):
    """Partner request to cash out part of the available balance."""

    __tablename__ = "payout_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    partner_id = Column(Uuid, ForeignKey("partners.id", ondelete="RESTRICT"), nullable=False, index=True)
    payment_method_id = Column(Uuid, ForeignKey("payment_methods.id", ondelete="RESTRICT"), nullable=False)
    earning_id = Column(Uuid, ForeignKey("partner_earnings.id", ondelete="SET NULL"))
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(SQLEnum(PayoutStatus), default=PayoutStatus.PENDING, nullable=False, index=True)
    reference = Column(String(32), unique=True, nullable=False)
    request_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    processed_date = Column(DateTime)

    # Relationships
    partner = relationship("Partner", back_populates="payouts")
    payment_method = relationship("PaymentMethod")
    earning = relationship("PartnerEarning")

    @property
    def payment_method_type(self):
        return self.payment_method.type if self.payment_method else None

    def __repr__(self):
        return f"<PayoutRequest {self.id} status={self.status.value}>"
