"""Partner earnings request/response schemas."""
from datetime import datetime
from decimal import Decimal
from pydantic import Field
from typing import List, Optional
from uuid import UUID

from app.models.partner import EarningStatus
from app.schemas.base import CamelModel, Pagination


class EarningRecordRequest(CamelModel):
    """Aggregated counters for one billing period, from the billing scheduler."""

    period_start: datetime
    period_end: datetime
    total_impressions: int = Field(..., description="Impressions delivered in the period")
    total_engagements: int = Field(0, description="Engagements recorded in the period")


class EarningStatusUpdate(CamelModel):
    status: EarningStatus
    transaction_id: Optional[str] = Field(None, max_length=100)


class EarningResponse(CamelModel):
    id: UUID
    partner_id: UUID
    period_start: datetime
    period_end: datetime
    total_impressions: int
    total_engagements: int
    commission_rate: Decimal
    amount: Decimal
    currency: str
    status: EarningStatus
    paid_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EarningListResponse(CamelModel):
    data: List[EarningResponse]
    pagination: Pagination


class EarningsSummaryResponse(CamelModel):
    """Dashboard summary. Money fields are fixed-point, two decimals."""

    period: str
    total_earnings: Decimal
    pending_payments: Decimal
    available_balance: Decimal
    current_month_earnings: Decimal
    previous_month_earnings: Decimal
    percentage_change: float
    year_to_date_earnings: Decimal
    projected_earnings: Decimal
    last_payment_amount: Decimal
    last_payment_date: Optional[datetime] = None
    total_impressions: int
    total_engagements: int
    average_engagement_rate: float
