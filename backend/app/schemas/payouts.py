"""Payout request/response schemas."""
from datetime import datetime
from decimal import Decimal
from pydantic import Field
from typing import Optional
from uuid import UUID

from app.models.partner import PaymentMethodType, PayoutStatus
from app.schemas.base import CamelModel


class PayoutCreateRequest(CamelModel):
    """Request to cash out part of the available balance."""

    amount: Decimal = Field(..., decimal_places=2, description="Amount in the wallet currency")
    payment_method_id: UUID
    earning_id: Optional[UUID] = Field(None, description="Pay out exactly this pending earning")

    model_config = CamelModel.model_config | {
        "json_schema_extra": {
            "example": {
                "amount": "120.50",
                "paymentMethodId": "3d4f8e2a-6b1c-4c8e-9a7d-5e2f1b0c9d33"
            }
        }
    }


class PayoutStatusUpdate(CamelModel):
    status: PayoutStatus


class PayoutResponse(CamelModel):
    id: UUID
    partner_id: UUID
    amount: Decimal
    currency: str
    status: PayoutStatus
    reference: str
    request_date: datetime
    processed_date: Optional[datetime] = None
    payment_method_id: UUID
    payment_method_type: Optional[PaymentMethodType] = None
    earning_id: Optional[UUID] = None

