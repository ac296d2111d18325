"""Experiment request/response schemas."""
from datetime import datetime
from decimal import Decimal
from pydantic import Field, model_validator
from typing import Dict, List, Optional
from uuid import UUID

from app.models.experiment import ExperimentStatus
from app.schemas.base import CamelModel, Pagination


class VariantCreate(CamelModel):
    """One proposed variant of a new experiment."""

    ad_creative_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    traffic_allocation: Optional[Decimal] = Field(
        None, ge=0, le=100, description="Share of traffic in percent; defaults to an even split"
    )


class ExperimentCreate(CamelModel):
    """Request to create an experiment with its variants."""

    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    variants: List[VariantCreate]

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self

    model_config = CamelModel.model_config | {
        "json_schema_extra": {
            "example": {
                "name": "Summer creative test",
                "startDate": "2026-06-01T00:00:00",
                "variants": [
                    {"adCreativeId": "7f3c1a52-7d1e-4a57-9a51-0f8f9b2b7a11", "name": "Control", "trafficAllocation": 50},
                    {"adCreativeId": "1c0b6e4e-3f5e-4f0e-8d0a-2a9b1f6c3d22", "name": "Bold", "trafficAllocation": 50},
                ],
            }
        }
    }


class StatusUpdate(CamelModel):
    """Request to move an experiment to a new status."""

    status: ExperimentStatus
    version: Optional[int] = Field(None, description="Version last seen by the client")


class CounterIncrement(CamelModel):
    """Counter deltas reported by the ad-delivery path."""

    impressions: int = 0
    engagements: int = 0
    conversions: int = 0


class VariantResponse(CamelModel):
    id: UUID
    ad_creative_id: UUID
    name: str
    traffic_allocation: Decimal
    impressions: int
    engagements: int
    conversions: int


class ExperimentResponse(CamelModel):
    id: UUID
    campaign_id: UUID
    name: str
    description: Optional[str] = None
    status: ExperimentStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    winning_variant_id: Optional[UUID] = None
    version: int
    created_at: datetime
    updated_at: datetime
    variants: List[VariantResponse]


class ExperimentListResponse(CamelModel):
    experiments: List[ExperimentResponse]
    pagination: Pagination


class VariantPerformanceResponse(CamelModel):
    variant_id: UUID
    name: str
    impressions: int
    engagements: int
    conversions: int
    engagement_rate: float
    conversion_rate: float
    lift: Optional[float] = None
    is_leader: bool


class ExperimentResultsResponse(CamelModel):
    experiment_id: UUID
    status: ExperimentStatus
    winning_variant_id: Optional[UUID] = None
    leader_variant_id: Optional[UUID] = None
    variants: List[VariantPerformanceResponse]


class ExperimentMetricsResponse(CamelModel):
    total_tests: int
    active_tests: int
    completed_tests: int
    tests_by_status: Dict[str, int]
    total_impressions: int
    total_engagements: int
    total_conversions: int
    average_conversion_rate: float
