"""Pydantic schemas for request/response validation."""
from app.schemas.base import CamelModel, Pagination
from app.schemas.experiment import (
    ExperimentCreate,
    ExperimentResponse,
    ExperimentListResponse,
    StatusUpdate,
)
from app.schemas.earnings import EarningResponse, EarningsSummaryResponse
from app.schemas.payouts import PayoutCreateRequest, PayoutResponse

__all__ = [
    "CamelModel", "Pagination",
    "ExperimentCreate", "ExperimentResponse", "ExperimentListResponse", "StatusUpdate",
    "EarningResponse", "EarningsSummaryResponse",
    "PayoutCreateRequest", "PayoutResponse",
]
