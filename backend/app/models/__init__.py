"""Database models."""
from app.models.user import User, UserRole
from app.models.campaign import Campaign, AdCreative
from app.models.experiment import Experiment, Variant, ExperimentStatus
from app.models.partner import (
    Partner,
    PartnerEarning,
    PaymentMethod,
    PayoutRequest,
    EarningStatus,
    PayoutStatus,
    PaymentMethodType,
)

__all__ = [
    "User", "UserRole", "Campaign", "AdCreative", "Experiment", "Variant", "ExperimentStatus",
    "Partner", "PartnerEarning", "PaymentMethod", "PayoutRequest",
    "EarningStatus", "PayoutStatus", "PaymentMethodType",
]
