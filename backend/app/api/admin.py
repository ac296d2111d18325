"""Admin endpoints for billing and payout processing."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
import redis

from app.config import get_settings
from app.database import get_db, get_redis
from app.middleware.auth import require_role
from app.models.user import User, UserRole
from app.schemas.earnings import EarningRecordRequest, EarningResponse, EarningStatusUpdate
from app.schemas.payouts import PayoutResponse, PayoutStatusUpdate
from app.services.cache import EarningsCache
from app.services.earnings import EarningsService
from app.services.payouts import PayoutService

router = APIRouter(prefix="/admin")
settings = get_settings()

admin_only = require_role(UserRole.ADMIN)


def get_earnings_service(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
) -> EarningsService:
    return EarningsService(db, cache=EarningsCache(redis_client, ttl=settings.earnings_cache_ttl))


@router.post("/partners/{partner_id}/earnings", response_model=EarningResponse, status_code=201)
def record_earning(
    partner_id: UUID,
    record: EarningRecordRequest,
    user: User = Depends(admin_only),
    service: EarningsService = Depends(get_earnings_service)
):
    """
    Record one billing period for a partner.

    The amount is computed from the counters at the partner's current
    commission rate, which is snapshotted on the earning.
    """
    return service.record_period(
        partner_id,
        record.period_start,
        record.period_end,
        record.total_impressions,
        record.total_engagements,
        settings.base_unit_rate
    )


@router.put("/earnings/{earning_id}/status", response_model=EarningResponse)
def update_earning_status(
    earning_id: UUID,
    status_update: EarningStatusUpdate,
    user: User = Depends(admin_only),
    service: EarningsService = Depends(get_earnings_service)
):
    return service.transition_earning(
        earning_id,
        status_update.status,
        transaction_id=status_update.transaction_id
    )


@router.put("/payouts/{payout_id}/status", response_model=PayoutResponse)
def update_payout_status(
    payout_id: UUID,
    status_update: PayoutStatusUpdate,
    user: User = Depends(admin_only),
    earnings: EarningsService = Depends(get_earnings_service),
    db: Session = Depends(get_db)
):
    """Approve, reject or complete a payout. Completing one marks its linked earning paid."""
    return PayoutService(db, earnings).transition_payout(payout_id, status_update.status)
