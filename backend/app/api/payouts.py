"""Partner payout endpoints."""
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import redis

from app.config import get_settings
from app.database import get_db, get_redis
from app.errors import DomainError, RateLimitExceeded
from app.middleware.auth import get_current_partner
from app.middleware.logging import get_logger
from app.models.partner import Partner
from app.schemas.payouts import PayoutCreateRequest, PayoutResponse
from app.services.cache import EarningsCache
from app.services.earnings import EarningsService
from app.services.payouts import PayoutService
from app.services.rate_limiter import RateLimiter

router = APIRouter(prefix="/partner")
settings = get_settings()
logger = get_logger()


def get_payout_service(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
) -> PayoutService:
    earnings = EarningsService(db, cache=EarningsCache(redis_client, ttl=settings.earnings_cache_ttl))
    return PayoutService(db, earnings)


@router.get("/payouts", response_model=List[PayoutResponse])
def list_payouts(
    partner: Partner = Depends(get_current_partner),
    service: PayoutService = Depends(get_payout_service)
):
    return service.list_payouts(partner)


@router.get("/payouts/{payout_id}", response_model=PayoutResponse)
def get_payout(
    payout_id: UUID,
    partner: Partner = Depends(get_current_partner),
    service: PayoutService = Depends(get_payout_service)
):
    return service.get_payout(partner, payout_id)


@router.post("/payouts", response_model=PayoutResponse, status_code=201)
def request_payout(
    payout_request: PayoutCreateRequest,
    response: Response,
    partner: Partner = Depends(get_current_partner),
    service: PayoutService = Depends(get_payout_service),
    redis_client: redis.Redis = Depends(get_redis)
):
    """
    Request a payout of part of the available balance.

    The amount must be at least the platform minimum and no more than the
    pending earnings not already claimed by an earlier, unrejected request.
    Refused requests do not count against the hourly quota.
    """
    limit = settings.payout_rate_limit_requests
    window = settings.payout_rate_limit_window
    rate_limiter = RateLimiter(redis_client, prefix="payout")

    slot = rate_limiter.acquire(str(partner.id), limit=limit, window=window)
    if not slot.allowed:
        logger.warning("rate_limit_exceeded", partner_id=str(partner.id), count=slot.count)
        raise RateLimitExceeded(
            f"Rate limit exceeded. Limit: {limit} payout requests per {window} seconds",
            details={"limit": limit, "window": window}
        )

    try:
        payout = service.request_payout(
            partner,
            payout_request.amount,
            payout_request.payment_method_id,
            settings.minimum_payout_threshold,
            earning_id=payout_request.earning_id
        )
    except DomainError:
        # Only accepted requests count against the quota
        rate_limiter.release(slot)
        raise

    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(slot.remaining)
    return payout
