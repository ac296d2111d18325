"""Partner earnings endpoints."""
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from math import ceil
from sqlalchemy.orm import Session
from typing import Optional
import redis

from app.config import get_settings
from app.database import get_db, get_redis
from app.middleware.auth import get_current_partner
from app.models.partner import EarningStatus, Partner
from app.schemas.base import Pagination
from app.schemas.earnings import EarningListResponse, EarningResponse, EarningsSummaryResponse
from app.services.cache import EarningsCache
from app.services.earnings import EarningsService

router = APIRouter(prefix="/partner")
settings = get_settings()


def get_earnings_service(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
) -> EarningsService:
    return EarningsService(db, cache=EarningsCache(redis_client, ttl=settings.earnings_cache_ttl))


@router.get("/earnings", response_model=EarningListResponse)
def list_earnings(
    status: Optional[EarningStatus] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    partner: Partner = Depends(get_current_partner),
    service: EarningsService = Depends(get_earnings_service)
):
    """List the partner's earnings, most recent period first."""
    earnings, total = service.list_earnings(
        partner,
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit
    )
    return EarningListResponse(
        data=[EarningResponse.model_validate(e) for e in earnings],
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=ceil(total / limit))
    )


@router.get("/earnings/summary", response_model=EarningsSummaryResponse)
def get_earnings_summary(
    period: str = Query("year", description="month, quarter, year or all"),
    partner: Partner = Depends(get_current_partner),
    service: EarningsService = Depends(get_earnings_service)
):
    """
    Earnings overview for the partner dashboard.

    Served from Redis for a short TTL; recomputed from the database when the
    cache is cold or unreachable.
    """
    return service.get_summary(partner, period=period)
