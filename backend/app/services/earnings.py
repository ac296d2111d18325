"""Partner earnings: commission math, billing periods and summaries.

All money is handled as ``Decimal``. Amounts are only rounded to cents
by ``to_money`` when they are persisted or returned to a client.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.errors import DependencyError, InvalidInputError, InvalidTransitionError, NotFoundError
from app.middleware.logging import get_logger
from app.models.partner import CLAIMING_PAYOUT_STATUSES, EarningStatus, Partner, PartnerEarning, PayoutRequest
from app.services.cache import EarningsCache

logger = get_logger()

CENT = Decimal("0.01")
ZERO = Decimal("0")

SUMMARY_PERIODS = ("month", "quarter", "year", "all")

ALLOWED_EARNING_TRANSITIONS = {
    EarningStatus.PENDING: frozenset({EarningStatus.PROCESSED, EarningStatus.CANCELLED}),
    EarningStatus.PROCESSED: frozenset({EarningStatus.PAID, EarningStatus.CANCELLED}),
    EarningStatus.PAID: frozenset(),
    EarningStatus.CANCELLED: frozenset(),
}


def to_decimal(value) -> Decimal:
    """Convert ints, strings and floats to Decimal without binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_money(amount: Decimal) -> Decimal:
    """Round to cents. Only call at the persist/display boundary."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_amount(
    total_impressions: int,
    total_engagements: int,
    commission_rate,
    base_unit_rate,
) -> Decimal:
    """
    Compute what a partner earned for a period.

    amount = impressions * base_unit_rate * commission_rate

    Engagements are validated but do not contribute to the amount.

    Args:
        total_impressions: Impressions delivered in the period
        total_engagements: Engagements recorded in the period
        commission_rate: Partner's share, in [0, 1]
        base_unit_rate: Revenue per impression before commission

    Returns:
        Unrounded Decimal amount

    Raises:
        InvalidInputError: Negative counts or rate outside [0, 1]

    Example:
        >>> compute_amount(1_000_000, 0, "0.3", "0.001")
        Decimal('300.0000')
    """
    if total_impressions < 0 or total_engagements < 0:
        raise InvalidInputError(
            "Impression and engagement counts must not be negative",
            details={"totalImpressions": total_impressions, "totalEngagements": total_engagements}
        )

    rate = to_decimal(commission_rate)
    if rate < 0 or rate > 1:
        raise InvalidInputError("Commission rate must be between 0 and 1", details={"commissionRate": str(rate)})

    return Decimal(total_impressions) * to_decimal(base_unit_rate) * rate


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _shift_months(month_start: datetime, months: int) -> datetime:
    index = month_start.year * 12 + (month_start.month - 1) + months
    return month_start.replace(year=index // 12, month=index % 12 + 1)


def summary_window_start(period: str, now: datetime) -> Optional[datetime]:
    """First instant of the summary window, None for all time."""
    current_month = _month_start(now)
    if period == "month":
        return current_month
    if period == "quarter":
        return current_month.replace(month=(current_month.month - 1) // 3 * 3 + 1)
    if period == "year":
        return current_month.replace(month=1)
    return None


class EarningsService:
    """Service for partner earnings periods and summaries."""

    def __init__(self, db: Session, cache: Optional[EarningsCache] = None):
        self.db = db
        self.cache = cache

    def record_period(
        self,
        partner_id: UUID,
        period_start: datetime,
        period_end: datetime,
        total_impressions: int,
        total_engagements: int,
        base_unit_rate
    ) -> PartnerEarning:
        """Compute and persist a PENDING earning at the partner's current commission rate."""
        partner = self.db.get(Partner, partner_id)
        if not partner:
            raise NotFoundError("Partner not found")

        if period_end <= period_start:
            raise InvalidInputError("periodEnd must be after periodStart")

        amount = compute_amount(total_impressions, total_engagements, partner.commission_rate, base_unit_rate)

        earning = PartnerEarning(
            partner_id=partner.id,
            period_start=period_start,
            period_end=period_end,
            total_impressions=total_impressions,
            total_engagements=total_engagements,
            commission_rate=partner.commission_rate,
            amount=to_money(amount),
            status=EarningStatus.PENDING
        )
        self.db.add(earning)
        self._commit()
        self.db.refresh(earning)
        self.invalidate_cache(partner.id)

        logger.info(
            "earning_recorded",
            earning_id=str(earning.id),
            partner_id=str(partner.id),
            amount=str(earning.amount),
            total_impressions=total_impressions
        )
        return earning

    def transition_earning(
        self,
        earning_id: UUID,
        target: EarningStatus,
        transaction_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> PartnerEarning:
        """Advance an earning: PENDING -> PROCESSED -> PAID, or CANCELLED before payment."""
        earning = self.db.get(PartnerEarning, earning_id)
        if not earning:
            raise NotFoundError("Earning not found")

        if target not in ALLOWED_EARNING_TRANSITIONS[earning.status]:
            raise InvalidTransitionError(earning.status.value, target.value)

        previous = earning.status
        earning.status = target
        if transaction_id:
            earning.transaction_id = transaction_id
        if target == EarningStatus.PAID:
            earning.paid_date = now or datetime.utcnow()

        self._commit()
        self.db.refresh(earning)
        self.invalidate_cache(earning.partner_id)

        logger.info(
            "earning_status_changed",
            earning_id=str(earning.id),
            partner_id=str(earning.partner_id),
            from_status=previous.value,
            to_status=target.value
        )
        return earning

    def list_earnings(
        self,
        partner: Partner,
        status: Optional[EarningStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[PartnerEarning], int]:
        """Paginated earnings, most recent period first. Returns (page, total)."""
        query = self.db.query(PartnerEarning).filter(PartnerEarning.partner_id == partner.id)
        if status:
            query = query.filter(PartnerEarning.status == status)
        if start_date:
            query = query.filter(PartnerEarning.period_start >= start_date)
        if end_date:
            query = query.filter(PartnerEarning.period_end <= end_date)

        total = query.count()
        earnings = query.order_by(
            PartnerEarning.period_end.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return earnings, total

    def available_balance(self, partner_id: UUID) -> Decimal:
        """
        Pending earnings not yet claimed by a payout request.

        Unlinked payouts keep counting once COMPLETED since the earnings they
        drew on stay PENDING; only a REJECTED request gives its amount back.
        Payouts tied to a specific earning are left out: that earning already
        left PENDING when the request was made.
        """
        pending = self.db.query(
            func.coalesce(func.sum(PartnerEarning.amount), 0)
        ).filter(
            PartnerEarning.partner_id == partner_id,
            PartnerEarning.status == EarningStatus.PENDING
        ).scalar()

        claimed = self.db.query(
            func.coalesce(func.sum(PayoutRequest.amount), 0)
        ).filter(
            PayoutRequest.partner_id == partner_id,
            PayoutRequest.status.in_(CLAIMING_PAYOUT_STATUSES),
            PayoutRequest.earning_id.is_(None)
        ).scalar()

        return to_money(max(to_decimal(pending) - to_decimal(claimed), ZERO))

    def get_summary(self, partner: Partner, period: str = "year", now: Optional[datetime] = None) -> Dict:
        """
        Earnings overview for the partner dashboard.

        ``total_earnings`` covers the requested period (month, quarter, year
        or all); the other figures are fixed windows relative to ``now``.
        """
        if period not in SUMMARY_PERIODS:
            raise InvalidInputError(
                f"period must be one of {', '.join(SUMMARY_PERIODS)}",
                details={"period": period}
            )

        if self.cache and now is None:
            cached = self.cache.get_summary(partner.id, period)
            if cached is not None:
                return cached

        now = now or datetime.utcnow()
        earnings = self.db.query(PartnerEarning).filter(
            PartnerEarning.partner_id == partner.id,
            PartnerEarning.status != EarningStatus.CANCELLED
        ).order_by(PartnerEarning.period_start.desc()).all()

        current_month = _month_start(now)
        next_month = _shift_months(current_month, 1)
        previous_month = _shift_months(current_month, -1)
        year_start = current_month.replace(month=1)
        window_start = summary_window_start(period, now)

        def total(rows) -> Decimal:
            return sum((to_decimal(e.amount) for e in rows), ZERO)

        def within(start: Optional[datetime], end: Optional[datetime] = None):
            return [
                e for e in earnings
                if (start is None or e.period_start >= start) and (end is None or e.period_start < end)
            ]

        period_total = total(within(window_start))
        current_total = total(within(current_month, next_month))
        previous_total = total(within(previous_month, current_month))
        year_total = total(within(year_start))

        percentage_change = (
            (current_total - previous_total) / previous_total * 100 if previous_total > 0 else ZERO
        )
        projected = year_total / now.month * 12

        pending = total(e for e in earnings if e.status == EarningStatus.PENDING)
        last_paid = max(
            (e for e in earnings if e.status == EarningStatus.PAID and e.paid_date),
            key=lambda e: e.paid_date,
            default=None
        )

        impressions = sum(e.total_impressions for e in earnings)
        engagements = sum(e.total_engagements for e in earnings)
        engagement_rate = engagements / impressions * 100 if impressions > 0 else 0.0

        summary = {
            "period": period,
            "total_earnings": to_money(period_total),
            "pending_payments": to_money(pending),
            "available_balance": self.available_balance(partner.id),
            "current_month_earnings": to_money(current_total),
            "previous_month_earnings": to_money(previous_total),
            "percentage_change": round(float(percentage_change), 2),
            "year_to_date_earnings": to_money(year_total),
            "projected_earnings": to_money(projected),
            "last_payment_amount": to_money(last_paid.amount) if last_paid else to_money(ZERO),
            "last_payment_date": last_paid.paid_date if last_paid else None,
            "total_impressions": impressions,
            "total_engagements": engagements,
            "average_engagement_rate": round(engagement_rate, 2)
        }

        if self.cache:
            self.cache.set_summary(partner.id, period, summary)
        return summary

    def invalidate_cache(self, partner_id: UUID) -> None:
        if self.cache:
            self.cache.invalidate(partner_id)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            raise DependencyError("Database unavailable") from e
        except Exception:
            self.db.rollback()
            raise
