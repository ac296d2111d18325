"""Payout authorization and payout request handling."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.errors import (
    BelowThresholdError,
    ConcurrentModificationError,
    DependencyError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.middleware.logging import get_logger
from app.models.partner import (
    EarningStatus,
    Partner,
    PartnerEarning,
    PaymentMethod,
    PayoutRequest,
    PayoutStatus,
)
from app.services.earnings import EarningsService, to_decimal, to_money

logger = get_logger()

ALLOWED_PAYOUT_TRANSITIONS = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.APPROVED, PayoutStatus.REJECTED}),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.COMPLETED, PayoutStatus.REJECTED}),
    PayoutStatus.REJECTED: frozenset(),
    PayoutStatus.COMPLETED: frozenset(),
}


@dataclass(frozen=True)
class PayoutAuthorization:
    """Decision handed to the payment processor. Moves no money by itself."""

    amount: Decimal
    available_balance: Decimal
    minimum_threshold: Decimal

    @property
    def remaining_balance(self) -> Decimal:
        return self.available_balance - self.amount


def authorize(requested_amount, available_balance, minimum_threshold) -> PayoutAuthorization:
    """
    Check a payout amount against the threshold and the available balance.

    Pure: the same inputs always give the same decision.

    Raises:
        InvalidInputError: Amount is not positive
        BelowThresholdError: Amount is under ``minimum_threshold``
        InsufficientBalanceError: Amount exceeds ``available_balance``
    """
    amount = to_decimal(requested_amount)
    available = to_decimal(available_balance)
    minimum = to_decimal(minimum_threshold)

    if amount <= 0:
        raise InvalidInputError("Payout amount must be positive", details={"amount": str(amount)})

    if amount < minimum:
        raise BelowThresholdError(
            f"Payout amount must be at least {minimum}",
            details={"amount": str(amount), "minimumThreshold": str(minimum)}
        )

    if amount > available:
        raise InsufficientBalanceError(
            "Insufficient balance",
            details={"amount": str(amount), "availableBalance": str(available)}
        )

    return PayoutAuthorization(amount=amount, available_balance=available, minimum_threshold=minimum)


def _new_reference() -> str:
    return f"PAYOUT-{uuid4().hex[:8].upper()}"


class PayoutService:
    """Service for partner payout requests."""

    def __init__(self, db: Session, earnings: EarningsService):
        self.db = db
        self.earnings = earnings

    def request_payout(
        self,
        partner: Partner,
        amount,
        payment_method_id: UUID,
        minimum_threshold,
        earning_id: Optional[UUID] = None
    ) -> PayoutRequest:
        """
        Create a PENDING payout request for a partner.

        When ``earning_id`` is given the request must match that earning,
        which moves to PROCESSED in the same commit.

        Raises:
            NotFoundError: Payment method is not the partner's
            ValidationError: Earning is not a pending earning of the partner,
                or its amount differs
            BelowThresholdError, InsufficientBalanceError, InvalidInputError:
                From the payout gate
            ConcurrentModificationError: Another request for the partner
                committed after the balance was read
        """
        amount = to_decimal(amount)

        payment_method = self.db.query(PaymentMethod).filter(
            PaymentMethod.id == payment_method_id,
            PaymentMethod.partner_id == partner.id
        ).first()
        if not payment_method:
            raise NotFoundError("Payment method not found")

        earning = None
        if earning_id:
            earning = self.db.query(PartnerEarning).filter(
                PartnerEarning.id == earning_id,
                PartnerEarning.partner_id == partner.id,
                PartnerEarning.status == EarningStatus.PENDING
            ).first()
            if not earning:
                raise ValidationError("earning_not_pending", "Invalid earning or earning is not pending")
            if to_money(earning.amount) != to_money(amount):
                raise ValidationError(
                    "amount_mismatch",
                    "Amount must match earning amount",
                    details={"amount": str(amount), "earningAmount": str(earning.amount)}
                )

        available = self.earnings.available_balance(partner.id)
        try:
            decision = authorize(amount, available, minimum_threshold)
        except (BelowThresholdError, InsufficientBalanceError, InvalidInputError) as e:
            logger.warning(
                "payout_rejected",
                partner_id=str(partner.id),
                reason=e.code,
                amount=str(amount),
                available_balance=str(available)
            )
            raise

        payout = PayoutRequest(
            partner_id=partner.id,
            payment_method_id=payment_method.id,
            earning_id=earning.id if earning else None,
            amount=to_money(decision.amount),
            status=PayoutStatus.PENDING,
            reference=_new_reference()
        )
        self.db.add(payout)

        if earning:
            earning.status = EarningStatus.PROCESSED
            earning.transaction_id = payout.reference

        # Version bump: concurrent requests for one partner conflict on commit
        partner.last_payout_at = datetime.utcnow()

        self._commit()
        self.db.refresh(payout)
        self.earnings.invalidate_cache(partner.id)

        logger.info(
            "payout_requested",
            payout_id=str(payout.id),
            partner_id=str(partner.id),
            amount=str(payout.amount),
            reference=payout.reference,
            remaining_balance=str(decision.remaining_balance)
        )
        return payout

    def list_payouts(self, partner: Partner) -> List[PayoutRequest]:
        return self.db.query(PayoutRequest).filter(
            PayoutRequest.partner_id == partner.id
        ).order_by(PayoutRequest.request_date.desc()).all()

    def get_payout(self, partner: Partner, payout_id: UUID) -> PayoutRequest:
        payout = self.db.query(PayoutRequest).filter(
            PayoutRequest.id == payout_id,
            PayoutRequest.partner_id == partner.id
        ).first()
        if not payout:
            raise NotFoundError("Payout request not found")
        return payout

    def transition_payout(
        self,
        payout_id: UUID,
        target: PayoutStatus,
        now: Optional[datetime] = None
    ) -> PayoutRequest:
        """Move a payout along PENDING -> APPROVED -> COMPLETED, or to REJECTED."""
        payout = self.db.get(PayoutRequest, payout_id)
        if not payout:
            raise NotFoundError("Payout request not found")

        if target not in ALLOWED_PAYOUT_TRANSITIONS[payout.status]:
            raise InvalidTransitionError(payout.status.value, target.value)

        previous = payout.status
        payout.status = target
        if target in (PayoutStatus.COMPLETED, PayoutStatus.REJECTED):
            payout.processed_date = now or datetime.utcnow()
        if target == PayoutStatus.COMPLETED and payout.earning is not None:
            payout.earning.status = EarningStatus.PAID
            payout.earning.paid_date = payout.processed_date

        self._commit()
        self.db.refresh(payout)
        self.earnings.invalidate_cache(payout.partner_id)

        logger.info(
            "payout_status_changed",
            payout_id=str(payout.id),
            partner_id=str(payout.partner_id),
            from_status=previous.value,
            to_status=target.value
        )
        return payout

    def _commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConcurrentModificationError("Partner balance changed by another request") from e
        except OperationalError as e:
            self.db.rollback()
            raise DependencyError("Database unavailable") from e
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError("integrity_error", "Invalid reference to a related resource") from e
        except Exception:
            self.db.rollback()
            raise
