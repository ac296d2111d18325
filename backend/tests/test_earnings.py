"""Tests for the earnings calculator and earnings service."""
import json
import uuid
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import redis

from app.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from app.models.partner import EarningStatus, PayoutRequest, PayoutStatus
from app.services.cache import EarningsCache
from app.services.earnings import EarningsService, compute_amount, summary_window_start, to_money

from conftest import make_earning

BASE_RATE = Decimal("0.001")
NOW = datetime(2026, 10, 18, 9, 30)


def test_compute_amount_is_exact():
    """Test that 1M impressions at 0.001 and 30% is exactly 300.00 on every run."""
    amounts = {to_money(compute_amount(1_000_000, 0, 0.3, BASE_RATE)) for _ in range(100)}

    assert amounts == {Decimal("300.00")}
    assert str(amounts.pop()) == "300.00"


def test_compute_amount_ignores_engagements():
    assert compute_amount(10_000, 0, "0.25", BASE_RATE) == compute_amount(10_000, 9_999, "0.25", BASE_RATE)


def test_compute_amount_keeps_full_precision():
    """Test that rounding is left to the caller."""
    amount = compute_amount(1, 0, "0.3", BASE_RATE)

    assert amount == Decimal("0.0003")
    assert to_money(amount) == Decimal("0.00")


def test_to_money_rounds_half_up():
    assert to_money(Decimal("0.005")) == Decimal("0.01")
    assert to_money(Decimal("2.675")) == Decimal("2.68")


@pytest.mark.parametrize("impressions,engagements,rate", [
    (-1, 0, "0.3"),
    (10, -5, "0.3"),
    (10, 0, "1.01"),
    (10, 0, "-0.1"),
])
def test_compute_amount_rejects_bad_input(impressions, engagements, rate):
    with pytest.raises(InvalidInputError):
        compute_amount(impressions, engagements, rate, BASE_RATE)


@pytest.mark.parametrize("period,expected", [
    ("month", datetime(2026, 10, 1)),
    ("quarter", datetime(2026, 10, 1)),
    ("year", datetime(2026, 1, 1)),
    ("all", None),
])
def test_summary_window_start(period, expected):
    assert summary_window_start(period, NOW) == expected


def test_summary_window_start_mid_quarter():
    assert summary_window_start("quarter", datetime(2026, 8, 20)) == datetime(2026, 7, 1)


def test_record_period_snapshots_commission(db, partner):
    service = EarningsService(db)

    earning = service.record_period(
        partner.id, datetime(2026, 9, 1), datetime(2026, 10, 1), 1_000_000, 4_200, BASE_RATE
    )

    assert earning.amount == Decimal("300.00")
    assert earning.commission_rate == Decimal("0.3")
    assert earning.status == EarningStatus.PENDING
    assert earning.currency == "USD"

    # Later rate changes do not touch recorded periods
    partner.commission_rate = Decimal("0.5")
    db.commit()
    db.refresh(earning)
    assert earning.amount == Decimal("300.00")


def test_record_period_unknown_partner(db):
    with pytest.raises(NotFoundError):
        EarningsService(db).record_period(uuid.uuid4(), datetime(2026, 9, 1), datetime(2026, 10, 1), 1, 0, BASE_RATE)


def test_record_period_rejects_inverted_period(db, partner):
    with pytest.raises(InvalidInputError):
        EarningsService(db).record_period(partner.id, datetime(2026, 10, 1), datetime(2026, 9, 1), 1, 0, BASE_RATE)


def test_earning_state_machine(db, partner):
    service = EarningsService(db)
    earning = make_earning(db, partner, "80.00", datetime(2026, 9, 1), datetime(2026, 10, 1))

    service.transition_earning(earning.id, EarningStatus.PROCESSED, transaction_id="TX-1")
    paid = service.transition_earning(earning.id, EarningStatus.PAID, now=NOW)

    assert paid.status == EarningStatus.PAID
    assert paid.paid_date == NOW
    assert paid.transaction_id == "TX-1"

    with pytest.raises(InvalidTransitionError):
        service.transition_earning(earning.id, EarningStatus.CANCELLED)


def test_earning_cannot_skip_processing(db, partner):
    earning = make_earning(db, partner, "80.00", datetime(2026, 9, 1), datetime(2026, 10, 1))

    with pytest.raises(InvalidTransitionError):
        EarningsService(db).transition_earning(earning.id, EarningStatus.PAID)


def test_available_balance_subtracts_claiming_payouts(db, partner, payment_method):
    make_earning(db, partner, "120.00", datetime(2026, 8, 1), datetime(2026, 9, 1))
    make_earning(db, partner, "30.50", datetime(2026, 9, 1), datetime(2026, 10, 1))
    make_earning(db, partner, "999.00", datetime(2026, 7, 1), datetime(2026, 8, 1), status=EarningStatus.PAID)

    for amount, status, reference in [
        ("50.00", PayoutStatus.PENDING, "PAYOUT-00000001"),
        ("20.00", PayoutStatus.REJECTED, "PAYOUT-00000002"),
        ("30.00", PayoutStatus.COMPLETED, "PAYOUT-00000004"),
    ]:
        db.add(PayoutRequest(
            partner_id=partner.id,
            payment_method_id=payment_method.id,
            amount=Decimal(amount),
            status=status,
            reference=reference
        ))
    db.commit()

    assert EarningsService(db).available_balance(partner.id) == Decimal("70.50")


def test_available_balance_never_negative(db, partner, payment_method):
    db.add(PayoutRequest(
        partner_id=partner.id,
        payment_method_id=payment_method.id,
        amount=Decimal("75.00"),
        status=PayoutStatus.APPROVED,
        reference="PAYOUT-00000003"
    ))
    db.commit()

    assert EarningsService(db).available_balance(partner.id) == Decimal("0.00")


def test_summary_figures(db, partner):
    make_earning(db, partner, "100.00", datetime(2026, 10, 1), datetime(2026, 11, 1))
    make_earning(db, partner, "80.00", datetime(2026, 9, 1), datetime(2026, 10, 1), status=EarningStatus.PROCESSED)
    make_earning(
        db, partner, "40.00", datetime(2026, 2, 1), datetime(2026, 3, 1),
        status=EarningStatus.PAID, paid_date=datetime(2026, 3, 15)
    )
    make_earning(db, partner, "500.00", datetime(2025, 12, 1), datetime(2026, 1, 1))
    make_earning(db, partner, "70.00", datetime(2026, 10, 1), datetime(2026, 11, 1), status=EarningStatus.CANCELLED)

    summary = EarningsService(db).get_summary(partner, period="year", now=NOW)

    assert summary["total_earnings"] == Decimal("220.00")
    assert summary["current_month_earnings"] == Decimal("100.00")
    assert summary["previous_month_earnings"] == Decimal("80.00")
    assert summary["percentage_change"] == 25.0
    assert summary["year_to_date_earnings"] == Decimal("220.00")
    assert summary["projected_earnings"] == Decimal("264.00")
    assert summary["pending_payments"] == Decimal("600.00")
    assert summary["available_balance"] == Decimal("600.00")
    assert summary["last_payment_amount"] == Decimal("40.00")
    assert summary["last_payment_date"] == datetime(2026, 3, 15)


def test_summary_period_all(db, partner):
    make_earning(db, partner, "10.00", datetime(2024, 1, 1), datetime(2024, 2, 1))
    make_earning(db, partner, "15.00", datetime(2026, 10, 1), datetime(2026, 11, 1))

    service = EarningsService(db)

    assert service.get_summary(partner, period="all", now=NOW)["total_earnings"] == Decimal("25.00")
    assert service.get_summary(partner, period="month", now=NOW)["total_earnings"] == Decimal("15.00")


def test_summary_rejects_unknown_period(db, partner):
    with pytest.raises(InvalidInputError):
        EarningsService(db).get_summary(partner, period="decade")


def test_summary_served_from_cache(db, partner, redis_mock):
    cached = {"period": "year", "total_earnings": "12.00"}
    redis_mock.get.return_value = json.dumps(cached)

    summary = EarningsService(db, cache=EarningsCache(redis_mock)).get_summary(partner)

    assert summary == cached


def test_summary_written_to_cache(db, partner, redis_mock):
    make_earning(db, partner, "15.00", datetime(2026, 10, 1), datetime(2026, 11, 1))

    EarningsService(db, cache=EarningsCache(redis_mock, ttl=60)).get_summary(partner, period="all")

    key, ttl, payload = redis_mock.setex.call_args[0]
    assert key == f"partner:earnings:summary:{partner.id}:all"
    assert ttl == 60
    assert json.loads(payload)["total_earnings"] == "15.00"


def test_summary_falls_back_when_redis_down(db, partner):
    broken = MagicMock()
    broken.get.side_effect = redis.ConnectionError("connection refused")
    broken.setex.side_effect = redis.ConnectionError("connection refused")
    make_earning(db, partner, "15.00", datetime(2026, 10, 1), datetime(2026, 11, 1))

    summary = EarningsService(db, cache=EarningsCache(broken)).get_summary(partner, period="all")

    assert summary["total_earnings"] == Decimal("15.00")


def test_recording_invalidates_cache(db, partner, redis_mock):
    stale_key = f"partner:earnings:summary:{partner.id}:year"
    redis_mock.scan_iter.return_value = iter([stale_key])

    EarningsService(db, cache=EarningsCache(redis_mock)).record_period(
        partner.id, datetime(2026, 9, 1), datetime(2026, 10, 1), 1000, 0, BASE_RATE
    )

    redis_mock.delete.assert_called_once_with(stale_key)
