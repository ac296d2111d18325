"""Shared fixtures: SQLite database, mocked Redis and small data factories."""
import os

# Settings are read on first import of the app, so point them at test
# resources before anything from app is imported.
os.environ["DATABASE_URL"] = "sqlite:///./test_dooh.db"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine, get_db, get_redis
from app.main import app
from app.middleware.auth import create_user_with_api_key
from app.models.campaign import AdCreative, Campaign
from app.models.experiment import Experiment, ExperimentStatus, Variant
from app.models.partner import Partner, PartnerEarning, PaymentMethod, PaymentMethodType, EarningStatus
from app.models.user import UserRole

ADVERTISER_KEY = "advertiser-key-123"
OTHER_ADVERTISER_KEY = "other-advertiser-key-456"
PARTNER_KEY = "partner-key-789"
ADMIN_KEY = "admin-key-000"


@pytest.fixture
def db():
    """Create test database session."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def redis_mock():
    """Redis stand-in: empty cache, first request in every rate-limit window."""
    client = MagicMock()
    client.get.return_value = None
    client.scan_iter.return_value = iter([])
    client.pipeline.return_value.execute.return_value = [1, True]
    return client


@pytest.fixture
def client(db, redis_mock):
    """TestClient sharing the test session and the mocked Redis."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: redis_mock

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def advertiser(db):
    return create_user_with_api_key(db, ADVERTISER_KEY, "ads@example.com", UserRole.ADVERTISER)


@pytest.fixture
def other_advertiser(db):
    return create_user_with_api_key(db, OTHER_ADVERTISER_KEY, "rival@example.com", UserRole.ADVERTISER)


@pytest.fixture
def admin(db):
    return create_user_with_api_key(db, ADMIN_KEY, "ops@example.com", UserRole.ADMIN)


@pytest.fixture
def campaign(db, advertiser):
    """Campaign owned by ``advertiser`` with three creatives."""
    campaign = Campaign(advertiser_id=advertiser.id, name="Autumn launch")
    campaign.creatives = [AdCreative(name=f"Creative {i}") for i in range(3)]
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return campaign


@pytest.fixture
def partner(db):
    user = create_user_with_api_key(db, PARTNER_KEY, "screens@example.com", UserRole.PARTNER)
    partner = Partner(user_id=user.id, company_name="Mall Screens Ltd", commission_rate=Decimal("0.3"))
    db.add(partner)
    db.commit()
    db.refresh(partner)
    return partner


@pytest.fixture
def payment_method(db, partner):
    method = PaymentMethod(partner_id=partner.id, type=PaymentMethodType.BANK_TRANSFER, label="Main account", is_default=True)
    db.add(method)
    db.commit()
    db.refresh(method)
    return method


def make_experiment(db, campaign, status=ExperimentStatus.ACTIVE, counters=((0, 0), (0, 0)), end_date=None):
    """Persist an experiment with one variant per (impressions, engagements) pair."""
    experiment = Experiment(
        campaign_id=campaign.id,
        name="Headline test",
        status=status,
        start_date=datetime(2026, 9, 1),
        end_date=end_date,
    )
    share = Decimal("100") / len(counters)
    experiment.variants = [
        Variant(
            ad_creative_id=campaign.creatives[i % len(campaign.creatives)].id,
            name=f"Variant {i}",
            position=i,
            traffic_allocation=share.quantize(Decimal("0.01")),
            impressions=impressions,
            engagements=engagements,
            conversions=0,
        )
        for i, (impressions, engagements) in enumerate(counters)
    ]
    db.add(experiment)
    db.commit()
    db.refresh(experiment)
    return experiment


def make_earning(db, partner, amount, period_start, period_end, status=EarningStatus.PENDING, paid_date=None):
    earning = PartnerEarning(
        partner_id=partner.id,
        period_start=period_start,
        period_end=period_end,
        total_impressions=0,
        total_engagements=0,
        commission_rate=partner.commission_rate,
        amount=Decimal(amount),
        status=status,
        paid_date=paid_date,
    )
    db.add(earning)
    db.commit()
    db.refresh(earning)
    return earning
