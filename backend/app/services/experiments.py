"""Experimentation service for creative A/B tests."""
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.errors import (
    ConcurrentModificationError,
    CountersFrozenError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from app.middleware.logging import get_logger
from app.models.campaign import AdCreative, Campaign
from app.models.experiment import COUNTING_STATUSES, Experiment, ExperimentStatus, Variant
from app.models.user import User, UserRole
from app.schemas.experiment import CounterIncrement, ExperimentCreate
from app.services.allocation import validate_allocation
from app.services.lifecycle import apply_transition
from app.services.winner import VariantPerformance, evaluate_variants

logger = get_logger()


class ExperimentService:
    """Service for managing creative experiments within campaigns."""

    def __init__(self, db: Session):
        self.db = db

    def _get_campaign(self, campaign_id: UUID, user: User) -> Campaign:
        """Fetch a campaign the user may act on; foreign campaigns look missing."""
        query = self.db.query(Campaign).filter(Campaign.id == campaign_id)
        if user.role != UserRole.ADMIN:
            query = query.filter(Campaign.advertiser_id == user.id)

        campaign = query.first()
        if not campaign:
            raise NotFoundError("Campaign not found")
        return campaign

    def _get_experiment(self, campaign_id: UUID, experiment_id: UUID, user: User) -> Experiment:
        self._get_campaign(campaign_id, user)

        experiment = self.db.query(Experiment).options(
            selectinload(Experiment.variants)
        ).filter(
            Experiment.id == experiment_id,
            Experiment.campaign_id == campaign_id
        ).first()

        if not experiment:
            raise NotFoundError("Experiment not found")
        return experiment

    def create_experiment(self, campaign_id: UUID, data: ExperimentCreate, user: User) -> Experiment:
        """
        Create a DRAFT experiment and its variants in one transaction.

        Args:
            campaign_id: Owning campaign
            data: Validated request body
            user: Caller; must own the campaign unless admin

        Returns:
            Created Experiment with variants loaded

        Raises:
            NotFoundError: Campaign missing or not owned by the caller
            ValidationError: Allocation or creative membership is invalid
        """
        self._get_campaign(campaign_id, user)

        creative_ids = {
            row.id for row in self.db.query(AdCreative.id).filter(AdCreative.campaign_id == campaign_id)
        }
        allocations = validate_allocation(data.variants, creative_ids)

        experiment = Experiment(
            campaign_id=campaign_id,
            name=data.name,
            description=data.description,
            status=ExperimentStatus.DRAFT,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        experiment.variants = [
            Variant(
                ad_creative_id=allocation.ad_creative_id,
                name=allocation.name,
                position=position,
                traffic_allocation=allocation.traffic_allocation,
                impressions=0,
                engagements=0,
                conversions=0,
            )
            for position, allocation in enumerate(allocations)
        ]

        self.db.add(experiment)
        self._commit()
        self.db.refresh(experiment)

        logger.info(
            "experiment_created",
            experiment_id=str(experiment.id),
            campaign_id=str(campaign_id),
            user_id=str(user.id),
            variant_count=len(allocations)
        )
        return experiment

    def list_experiments(
        self,
        campaign_id: UUID,
        user: User,
        status: Optional[ExperimentStatus] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Experiment], int]:
        """List a campaign's experiments, newest first. Returns (page, total)."""
        self._get_campaign(campaign_id, user)

        query = self.db.query(Experiment).filter(Experiment.campaign_id == campaign_id)
        if status:
            query = query.filter(Experiment.status == status)

        total = query.count()
        experiments = query.options(
            selectinload(Experiment.variants)
        ).order_by(Experiment.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

        return experiments, total

    def get_experiment(self, campaign_id: UUID, experiment_id: UUID, user: User) -> Experiment:
        return self._get_experiment(campaign_id, experiment_id, user)

    def transition_status(
        self,
        campaign_id: UUID,
        experiment_id: UUID,
        target: ExperimentStatus,
        user: User,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Experiment:
        """
        Change an experiment's status.

        Status, end date and winner are written in a single UPDATE guarded by
        the version column, so a concurrent writer makes this call fail
        instead of being overwritten.

        Raises:
            NotFoundError: Campaign or experiment missing / not owned
            InvalidTransitionError: State machine rejects the move
            ConcurrentModificationError: Version changed since it was read
        """
        experiment = self._get_experiment(campaign_id, experiment_id, user)

        if expected_version is not None and expected_version != experiment.version:
            raise ConcurrentModificationError(
                "Experiment was modified by another request",
                details={"expectedVersion": expected_version, "currentVersion": experiment.version}
            )

        previous = experiment.status
        apply_transition(experiment, target, now)
        self._commit()
        self.db.refresh(experiment)

        logger.info(
            "experiment_status_changed",
            experiment_id=str(experiment.id),
            user_id=str(user.id),
            from_status=previous.value,
            to_status=target.value,
            version=experiment.version
        )
        if target == ExperimentStatus.COMPLETED:
            logger.info(
                "experiment_winner_selected",
                experiment_id=str(experiment.id),
                winning_variant_id=str(experiment.winning_variant_id) if experiment.winning_variant_id else None
            )
        return experiment

    def get_results(
        self, campaign_id: UUID, experiment_id: UUID, user: User
    ) -> Tuple[Experiment, List[VariantPerformance]]:
        """Current per-variant performance, computed from a snapshot of the counters."""
        experiment = self._get_experiment(campaign_id, experiment_id, user)
        return experiment, evaluate_variants(experiment.variants)

    def increment_counters(self, experiment_id: UUID, variant_id: UUID, deltas: CounterIncrement) -> Variant:
        """
        Add delivery counts to a variant.

        Applied as one ``SET x = x + n`` UPDATE filtered on a running
        experiment, so counters only grow and stop moving once the
        experiment is closed.

        Raises:
            ValidationError: A delta is negative
            NotFoundError: Unknown experiment / variant pair
            CountersFrozenError: Experiment is not ACTIVE or PAUSED
        """
        negative = {k: v for k, v in deltas.model_dump().items() if v < 0}
        if negative:
            raise ValidationError(
                "negative_counter",
                "Counter increments must not be negative",
                details=negative
            )

        running = select(Experiment.id).where(
            Experiment.id == experiment_id,
            Experiment.status.in_(COUNTING_STATUSES)
        )
        stmt = update(Variant).where(
            Variant.id == variant_id,
            Variant.experiment_id == experiment_id,
            Variant.experiment_id.in_(running)
        ).values(
            impressions=Variant.impressions + deltas.impressions,
            engagements=Variant.engagements + deltas.engagements,
            conversions=Variant.conversions + deltas.conversions,
            updated_at=datetime.utcnow()
        ).execution_options(synchronize_session=False)

        try:
            result = self.db.execute(stmt)
        except OperationalError as e:
            self.db.rollback()
            raise DependencyError("Database unavailable") from e

        if result.rowcount == 0:
            self.db.rollback()
            variant = self.db.query(Variant).filter(
                Variant.id == variant_id,
                Variant.experiment_id == experiment_id
            ).first()
            if not variant:
                raise NotFoundError("Variant not found")
            raise CountersFrozenError(
                "Counters can only change while the experiment is running",
                details={"status": variant.experiment.status.value}
            )

        self._commit()
        variant = self.db.get(Variant, variant_id)
        self.db.refresh(variant)

        logger.info(
            "variant_counters_incremented",
            experiment_id=str(experiment_id),
            variant_id=str(variant_id),
            impressions=deltas.impressions,
            engagements=deltas.engagements,
            conversions=deltas.conversions
        )
        return variant

    def get_metrics(self) -> Dict:
        """Platform-wide experiment overview for administrators."""
        rows = self.db.query(
            Experiment.status, func.count(Experiment.id)
        ).group_by(Experiment.status).all()
        by_status = {status.value: count for status, count in rows}

        impressions, engagements, conversions = self.db.query(
            func.coalesce(func.sum(Variant.impressions), 0),
            func.coalesce(func.sum(Variant.engagements), 0),
            func.coalesce(func.sum(Variant.conversions), 0)
        ).one()

        average_conversion_rate = (conversions / impressions * 100) if impressions > 0 else 0.0

        return {
            "total_tests": sum(by_status.values()),
            "active_tests": by_status.get(ExperimentStatus.ACTIVE.value, 0),
            "completed_tests": by_status.get(ExperimentStatus.COMPLETED.value, 0),
            "tests_by_status": by_status,
            "total_impressions": int(impressions),
            "total_engagements": int(engagements),
            "total_conversions": int(conversions),
            "average_conversion_rate": round(average_conversion_rate, 2)
        }

    def _commit(self) -> None:
        """Commit the unit of work, translating storage failures."""
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConcurrentModificationError("Experiment was modified by another request") from e
        except OperationalError as e:
            self.db.rollback()
            raise DependencyError("Database unavailable") from e
        except Exception:
            self.db.rollback()
            raise
