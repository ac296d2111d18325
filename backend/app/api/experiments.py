"""Experiment (A/B test) endpoints."""
from fastapi import APIRouter, Depends, Query
from math import ceil
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database import get_db
from app.middleware.auth import require_role
from app.models.experiment import ExperimentStatus
from app.models.user import User, UserRole
from app.schemas.base import Pagination
from app.schemas.experiment import (
    CounterIncrement,
    ExperimentCreate,
    ExperimentListResponse,
    ExperimentMetricsResponse,
    ExperimentResponse,
    ExperimentResultsResponse,
    StatusUpdate,
    VariantPerformanceResponse,
    VariantResponse,
)
from app.services.experiments import ExperimentService

router = APIRouter()

campaign_owner = require_role(UserRole.ADVERTISER, UserRole.ADMIN)
admin_only = require_role(UserRole.ADMIN)


@router.get("/campaigns/{campaign_id}/experiments", response_model=ExperimentListResponse)
def list_experiments(
    campaign_id: UUID,
    status: Optional[ExperimentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(campaign_owner),
    db: Session = Depends(get_db)
):
    """List a campaign's experiments, newest first."""
    experiments, total = ExperimentService(db).list_experiments(
        campaign_id, user, status=status, page=page, limit=limit
    )
    return ExperimentListResponse(
        experiments=[ExperimentResponse.model_validate(e) for e in experiments],
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=ceil(total / limit))
    )


@router.post("/campaigns/{campaign_id}/experiments", response_model=ExperimentResponse, status_code=201)
def create_experiment(
    campaign_id: UUID,
    experiment_data: ExperimentCreate,
    user: User = Depends(campaign_owner),
    db: Session = Depends(get_db)
):
    """
    Create an experiment in DRAFT with at least two variants.

    - Traffic allocations must sum to 100 (missing ones default to an even split)
    - Every creative must belong to the campaign
    """
    return ExperimentService(db).create_experiment(campaign_id, experiment_data, user)


@router.get("/campaigns/{campaign_id}/experiments/{experiment_id}", response_model=ExperimentResponse)
def get_experiment(
    campaign_id: UUID,
    experiment_id: UUID,
    user: User = Depends(campaign_owner),
    db: Session = Depends(get_db)
):
    return ExperimentService(db).get_experiment(campaign_id, experiment_id, user)


@router.put("/campaigns/{campaign_id}/experiments/{experiment_id}/status", response_model=ExperimentResponse)
@router.patch("/campaigns/{campaign_id}/experiments/{experiment_id}/status", response_model=ExperimentResponse)
def update_experiment_status(
    campaign_id: UUID,
    experiment_id: UUID,
    status_update: StatusUpdate,
    user: User = Depends(campaign_owner),
    db: Session = Depends(get_db)
):
    """
    Change an experiment's status.

    Completing an experiment stamps the end date (if unset) and records the
    variant with the best engagement rate as the winner.
    """
    return ExperimentService(db).transition_status(
        campaign_id,
        experiment_id,
        status_update.status,
        user,
        expected_version=status_update.version
    )


@router.get(
    "/campaigns/{campaign_id}/experiments/{experiment_id}/results",
    response_model=ExperimentResultsResponse
)
def get_experiment_results(
    campaign_id: UUID,
    experiment_id: UUID,
    user: User = Depends(campaign_owner),
    db: Session = Depends(get_db)
):
    """Per-variant engagement, conversion and lift against the control."""
    experiment, performance = ExperimentService(db).get_results(campaign_id, experiment_id, user)
    leader = next((p.variant_id for p in performance if p.is_leader), None)

    return ExperimentResultsResponse(
        experiment_id=experiment.id,
        status=experiment.status,
        winning_variant_id=experiment.winning_variant_id,
        leader_variant_id=leader,
        variants=[VariantPerformanceResponse.model_validate(p) for p in performance]
    )


@router.post(
    "/experiments/{experiment_id}/variants/{variant_id}/counters",
    response_model=VariantResponse
)
def increment_variant_counters(
    experiment_id: UUID,
    variant_id: UUID,
    deltas: CounterIncrement,
    user: User = Depends(admin_only),
    db: Session = Depends(get_db)
):
    """Record delivered impressions, engagements and conversions for a variant."""
    return ExperimentService(db).increment_counters(experiment_id, variant_id, deltas)


@router.get("/admin/experiments/metrics", response_model=ExperimentMetricsResponse)
def get_experiment_metrics(
    user: User = Depends(admin_only),
    db: Session = Depends(get_db)
):
    return ExperimentService(db).get_metrics()
