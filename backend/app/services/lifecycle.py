"""Experiment status state machine."""
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from app.errors import InvalidTransitionError
from app.models.experiment import Experiment, ExperimentStatus
from app.services.winner import select_winner

S = ExperimentStatus

# DRAFT -> ACTIVE -> {PAUSED <-> ACTIVE, COMPLETED, CANCELLED}
ALLOWED_TRANSITIONS: Dict[ExperimentStatus, FrozenSet[ExperimentStatus]] = {
    S.DRAFT: frozenset({S.ACTIVE, S.CANCELLED}),
    S.ACTIVE: frozenset({S.PAUSED, S.COMPLETED, S.CANCELLED}),
    S.PAUSED: frozenset({S.ACTIVE, S.COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}


def can_transition(current: ExperimentStatus, target: ExperimentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def apply_transition(
    experiment: Experiment,
    target: ExperimentStatus,
    now: Optional[datetime] = None,
) -> Experiment:
    """
    Move an experiment to ``target`` and apply the transition's side effects.

    Only mutates the in-memory object; the caller commits status, end date
    and winner together in one unit of work.

    Raises:
        InvalidTransitionError: If the state machine does not allow the move
    """
    current = experiment.status
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)

    now = now or datetime.utcnow()
    experiment.status = target

    if target == S.COMPLETED:
        if experiment.end_date is None:
            experiment.end_date = now
        experiment.winning_variant_id = select_winner(experiment.variants)

    return experiment
