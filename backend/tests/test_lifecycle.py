"""Tests for the experiment status state machine."""
import uuid
from datetime import datetime
from types import SimpleNamespace

import pytest

from app.errors import InvalidTransitionError
from app.models.experiment import ExperimentStatus
from app.services.lifecycle import ALLOWED_TRANSITIONS, apply_transition, can_transition

S = ExperimentStatus


def experiment(status, variants=(), end_date=None):
    return SimpleNamespace(status=status, variants=list(variants), end_date=end_date, winning_variant_id=None)


def variant(impressions, engagements):
    return SimpleNamespace(id=uuid.uuid4(), impressions=impressions, engagements=engagements)


@pytest.mark.parametrize("current,target", [
    (S.DRAFT, S.ACTIVE),
    (S.DRAFT, S.CANCELLED),
    (S.ACTIVE, S.PAUSED),
    (S.ACTIVE, S.COMPLETED),
    (S.ACTIVE, S.CANCELLED),
    (S.PAUSED, S.ACTIVE),
    (S.PAUSED, S.COMPLETED),
    (S.PAUSED, S.CANCELLED),
])
def test_allowed_transitions(current, target):
    exp = experiment(current)

    apply_transition(exp, target, now=datetime(2026, 10, 1))

    assert exp.status == target


@pytest.mark.parametrize("current,target", [
    (S.DRAFT, S.PAUSED),
    (S.DRAFT, S.COMPLETED),
    (S.ACTIVE, S.DRAFT),
    (S.PAUSED, S.DRAFT),
    (S.ACTIVE, S.ACTIVE),
])
def test_rejected_transitions(current, target):
    exp = experiment(current)

    with pytest.raises(InvalidTransitionError) as exc_info:
        apply_transition(exp, target)

    assert exp.status == current
    assert exc_info.value.details == {"currentStatus": current.value, "targetStatus": target.value}


@pytest.mark.parametrize("terminal", [S.COMPLETED, S.CANCELLED])
@pytest.mark.parametrize("target", list(S))
def test_terminal_states_never_move(terminal, target):
    """Test that nothing leaves COMPLETED or CANCELLED."""
    assert not can_transition(terminal, target)

    with pytest.raises(InvalidTransitionError):
        apply_transition(experiment(terminal), target)


def test_every_status_has_an_entry():
    assert set(ALLOWED_TRANSITIONS) == set(S)


def test_completion_selects_winner_and_stamps_end_date():
    x, y = variant(1000, 300), variant(1000, 100)
    exp = experiment(S.ACTIVE, [x, y])
    now = datetime(2026, 10, 18, 12, 0)

    apply_transition(exp, S.COMPLETED, now=now)

    assert exp.status == S.COMPLETED
    assert exp.winning_variant_id == x.id
    assert exp.end_date == now


def test_completion_keeps_planned_end_date():
    planned = datetime(2026, 10, 31)
    exp = experiment(S.PAUSED, [variant(10, 1), variant(10, 2)], end_date=planned)

    apply_transition(exp, S.COMPLETED, now=datetime(2026, 10, 18))

    assert exp.end_date == planned


def test_completion_without_impressions_has_no_winner():
    exp = experiment(S.ACTIVE, [variant(0, 0), variant(0, 0)])

    apply_transition(exp, S.COMPLETED)

    assert exp.winning_variant_id is None
    assert exp.end_date is not None


def test_cancel_does_not_pick_a_winner():
    exp = experiment(S.ACTIVE, [variant(100, 90), variant(100, 10)])

    apply_transition(exp, S.CANCELLED)

    assert exp.winning_variant_id is None
    assert exp.end_date is None
