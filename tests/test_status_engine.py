"""
Status Engine tests — declared lifecycles, transitions, presentation.

Pure functions; the autouse DB fixture is irrelevant here.
"""

import itertools

import pytest

from wsjfp.core.exceptions import InvalidTransition, UnknownStateValue
from wsjfp.models.workflow import (
    COMMITMENT,
    ENTITY_TYPES,
    FALLBACK_COLOR,
    FEATURE,
    PLANNING,
    PROJECT,
    STATE_TRANSITIONS,
    StateHandle,
    normalize_status,
)
from wsjfp.services import status_engine


class _Entity:
    def __init__(self, entity_type, status=None):
        self.__status_type__ = entity_type
        self.status = status
        self.id = 1


TRANSITION_CASES = [
    (entity_type, source, target)
    for entity_type in ENTITY_TYPES
    for source, target in itertools.product(status_engine.declared_states(entity_type), repeat=2)
]


# ── Declared states ──────────────────────────────────────────────────────────


@pytest.mark.parametrize("entity_type", ENTITY_TYPES)
def test_default_state_is_declared(entity_type):
    default = status_engine.default_state(entity_type)
    assert default in status_engine.declared_states(entity_type)


def test_defaults_per_type():
    assert status_engine.default_state(FEATURE) == "in-planning"
    assert status_engine.default_state(PROJECT) == "in-planning"
    assert status_engine.default_state(PLANNING) == "in-planning"
    assert status_engine.default_state(COMMITMENT) == "suggested"


def test_declared_order():
    assert status_engine.declared_states(PROJECT) == (
        "in-planning", "in-realization", "in-approval", "closed",
    )


def test_unknown_entity_type_raises():
    with pytest.raises(ValueError):
        status_engine.default_state("invoice")
    assert status_engine.is_valid_state("invoice", "in-planning") is False


@pytest.mark.parametrize("entity_type", ENTITY_TYPES)
def test_every_transition_target_is_declared(entity_type):
    declared = set(status_engine.declared_states(entity_type))
    for source, targets in STATE_TRANSITIONS[entity_type].items():
        assert source in declared
        assert set(targets) <= declared


@pytest.mark.parametrize("entity_type", ENTITY_TYPES)
def test_no_self_transitions_declared(entity_type):
    for state in status_engine.declared_states(entity_type):
        assert state not in status_engine.allowed_transitions(entity_type, state)


def test_terminal_states_have_no_targets():
    assert status_engine.allowed_transitions(FEATURE, "deleted") == set()
    assert status_engine.allowed_transitions(PROJECT, "closed") == set()
    assert status_engine.allowed_transitions(PLANNING, "completed") == set()
    assert status_engine.allowed_transitions(COMMITMENT, "completed") == set()


def test_unknown_current_has_no_targets():
    assert status_engine.allowed_transitions(FEATURE, "bogus") == set()
    assert status_engine.allowed_transitions(FEATURE, None) == set()


def test_feature_transitions_from_in_planning():
    assert status_engine.allowed_transitions(FEATURE, "in-planning") == {
        "approved", "rejected", "obsolete",
    }


# ── validate ─────────────────────────────────────────────────────────────────


def test_validate_returns_canonical():
    assert status_engine.validate(FEATURE, "  approved ") == "approved"


def test_validate_accepts_state_handle():
    handle = status_engine.class_for(FEATURE, "approved")
    assert status_engine.validate(FEATURE, handle) == "approved"


@pytest.mark.parametrize("value", ["", None, "Approved", "done", 42])
def test_validate_rejects_undeclared(value):
    with pytest.raises(UnknownStateValue) as exc:
        status_engine.validate(FEATURE, value)
    assert exc.value.details == {"status": "Invalid status."}


def test_validate_is_type_specific():
    with pytest.raises(UnknownStateValue):
        status_engine.validate(COMMITMENT, "approved")


# ── transitions ──────────────────────────────────────────────────────────────


def test_transition_declared_move():
    entity = _Entity(FEATURE, "in-planning")
    assert status_engine.transition(entity, "approved") is True
    assert entity.status == "approved"


def test_transition_same_state_is_noop():
    entity = _Entity(PROJECT, "in-realization")
    assert status_engine.transition(entity, "in-realization") is False
    assert entity.status == "in-realization"


def test_transition_undeclared_move_leaves_entity():
    entity = _Entity(FEATURE, "in-planning")
    with pytest.raises(InvalidTransition) as exc:
        status_engine.transition(entity, "implemented")
    assert entity.status == "in-planning"
    assert exc.value.details == {"status": "Status transition not allowed."}
    assert exc.value.message == "Status transition not allowed."


def test_transition_to_unknown_value_is_invalid():
    entity = _Entity(PLANNING, "in-planning")
    with pytest.raises(InvalidTransition):
        status_engine.transition(entity, "cancelled")
    assert entity.status == "in-planning"


def test_transition_from_unset_uses_default():
    entity = _Entity(COMMITMENT, None)
    assert status_engine.transition(entity, "accepted") is True


def test_transition_accepts_state_handle():
    entity = _Entity(COMMITMENT, "suggested")
    handle = StateHandle(COMMITMENT, "completed", "Erledigt", "x")
    assert status_engine.transition(entity, handle) is True
    assert entity.status == "completed"


def test_transition_without_lifecycle_raises():
    class Plain:
        status = "x"

    with pytest.raises(ValueError):
        status_engine.transition(Plain(), "y")


def test_feature_lifecycle_path_to_deleted():
    entity = _Entity(FEATURE, "in-planning")
    for target in ("approved", "implemented", "archived", "deleted"):
        assert status_engine.transition(entity, target) is True
    with pytest.raises(InvalidTransition):
        status_engine.transition(entity, "in-planning")


def test_commitment_cannot_go_back():
    entity = _Entity(COMMITMENT, "accepted")
    with pytest.raises(InvalidTransition):
        status_engine.transition(entity, "suggested")


@pytest.mark.parametrize("entity_type,source,target", TRANSITION_CASES)
def test_transition_matches_table(entity_type, source, target):
    entity = _Entity(entity_type, source)
    if target == source:
        assert status_engine.transition(entity, target) is False
        assert entity.status == source
    elif target in STATE_TRANSITIONS[entity_type][source]:
        assert status_engine.transition(entity, target) is True
        assert entity.status == target
    else:
        with pytest.raises(InvalidTransition):
            status_engine.transition(entity, target)
        assert entity.status == source


def test_check_transition_reports_noop():
    assert status_engine.check_transition(PROJECT, "closed", "closed") is False
    assert status_engine.check_transition(PROJECT, "in-approval", "closed") is True


# ── presentation ─────────────────────────────────────────────────────────────


def test_presentation_details_known():
    assert status_engine.presentation_details(FEATURE, "approved") == {
        "value": "approved", "label": "Genehmigt", "color": "bg-green-100 text-green-800",
    }


def test_presentation_details_unknown_falls_back():
    details = status_engine.presentation_details(FEATURE, "on-hold")
    assert details == {"value": "on-hold", "label": "On hold", "color": FALLBACK_COLOR}


def test_presentation_details_none():
    assert status_engine.presentation_details(FEATURE, None) is None
    assert status_engine.presentation_details(FEATURE, None, default="in-planning")["label"] == "In Planung"


def test_presentation_details_handle():
    handle = status_engine.class_for(PLANNING, "in-execution")
    assert status_engine.presentation_details(PLANNING, handle)["value"] == "in-execution"


def test_class_for_round_trip():
    for entity_type in ENTITY_TYPES:
        for value in status_engine.declared_states(entity_type):
            handle = status_engine.class_for(entity_type, value)
            assert str(handle) == value
            assert normalize_status(handle) == value
    assert status_engine.class_for(FEATURE, "nope") is None


def test_state_options_reachable_only():
    options = status_engine.state_options(PROJECT, "in-planning")
    assert [o["value"] for o in options] == ["in-realization"]
    assert len(status_engine.state_options(PROJECT)) == 4
