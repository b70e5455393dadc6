"""
State history tests — one record on create, one per realized change,
append-only, and the flush guard on direct status writes.
"""

import itertools

import pytest
from sqlalchemy import select

from wsjfp.core.exceptions import InvalidTransition, UnknownStateValue
from wsjfp.models import db
from wsjfp.models.feature import Feature
from wsjfp.models.history import StateHistory
from wsjfp.models.planning import Commitment
from wsjfp.models.workflow import ENTITY_TYPES, FEATURE, PLANNING, PROJECT, STATE_TRANSITIONS
from wsjfp.services import status_engine
from wsjfp.services.helpers.scoped_queries import scoped_all
from wsjfp.services.status_repair import status_repair_session
from wsjfp.tenancy import TenantContext


def _history(ctx, entity_type, entity_id):
    return scoped_all(
        select(StateHistory)
        .where(StateHistory.entity_type == entity_type, StateHistory.entity_id == entity_id)
        .order_by(StateHistory.id),
        ctx,
    )


def test_create_writes_initial_record(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    rows = _history(user, "feature", feature.id)
    assert len(rows) == 1
    assert rows[0].from_status is None
    assert rows[0].to_status == "in-planning"
    assert rows[0].tenant_id == feature.tenant_id


def test_chain_of_transitions(make_user, make_feature):
    """N realized changes → N+1 records, each from = previous to."""
    user = make_user()
    feature = make_feature(user)
    for target in ("approved", "implemented", "archived"):
        assert status_engine.transition(feature, target)
        db.session.commit()

    rows = _history(user, "feature", feature.id)
    assert [r.to_status for r in rows] == ["in-planning", "approved", "implemented", "archived"]
    for previous, current in zip(rows, rows[1:]):
        assert current.from_status == previous.to_status
    assert rows[-1].to_status == feature.status


def test_noop_transition_writes_nothing(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    assert status_engine.transition(feature, "in-planning") is False
    db.session.commit()
    assert len(_history(user, "feature", feature.id)) == 1


def test_other_field_update_writes_nothing(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    feature.name = "Renamed"
    db.session.commit()
    assert len(_history(user, "feature", feature.id)) == 1


def test_rejected_transition_writes_nothing(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    with pytest.raises(InvalidTransition):
        status_engine.transition(feature, "deleted")
    db.session.commit()
    assert len(_history(user, "feature", feature.id)) == 1
    assert feature.status == "in-planning"


def test_direct_illegal_assignment_blocked_on_flush(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    feature.status = "deleted"
    with pytest.raises(InvalidTransition):
        db.session.flush()
    db.session.rollback()
    assert len(_history(user, "feature", feature.id)) == 1


def test_direct_undeclared_value_blocked_on_flush(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    feature.status = "done"
    with pytest.raises(UnknownStateValue):
        db.session.flush()
    db.session.rollback()


def test_new_entity_with_undeclared_status_rejected(make_user, make_project):
    user = make_user()
    project = make_project(user)
    db.session.add(Feature(
        tenant_id=project.tenant_id, project_id=project.id, jira_key="X-1", name="x", status="bogus",
    ))
    with pytest.raises(UnknownStateValue):
        db.session.flush()
    db.session.rollback()


def test_commitment_history(make_user, make_feature, make_planning):
    user = make_user()
    feature = make_feature(user)
    planning = make_planning(user, features=[feature])
    commitment = Commitment(
        tenant_id=planning.tenant_id, planning_id=planning.id, feature_id=feature.id,
        user_id=user.id, commitment_type="A",
    )
    db.session.add(commitment)
    db.session.commit()
    assert commitment.status == "suggested"

    status_engine.transition(commitment, "accepted")
    db.session.commit()

    rows = _history(user, "commitment", commitment.id)
    assert [(r.from_status, r.to_status) for r in rows] == [(None, "suggested"), ("suggested", "accepted")]


def test_history_is_scoped(make_user, make_feature):
    alice, bob = make_user(), make_user()
    feature = make_feature(alice)
    assert _history(TenantContext.for_user(bob), "feature", feature.id) == []


def test_history_rows_cannot_be_updated(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    row = _history(user, "feature", feature.id)[0]
    row.to_status = "approved"
    with pytest.raises(RuntimeError):
        db.session.flush()
    db.session.rollback()


def test_history_rows_cannot_be_deleted(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    row = _history(user, "feature", feature.id)[0]
    db.session.delete(row)
    with pytest.raises(RuntimeError):
        db.session.flush()
    db.session.rollback()


def test_history_to_dict_carries_presentation(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    data = _history(user, "feature", feature.id)[0].to_dict()
    assert data["from_status_details"] is None
    assert data["to_status_details"]["label"] == "In Planung"


# ── several moves before one commit ──────────────────────────────────────────


def test_two_moves_before_one_commit(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    assert status_engine.transition(feature, "approved") is True
    assert status_engine.transition(feature, "implemented") is True
    db.session.commit()

    assert feature.status == "implemented"
    rows = _history(user, "feature", feature.id)
    assert [(r.from_status, r.to_status) for r in rows] == [
        (None, "in-planning"), ("in-planning", "approved"), ("approved", "implemented"),
    ]


def test_commitment_steps_are_not_collapsed(make_user, make_feature, make_planning):
    user = make_user()
    feature = make_feature(user)
    planning = make_planning(user, features=[feature])
    commitment = Commitment(
        tenant_id=planning.tenant_id, planning_id=planning.id, feature_id=feature.id,
        user_id=user.id, commitment_type="B",
    )
    db.session.add(commitment)
    db.session.commit()

    status_engine.transition(commitment, "accepted")
    status_engine.transition(commitment, "completed")
    db.session.commit()

    rows = _history(user, "commitment", commitment.id)
    assert [r.to_status for r in rows] == ["suggested", "accepted", "completed"]


def test_rejected_second_move_keeps_first(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    status_engine.transition(feature, "rejected")
    with pytest.raises(InvalidTransition):
        status_engine.transition(feature, "implemented")
    db.session.commit()

    assert feature.status == "rejected"
    assert [r.to_status for r in _history(user, "feature", feature.id)] == ["in-planning", "rejected"]


# ── every (type, from, to) pair through the ORM ──────────────────────────────


PERSISTED_CASES = [
    (entity_type, source, target)
    for entity_type in ENTITY_TYPES
    for source, target in itertools.product(status_engine.declared_states(entity_type), repeat=2)
]


@pytest.fixture()
def make_stateful(make_user, make_project, make_feature, make_planning):
    """Persist one entity of a lifecycle type, already moved to ``status``."""

    def _make(entity_type, status):
        user = make_user()
        if entity_type == PROJECT:
            entity = make_project(user)
        elif entity_type == FEATURE:
            entity = make_feature(user)
        elif entity_type == PLANNING:
            entity = make_planning(user)
        else:
            feature = make_feature(user)
            planning = make_planning(user, features=[feature])
            entity = Commitment(
                tenant_id=planning.tenant_id, planning_id=planning.id, feature_id=feature.id,
                user_id=user.id, commitment_type="A",
            )
            db.session.add(entity)
            db.session.commit()
        with status_repair_session() as session:
            entity.status = status
            session.commit()
        return user, entity

    return _make


@pytest.mark.parametrize("entity_type,source,target", PERSISTED_CASES)
def test_persisted_transition_matches_table(make_stateful, entity_type, source, target):
    user, entity = make_stateful(entity_type, source)
    before = len(_history(user, entity_type, entity.id))

    if target != source and target not in STATE_TRANSITIONS[entity_type][source]:
        with pytest.raises(InvalidTransition):
            status_engine.transition(entity, target)
        db.session.commit()
        assert entity.status == source
        assert len(_history(user, entity_type, entity.id)) == before
        return

    changed = status_engine.transition(entity, target)
    db.session.commit()
    assert changed is (target != source)
    assert entity.status == target
    rows = _history(user, entity_type, entity.id)
    if changed:
        assert len(rows) == before + 1
        assert (rows[-1].from_status, rows[-1].to_status) == (source, target)
    else:
        assert len(rows) == before