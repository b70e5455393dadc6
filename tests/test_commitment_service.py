"""Commitment service tests — uniqueness, planning membership, lifecycle."""

import pytest

from wsjfp.core.exceptions import InvalidTransition, NotFoundError, ValidationError
from wsjfp.services import commitment_service
from wsjfp.services.commitment_service import DUPLICATE_MESSAGE
from wsjfp.tenancy import TenantContext


@pytest.fixture()
def setup(make_user, make_feature, make_planning):
    alice = make_user("Alice")
    f1, f2 = make_feature(alice), make_feature(alice)
    planning = make_planning(alice, features=[f1, f2])
    return {
        "alice": alice,
        "ctx": TenantContext.for_user(alice),
        "planning": planning,
        "f1": f1,
        "f2": f2,
    }


def _create(s, **extra):
    data = {"planning_id": s["planning"].id, "feature_id": s["f1"].id, "commitment_type": "A", **extra}
    return commitment_service.create_commitment(s["ctx"], data)


def test_create_defaults(setup):
    commitment = _create(setup)
    assert commitment.user_id == setup["alice"].id
    assert commitment.status == "suggested"
    assert commitment.to_dict()["commitment_type_description"] == "Hohe Priorität & Dringlichkeit"


def test_duplicate_combination_rejected(setup):
    _create(setup)
    with pytest.raises(ValidationError) as exc:
        _create(setup, commitment_type="B")
    assert exc.value.details == {"commitment": DUPLICATE_MESSAGE}


def test_feature_must_belong_to_planning(setup, make_feature):
    outside = make_feature(setup["alice"])
    with pytest.raises(ValidationError) as exc:
        _create(setup, feature_id=outside.id)
    assert "feature_id" in exc.value.details


def test_invalid_type_rejected(setup):
    with pytest.raises(ValidationError):
        _create(setup, commitment_type="Z")


def test_create_with_initial_status(setup):
    assert _create(setup, status="accepted").status == "accepted"


def test_update_fields_then_status(setup):
    commitment = _create(setup)
    updated = commitment_service.update_commitment(setup["ctx"], commitment.id, {
        "target_state": "Soll", "commitment_type": "C", "status": "accepted",
    })
    assert updated.target_state == "Soll"
    assert updated.commitment_type == "C"
    assert updated.status == "accepted"


def test_update_to_existing_combination_rejected(setup):
    _create(setup)
    other = _create(setup, feature_id=setup["f2"].id)
    with pytest.raises(ValidationError):
        commitment_service.update_commitment(setup["ctx"], other.id, {"feature_id": setup["f1"].id})


def test_scenario_commitment_backwards_rejected(setup):
    """accepted → suggested is not declared; status stays accepted."""
    commitment = _create(setup)
    commitment_service.transition_commitment(setup["ctx"], commitment.id, "accepted")
    with pytest.raises(InvalidTransition):
        commitment_service.transition_commitment(setup["ctx"], commitment.id, "suggested")
    assert commitment_service.get_commitment(setup["ctx"], commitment.id).status == "accepted"


def test_list_and_delete(setup):
    c1 = _create(setup)
    c2 = _create(setup, feature_id=setup["f2"].id)
    ids = [c.id for c in commitment_service.list_commitments_for_planning(setup["ctx"], setup["planning"].id)]
    assert ids == [c1.id, c2.id]
    commitment_service.delete_commitment(setup["ctx"], c1.id)
    with pytest.raises(NotFoundError):
        commitment_service.get_commitment(setup["ctx"], c1.id)


def test_foreign_tenant_cannot_see(setup, make_user):
    commitment = _create(setup)
    bob_ctx = TenantContext.for_user(make_user("Bob"))
    with pytest.raises(NotFoundError):
        commitment_service.get_commitment(bob_ctx, commitment.id)
