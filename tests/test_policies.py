"""Authorization policy tests — pure tenant-membership rules."""

import pytest

from wsjfp.models.auth import Tenant
from wsjfp.models.feature import Feature
from wsjfp.models.planning import Commitment, Planning, Vote
from wsjfp.models.project import Project
from wsjfp.services.policies import ACTIONS, PermissionDenied, authorize, can, policy_for
from wsjfp.tenancy import TenantContext

SCOPED_MODELS = (Feature, Project, Planning, Commitment, Vote)

ACME = TenantContext(tenant_id=1, user_id=10)
BETA = TenantContext(tenant_id=2, user_id=20)
NOBODY = TenantContext.none()


@pytest.mark.parametrize("model", SCOPED_MODELS)
def test_class_actions_need_a_tenant(model):
    assert can(ACME, "view_any", model)
    assert can(ACME, "create", model)
    assert not can(NOBODY, "view_any", model)
    assert not can(NOBODY, "create", model)
    assert not can(None, "create", model)


@pytest.mark.parametrize("model", SCOPED_MODELS)
@pytest.mark.parametrize("action", ["view", "update", "delete"])
def test_instance_actions_need_same_tenant(model, action):
    entity = model(tenant_id=1)
    assert can(ACME, action, entity)
    assert not can(BETA, action, entity)
    assert not can(NOBODY, action, entity)


@pytest.mark.parametrize("model", SCOPED_MODELS)
@pytest.mark.parametrize("action", ["restore", "force_delete"])
def test_restore_and_force_delete_always_denied(model, action):
    assert not can(ACME, action, model(tenant_id=1))


def test_instance_action_on_class_is_denied():
    assert not can(ACME, "update", Feature)


def test_user_objects_are_accepted():
    class _User:
        id = 10
        tenant_id = 1
        current_tenant_id = None

    assert can(_User(), "view", Feature(tenant_id=1))


def test_unknown_action_or_model():
    with pytest.raises(ValueError):
        can(ACME, "approve", Feature)
    with pytest.raises(ValueError):
        policy_for(Tenant)


def test_authorize_raises_permission_denied():
    with pytest.raises(PermissionDenied) as exc:
        authorize(BETA, "update", Feature(tenant_id=1))
    assert exc.value.action == "update"
    assert exc.value.resource == "Feature"
    assert exc.value.user_id == 20


def test_actions_cover_full_policy_surface():
    assert set(ACTIONS) == {"view_any", "view", "create", "update", "delete", "restore", "force_delete"}
