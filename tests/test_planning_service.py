"""Planning service tests — participants, lifecycle, tenant checks."""

import pytest

from wsjfp.core.exceptions import InvalidTransition, NotFoundError, ValidationError
from wsjfp.models import db
from wsjfp.models.auth import Tenant
from wsjfp.services import planning_service
from wsjfp.tenancy import TenantContext


@pytest.fixture()
def alice(make_user):
    return make_user("Alice")


@pytest.fixture()
def ctx(alice):
    return TenantContext.for_user(alice)


def test_create_planning_with_participants(alice, ctx, make_user, make_project, make_feature):
    project = make_project(alice)
    colleague = make_user("Carol", tenant=db.session.get(Tenant, alice.current_tenant_id))
    f1, f2 = make_feature(alice, project=project), make_feature(alice, project=project)

    planning = planning_service.create_planning(ctx, {
        "title": "PI 1",
        "project_id": project.id,
        "planned_at": "2024-05-01",
        "stakeholder_ids": [alice.id, colleague.id],
        "feature_ids": [f1.id, f2.id],
    })
    assert planning.status == "in-planning"
    assert planning.created_by == alice.id
    assert {u.id for u in planning.stakeholders} == {alice.id, colleague.id}
    assert {f.id for f in planning.features} == {f1.id, f2.id}
    assert planning.planned_at.isoformat() == "2024-05-01"


def test_create_planning_requires_title_and_project(ctx):
    with pytest.raises(ValidationError) as exc:
        planning_service.create_planning(ctx, {})
    assert set(exc.value.details) == {"title", "project_id"}


def test_foreign_feature_rejected(alice, ctx, make_user, make_project, make_feature):
    project = make_project(alice)
    foreign = make_feature(make_user("Bob"))
    with pytest.raises(ValidationError) as exc:
        planning_service.create_planning(ctx, {
            "title": "PI", "project_id": project.id, "feature_ids": [foreign.id],
        })
    assert "feature_ids" in exc.value.details


def test_non_member_stakeholder_rejected(alice, ctx, make_user, make_project):
    project = make_project(alice)
    outsider = make_user("Bob")
    with pytest.raises(ValidationError) as exc:
        planning_service.create_planning(ctx, {
            "title": "PI", "project_id": project.id, "stakeholder_ids": [outsider.id],
        })
    assert "stakeholder_ids" in exc.value.details


def test_update_planning_syncs_features(alice, ctx, make_feature, make_planning):
    f1, f2 = make_feature(alice), make_feature(alice)
    planning = make_planning(alice, features=[f1])
    updated = planning_service.update_planning(ctx, planning.id, {"feature_ids": [f2.id], "title": "PI 2"})
    assert [f.id for f in updated.features] == [f2.id]
    assert updated.title == "PI 2"


def test_update_planning_bad_id_list(alice, ctx, make_planning):
    planning = make_planning(alice)
    with pytest.raises(ValidationError):
        planning_service.update_planning(ctx, planning.id, {"feature_ids": ["x"]})


def test_transition_planning(alice, ctx, make_planning):
    planning = make_planning(alice)
    planning, changed = planning_service.transition_planning(ctx, planning.id, "in-execution")
    assert changed and planning.status == "in-execution"
    with pytest.raises(InvalidTransition):
        planning_service.transition_planning(ctx, planning.id, "in-planning")


def test_list_plannings_scoped(alice, ctx, make_user, make_planning):
    mine = make_planning(alice)
    make_planning(make_user("Bob"))
    assert [p.id for p in planning_service.list_plannings(ctx)] == [mine.id]
    assert planning_service.list_plannings(ctx, project_id=mine.project_id)[0].id == mine.id


def test_delete_planning(alice, ctx, make_planning):
    planning = make_planning(alice)
    planning_service.delete_planning(ctx, planning.id)
    with pytest.raises(NotFoundError):
        planning_service.get_planning(ctx, planning.id)
