"""Status repair tests — invalid stored statuses reset to the default."""

import pytest
from sqlalchemy import select, text

from wsjfp.models import db
from wsjfp.models.feature import Feature
from wsjfp.models.history import StateHistory
from wsjfp.services import status_repair
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.tenancy import TenantContext


def _corrupt(table, entity_id, value):
    db.session.execute(text(f"UPDATE {table} SET status = :v WHERE id = :id"), {"v": value, "id": entity_id})
    db.session.commit()
    db.session.expire_all()


def test_repairs_invalid_feature_statuses_across_tenants(make_user, make_feature):
    alice, bob = make_user(), make_user()
    broken_a = make_feature(alice)
    broken_b = make_feature(bob)
    healthy = make_feature(alice)
    _corrupt("features", broken_a.id, "done")
    _corrupt("features", broken_b.id, " ")

    corrections = status_repair.repair_statuses("feature")

    assert {c.entity_id for c in corrections} == {broken_a.id, broken_b.id}
    assert {c.tenant_id for c in corrections} == {alice.current_tenant_id, bob.current_tenant_id}
    assert all(c.new_status == "in-planning" for c in corrections)
    assert get_scoped(Feature, broken_a.id, TenantContext.for_user(alice)).status == "in-planning"
    assert get_scoped(Feature, healthy.id, TenantContext.for_user(alice)).status == "in-planning"


def test_repair_records_history(make_user, make_feature):
    user = make_user()
    feature = make_feature(user)
    _corrupt("features", feature.id, "legacy")
    status_repair.repair_statuses("feature")

    rows = scoped_all(
        select(StateHistory).where(StateHistory.entity_id == feature.id).order_by(StateHistory.id), user,
    )
    assert rows[-1].to_status == "in-planning"


def test_nothing_to_repair(make_user, make_feature):
    make_feature(make_user())
    assert status_repair.repair_statuses("feature") == []


def test_repair_all_covers_every_type(make_user, make_planning):
    user = make_user()
    planning = make_planning(user)
    _corrupt("plannings", planning.id, "cancelled")
    results = status_repair.repair_all()
    assert set(results) == {"feature", "project", "planning", "commitment"}
    assert [c.entity_id for c in results["planning"]] == [planning.id]
    assert results["planning"][0].to_dict()["old_status"] == "cancelled"


def test_unknown_type():
    with pytest.raises(ValueError):
        status_repair.repair_statuses("invoice")


def test_scope_flags_restored_after_repair(make_user, make_feature):
    make_feature(make_user())
    status_repair.repair_statuses("feature")
    assert db.session.execute(select(Feature)).scalars().all() == []


def test_fix_states_cli(app, make_user, make_feature):
    feature = make_feature(make_user())
    _corrupt("features", feature.id, "bogus")
    result = app.test_cli_runner().invoke(args=["fix-states", "--type", "feature"])
    assert result.exit_code == 0
    assert "feature: 1 fixed" in result.output
