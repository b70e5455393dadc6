"""Feature CSV import tests — column resolution, upsert, tenant scope."""

import pytest
from sqlalchemy import select

from wsjfp.core.exceptions import NotFoundError, ValidationError
from wsjfp.models.feature import Feature
from wsjfp.services import feature_import_service
from wsjfp.services.helpers.scoped_queries import scoped_all
from wsjfp.tenancy import TenantContext


@pytest.fixture()
def alice(make_user):
    return make_user("Alice")


@pytest.fixture()
def ctx(alice):
    return TenantContext.for_user(alice)


@pytest.fixture()
def project(alice, make_project):
    return make_project(alice)


def _features(ctx, project):
    return {
        f.jira_key: f
        for f in scoped_all(select(Feature).where(Feature.project_id == project.id), ctx)
    }


# ── column resolution ────────────────────────────────────────────────────────


def test_header_aliases_are_recognised():
    columns = feature_import_service.resolve_columns(["Beschreibung", "Titel", "Jira-Key"])
    assert columns == {"jira_key": 2, "name": 1, "description": 0}


def test_positional_fallback_without_header():
    assert feature_import_service.resolve_columns(None) == {"jira_key": 0, "name": 1, "description": 2}


def test_explicit_mapping_wins_over_header():
    columns = feature_import_service.resolve_columns(
        ["key", "name", "description"], {"1": "jira_key", "0": "name", "2": "ignore"},
    )
    assert columns == {"jira_key": 1, "name": 0, "description": 2}


def test_explicit_mapping_without_description_imports_none():
    columns = feature_import_service.resolve_columns(None, {"0": "jira_key", "1": "name"})
    assert columns["description"] is None


@pytest.mark.parametrize("mapping", [["jira_key"], {"0": "priority"}, {"first": "jira_key"}])
def test_invalid_mapping_rejected(mapping):
    with pytest.raises(ValidationError) as exc:
        feature_import_service.resolve_columns(None, mapping)
    assert "mapping" in exc.value.details


# ── import ───────────────────────────────────────────────────────────────────


def test_import_creates_features(ctx, project):
    content = "Key,Name,Description\nWSJF-1,Login,First\nWSJF-2,Logout,\n,Orphan,no key\n\n"
    result = feature_import_service.import_features_csv(ctx, project.id, content)
    assert (result["created"], result["updated"], result["skipped"]) == (2, 0, 1)

    features = _features(ctx, project)
    assert features["WSJF-1"].name == "Login"
    assert features["WSJF-1"].description == "First"
    assert features["WSJF-1"].status == "in-planning"
    assert features["WSJF-1"].tenant_id == project.tenant_id


def test_import_updates_existing_by_key(alice, ctx, project, make_feature):
    make_feature(alice, project=project, jira_key="WSJF-1", name="Old")
    content = b"\xef\xbb\xbfjira key;title\nWSJF-1;New name\nWSJF-9;Fresh\n"
    result = feature_import_service.import_features_csv(ctx, project.id, content)
    assert (result["created"], result["updated"]) == (1, 1)

    features = _features(ctx, project)
    assert features["WSJF-1"].name == "New name"
    assert features["WSJF-9"].name == "Fresh"


def test_import_without_header_uses_first_row(ctx, project):
    result = feature_import_service.import_features_csv(
        ctx, project.id, "WSJF-1,Login\nWSJF-2,Logout\n", has_header=False,
    )
    assert result["created"] == 2
    assert set(_features(ctx, project)) == {"WSJF-1", "WSJF-2"}


def test_import_name_defaults_to_key(ctx, project):
    feature_import_service.import_features_csv(ctx, project.id, "key\nWSJF-7\n")
    assert _features(ctx, project)["WSJF-7"].name == "WSJF-7"


def test_import_quoted_cells(ctx, project):
    content = 'key,name,description\nWSJF-1,"Login, SSO","Line one\nline two"\n'
    feature_import_service.import_features_csv(ctx, project.id, content)
    feature = _features(ctx, project)["WSJF-1"]
    assert feature.name == "Login, SSO"
    assert feature.description == "Line one\nline two"


def test_empty_file_rejected(ctx, project):
    with pytest.raises(ValidationError):
        feature_import_service.import_features_csv(ctx, project.id, "  \n")


def test_import_into_foreign_project_is_404(ctx, make_user, make_project):
    foreign = make_project(make_user())
    with pytest.raises(NotFoundError):
        feature_import_service.import_features_csv(ctx, foreign.id, "key\nWSJF-1\n")
