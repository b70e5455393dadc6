"""
Feature Service — feature CRUD, lifecycle moves, dependencies and history.

All functions take the acting ``TenantContext`` first; every lookup goes
through the tenant-scoped helpers so a foreign id behaves like a missing one.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select

from wsjfp.core.exceptions import ValidationError
from wsjfp.models import db
from wsjfp.models.estimation import Estimation, EstimationComponent
from wsjfp.models.feature import DEPENDENCY_TYPES, Feature, FeatureDependency
from wsjfp.models.history import StateHistory
from wsjfp.models.planning import Planning, planning_feature
from wsjfp.models.project import Project
from wsjfp.models.workflow import FEATURE, normalize_status
from wsjfp.services import status_engine
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.services.policies import authorize
from wsjfp.tenancy import stamp_on_create

logger = logging.getLogger(__name__)

TIMELINE_DEFAULT_DAYS = 90

# board columns, left to right; deleted features are not shown
BOARD_LANES = ("in-planning", "approved", "implemented", "rejected", "obsolete", "archived")


def list_features(ctx, *, status: str | None = None, project_id: int | None = None) -> list[Feature]:
    stmt = select(Feature).order_by(Feature.id)
    if status:
        stmt = stmt.where(Feature.status == status_engine.validate(FEATURE, status))
    if project_id is not None:
        stmt = stmt.where(Feature.project_id == project_id)
    return scoped_all(stmt, ctx)


def _project_id(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "Invalid feature data", details={"project_id": "project_id must be an integer"},
        ) from None


def get_feature(ctx, feature_id: int) -> Feature:
    feature = get_scoped(Feature, feature_id, ctx)
    authorize(ctx, "view", feature)
    return feature


def create_feature(ctx, data: dict) -> Feature:
    """Create a feature inside one of the tenant's projects."""
    authorize(ctx, "create", Feature)

    jira_key = str(data.get("jira_key", "") or "").strip()
    name = str(data.get("name", "") or "").strip()
    errors = {}
    if not jira_key:
        errors["jira_key"] = "jira_key is required"
    if not name:
        errors["name"] = "name is required"
    if not data.get("project_id"):
        errors["project_id"] = "project_id is required"
    if errors:
        raise ValidationError("Invalid feature data", details=errors)

    project = get_scoped(Project, _project_id(data["project_id"]), ctx)

    feature = Feature(
        jira_key=jira_key,
        name=name,
        description=data.get("description"),
        requester_id=data.get("requester_id"),
        project_id=project.id,
    )
    if data.get("status"):
        feature.status = status_engine.validate(FEATURE, data["status"])
    stamp_on_create(feature, ctx)

    db.session.add(feature)
    db.session.commit()
    logger.info("Feature created id=%s key=%s tenant=%s", feature.id, feature.jira_key, feature.tenant_id)
    return feature


def update_feature(ctx, feature_id: int, data: dict) -> Feature:
    """Update descriptive fields, then apply an optional ``status`` move."""
    feature = get_scoped(Feature, feature_id, ctx)
    authorize(ctx, "update", feature)

    for attr in ("jira_key", "name"):
        if attr in data:
            value = str(data.get(attr, "") or "").strip()
            if not value:
                raise ValidationError("Invalid feature data", details={attr: f"{attr} cannot be empty"})
            setattr(feature, attr, value)
    if "description" in data:
        feature.description = data.get("description")
    if "requester_id" in data:
        feature.requester_id = data.get("requester_id")
    if data.get("project_id"):
        project_id = _project_id(data["project_id"])
        if project_id != feature.project_id:
            feature.project_id = get_scoped(Project, project_id, ctx).id

    if data.get("status"):
        status_engine.transition(feature, data["status"])

    db.session.commit()
    return feature


def update_status(ctx, feature_id: int, target: str) -> tuple[Feature, bool]:
    """Move a feature along its lifecycle. Returns (feature, changed)."""
    feature = get_scoped(Feature, feature_id, ctx)
    authorize(ctx, "update", feature)

    changed = status_engine.transition(feature, target)
    if changed:
        db.session.commit()
        logger.info("Feature id=%s moved to %s", feature.id, feature.status)
    return feature, changed


def delete_feature(ctx, feature_id: int) -> None:
    feature = get_scoped(Feature, feature_id, ctx)
    authorize(ctx, "delete", feature)
    db.session.delete(feature)
    db.session.commit()


# ── Dependencies ─────────────────────────────────────────────────────────────


def add_dependency(ctx, feature_id: int, related_feature_id: int, dep_type: str) -> FeatureDependency:
    """Link two features of the same tenant. Idempotent for an existing edge."""
    feature = get_scoped(Feature, feature_id, ctx)
    authorize(ctx, "update", feature)

    if dep_type not in DEPENDENCY_TYPES:
        raise ValidationError(
            "Invalid dependency type",
            details={"type": f"must be one of {', '.join(sorted(DEPENDENCY_TYPES))}"},
        )
    if int(related_feature_id) == feature.id:
        raise ValidationError(
            "A feature cannot depend on itself",
            details={"related_feature_id": "must differ from the feature"},
        )
    related = get_scoped(Feature, related_feature_id, ctx)

    existing = scoped_all(
        select(FeatureDependency).where(
            FeatureDependency.feature_id == feature.id,
            FeatureDependency.related_feature_id == related.id,
            FeatureDependency.type == dep_type,
        ),
        ctx,
    )
    if existing:
        return existing[0]

    dependency = FeatureDependency(feature_id=feature.id, related_feature_id=related.id, type=dep_type)
    stamp_on_create(dependency, ctx)
    db.session.add(dependency)
    db.session.commit()
    return dependency


def remove_dependency(ctx, feature_id: int, dependency_id: int) -> None:
    feature = get_scoped(Feature, feature_id, ctx)
    authorize(ctx, "update", feature)
    dependency = get_scoped(FeatureDependency, dependency_id, ctx)
    if dependency.feature_id != feature.id:
        raise ValidationError(
            "Dependency does not belong to this feature",
            details={"dependency_id": "foreign dependency"},
        )
    db.session.delete(dependency)
    db.session.commit()


def build_lineage(feature: Feature, visited: set | None = None) -> dict:
    """Recursive dependency tree; a feature seen before is emitted as a leaf."""
    if visited is None:
        visited = set()
    node = {"id": feature.id, "jira_key": feature.jira_key, "name": feature.name, "dependencies": []}
    if feature.id in visited:
        return node
    visited.add(feature.id)
    node["dependencies"] = [
        build_lineage(dep.related, visited)
        for dep in feature.dependencies
        if dep.related is not None
    ]
    return node


def get_lineage(ctx, feature_id: int) -> dict:
    return build_lineage(get_feature(ctx, feature_id))


# ── History ──────────────────────────────────────────────────────────────────


def get_state_history(ctx, feature_id: int) -> list[StateHistory]:
    """Status history of one feature, oldest first."""
    feature = get_feature(ctx, feature_id)
    return scoped_all(
        select(StateHistory)
        .where(StateHistory.entity_type == FEATURE, StateHistory.entity_id == feature.id)
        .order_by(StateHistory.changed_at, StateHistory.id),
        ctx,
    )


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def status_timeline(ctx, start: date | None = None, end: date | None = None) -> list[dict]:
    """Per-day count of the tenant's features in each status.

    Each feature's history is replayed into [start, end) segments; a day
    counts the status whose segment is active at the end of that day.
    """
    today = datetime.now(timezone.utc).date()
    end = end or today
    start = start or (end - timedelta(days=TIMELINE_DEFAULT_DAYS))
    if start > end:
        start, end = end, start

    features = scoped_all(select(Feature).order_by(Feature.id), ctx)
    histories = scoped_all(
        select(StateHistory)
        .where(StateHistory.entity_type == FEATURE)
        .order_by(StateHistory.changed_at, StateHistory.id),
        ctx,
    )
    by_feature: dict[int, list[StateHistory]] = {}
    for row in histories:
        by_feature.setdefault(row.entity_id, []).append(row)

    segments_by_feature = []
    for feature in features:
        rows = by_feature.get(feature.id)
        if not rows:
            created = _as_utc(feature.created_at or datetime.combine(start, time.min, timezone.utc))
            status = normalize_status(feature.status) or status_engine.default_state(FEATURE)
            segments_by_feature.append([(status, created, None)])
            continue
        segments = []
        for current, following in zip(rows, rows[1:] + [None]):
            segment_end = _as_utc(following.changed_at) if following else None
            segments.append((current.to_status, _as_utc(current.changed_at), segment_end))
        segments_by_feature.append(segments)

    timeline = []
    day = start
    while day <= end:
        day_end = datetime.combine(day, time.max, timezone.utc)
        counts = dict.fromkeys(status_engine.declared_states(FEATURE), 0)
        for segments in segments_by_feature:
            for status, seg_start, seg_end in segments:
                if seg_start <= day_end and (seg_end is None or seg_end > day_end):
                    counts[status] = counts.get(status, 0) + 1
                    break
        timeline.append({"date": day.isoformat(), "counts": counts})
        day += timedelta(days=1)
    return timeline


# ── Estimation totals and board ──────────────────────────────────────────────


def estimation_totals(ctx, feature_ids) -> dict[int, dict]:
    """Component count, summed weighted estimate and units per feature.

    Each component contributes its latest estimation only.
    """
    totals = {
        feature_id: {"estimation_components_count": 0, "total_weighted_case": 0.0, "estimation_units": []}
        for feature_id in feature_ids
    }
    if not totals:
        return totals

    components = scoped_all(
        select(EstimationComponent)
        .where(EstimationComponent.feature_id.in_(list(totals)))
        .order_by(EstimationComponent.id),
        ctx,
    )
    latest = {}
    for estimation in scoped_all(
        select(Estimation)
        .where(Estimation.component_id.in_([c.id for c in components]))
        .order_by(Estimation.id),
        ctx,
    ):
        latest[estimation.component_id] = estimation

    for component in components:
        entry = totals[component.feature_id]
        entry["estimation_components_count"] += 1
        estimation = latest.get(component.id)
        if estimation is None:
            continue
        entry["total_weighted_case"] += estimation.weighted_estimate
        if estimation.unit not in entry["estimation_units"]:
            entry["estimation_units"].append(estimation.unit)

    for entry in totals.values():
        entry["total_weighted_case"] = round(entry["total_weighted_case"], 2)
    return totals


def board(ctx, *, planning_id: int | None = None, project_id: int | None = None) -> dict:
    """Features grouped into one lane per status, with estimation totals.

    ``planning_id`` keeps only the features attached to that planning.
    Features in a status without a lane (deleted, unknown) are left out.
    """
    stmt = select(Feature).order_by(Feature.id)
    if project_id is not None:
        stmt = stmt.where(Feature.project_id == get_scoped(Project, project_id, ctx).id)
    if planning_id is not None:
        planning = get_scoped(Planning, planning_id, ctx)
        stmt = stmt.where(Feature.id.in_(
            select(planning_feature.c.feature_id).where(planning_feature.c.planning_id == planning.id)
        ))
    features = scoped_all(stmt, ctx)
    totals = estimation_totals(ctx, [f.id for f in features])

    lanes = {
        value: {**status_engine.presentation_details(FEATURE, value), "features": []}
        for value in BOARD_LANES
    }
    default = status_engine.default_state(FEATURE)
    for feature in features:
        lane = lanes.get(normalize_status(feature.status) or default)
        if lane is None:
            continue
        lane["features"].append({
            "id": feature.id,
            "jira_key": feature.jira_key,
            "name": feature.name,
            "project": {"id": feature.project.id, "name": feature.project.name} if feature.project else None,
            **totals[feature.id],
        })

    return {
        "lanes": list(lanes.values()),
        "filters": {"project_id": project_id, "planning_id": planning_id},
    }
