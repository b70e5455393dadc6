"""Planning Service — prioritisation sessions and their participants."""

from __future__ import annotations

import logging

from sqlalchemy import select

from wsjfp.core.exceptions import ValidationError
from wsjfp.models import db
from wsjfp.models.auth import User, tenant_user
from wsjfp.models.feature import Feature
from wsjfp.models.planning import Planning
from wsjfp.models.project import Project
from wsjfp.models.workflow import PLANNING
from wsjfp.services import status_engine
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.services.policies import authorize
from wsjfp.tenancy import as_tenant_context, stamp_on_create
from wsjfp.utils.helpers import parse_date, parse_id_list

logger = logging.getLogger(__name__)

_PLAIN_FIELDS = ("description", "owner_id", "deputy_id")


def list_plannings(ctx, *, project_id: int | None = None) -> list[Planning]:
    stmt = select(Planning).order_by(Planning.planned_at.desc(), Planning.id.desc())
    if project_id is not None:
        stmt = stmt.where(Planning.project_id == project_id)
    return scoped_all(stmt, ctx)


def get_planning(ctx, planning_id: int) -> Planning:
    planning = get_scoped(Planning, planning_id, ctx)
    authorize(ctx, "view", planning)
    return planning


def _tenant_features(ctx, feature_ids: list[int]) -> list[Feature]:
    if not feature_ids:
        return []
    features = scoped_all(select(Feature).where(Feature.id.in_(feature_ids)), ctx)
    missing = set(feature_ids) - {f.id for f in features}
    if missing:
        raise ValidationError(
            "Unknown features", details={"feature_ids": f"not found: {sorted(missing)}"},
        )
    return features


def _tenant_members(ctx, user_ids: list[int]) -> list[User]:
    """Users are not scoped rows; membership of the acting tenant is checked here."""
    if not user_ids:
        return []
    ctx = as_tenant_context(ctx)
    users = db.session.execute(
        select(User)
        .join(tenant_user, tenant_user.c.user_id == User.id)
        .where(tenant_user.c.tenant_id == ctx.tenant_id, User.id.in_(user_ids))
    ).scalars().all()
    missing = set(user_ids) - {u.id for u in users}
    if missing:
        raise ValidationError(
            "Unknown stakeholders", details={"stakeholder_ids": f"not found: {sorted(missing)}"},
        )
    return list(users)


def _sync_participants(ctx, planning: Planning, data: dict) -> None:
    try:
        if "stakeholder_ids" in data:
            planning.stakeholders = _tenant_members(ctx, parse_id_list(data["stakeholder_ids"], "stakeholder_ids"))
        if "feature_ids" in data:
            planning.features = _tenant_features(ctx, parse_id_list(data["feature_ids"], "feature_ids"))
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def create_planning(ctx, data: dict) -> Planning:
    """Create a planning in one of the tenant's projects, with its participants."""
    authorize(ctx, "create", Planning)

    title = str(data.get("title", "") or "").strip()
    errors = {}
    if not title:
        errors["title"] = "title is required"
    if not data.get("project_id"):
        errors["project_id"] = "project_id is required"
    if errors:
        raise ValidationError("Invalid planning data", details=errors)

    project = get_scoped(Project, data["project_id"], ctx)
    planning = Planning(
        project_id=project.id,
        title=title,
        planned_at=parse_date(data.get("planned_at")),
        executed_at=parse_date(data.get("executed_at")),
        created_by=data.get("created_by") or as_tenant_context(ctx).user_id,
        **{f: data.get(f) for f in _PLAIN_FIELDS},
    )
    if data.get("status"):
        planning.status = status_engine.validate(PLANNING, data["status"])
    stamp_on_create(planning, ctx)
    _sync_participants(ctx, planning, data)

    db.session.add(planning)
    db.session.commit()
    logger.info(
        "Planning created id=%s project=%s features=%d stakeholders=%d",
        planning.id, planning.project_id, len(planning.features), len(planning.stakeholders),
    )
    return planning


def update_planning(ctx, planning_id: int, data: dict) -> Planning:
    """Update fields and participant lists; ``status`` goes through the lifecycle."""
    planning = get_scoped(Planning, planning_id, ctx)
    authorize(ctx, "update", planning)

    if "title" in data:
        title = str(data.get("title", "") or "").strip()
        if not title:
            raise ValidationError("Invalid planning data", details={"title": "title cannot be empty"})
        planning.title = title
    for field in _PLAIN_FIELDS:
        if field in data:
            setattr(planning, field, data.get(field))
    for field in ("planned_at", "executed_at"):
        if field in data:
            setattr(planning, field, parse_date(data.get(field)))
    _sync_participants(ctx, planning, data)

    if data.get("status"):
        status_engine.transition(planning, data["status"])

    db.session.commit()
    return planning


def transition_planning(ctx, planning_id: int, target: str) -> tuple[Planning, bool]:
    planning = get_scoped(Planning, planning_id, ctx)
    authorize(ctx, "update", planning)

    changed = status_engine.transition(planning, target)
    if changed:
        db.session.commit()
        logger.info("Planning id=%s moved to %s", planning.id, planning.status)
    return planning, changed


def delete_planning(ctx, planning_id: int) -> None:
    planning = get_scoped(Planning, planning_id, ctx)
    authorize(ctx, "delete", planning)
    db.session.delete(planning)
    db.session.commit()
