"""Estimation Service — three-point estimates per feature component."""

from __future__ import annotations

import logging

from sqlalchemy import select

from wsjfp.core.exceptions import ValidationError
from wsjfp.models import db
from wsjfp.models.estimation import TRACKED_FIELDS, Estimation, EstimationComponent, EstimationHistory
from wsjfp.models.feature import Feature
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.tenancy import as_tenant_context, stamp_on_create

logger = logging.getLogger(__name__)

UNITS = ("hours", "days", "story_points")


def _three_point(data: dict, current: Estimation | None = None) -> dict:
    """Validate best ≤ most likely ≤ worst, all non-negative numbers."""
    values = {}
    errors = {}
    for field in TRACKED_FIELDS:
        raw = data.get(field, getattr(current, field, None))
        try:
            value = float(raw)
        except (TypeError, ValueError):
            errors[field] = f"{field} must be a number"
            continue
        if value < 0:
            errors[field] = f"{field} must be zero or positive"
        values[field] = value
    if not errors and not (values["best_case"] <= values["most_likely"] <= values["worst_case"]):
        errors["most_likely"] = "expected best_case <= most_likely <= worst_case"
    if errors:
        raise ValidationError("Invalid estimation", details=errors)
    return values


def list_components(ctx, feature_id: int) -> list[EstimationComponent]:
    feature = get_scoped(Feature, feature_id, ctx)
    return scoped_all(
        select(EstimationComponent)
        .where(EstimationComponent.feature_id == feature.id)
        .order_by(EstimationComponent.id),
        ctx,
    )


def create_component(ctx, feature_id: int, data: dict) -> EstimationComponent:
    feature = get_scoped(Feature, feature_id, ctx)
    name = str(data.get("name", "") or "").strip()
    if not name:
        raise ValidationError("Invalid component", details={"name": "name is required"})

    component = EstimationComponent(
        feature_id=feature.id,
        name=name,
        description=data.get("description"),
        created_by=as_tenant_context(ctx).user_id,
    )
    stamp_on_create(component, ctx)
    db.session.add(component)
    db.session.commit()
    return component


def add_estimation(ctx, component_id: int, data: dict) -> Estimation:
    component = get_scoped(EstimationComponent, component_id, ctx)
    unit = data.get("unit") or "hours"
    if unit not in UNITS:
        raise ValidationError("Invalid estimation", details={"unit": f"must be one of {', '.join(UNITS)}"})

    user_id = as_tenant_context(ctx).user_id
    estimation = Estimation(
        component_id=component.id,
        unit=unit,
        notes=data.get("notes"),
        created_by=user_id,
        updated_by=user_id,
        **_three_point(data),
    )
    stamp_on_create(estimation, ctx)
    db.session.add(estimation)
    db.session.commit()
    logger.info(
        "Estimation added id=%s component=%s weighted=%.2f",
        estimation.id, component.id, estimation.weighted_estimate,
    )
    return estimation


def update_estimation(ctx, estimation_id: int, data: dict) -> Estimation:
    """Change an estimate; the model observer records each changed field."""
    estimation = get_scoped(Estimation, estimation_id, ctx)
    for field, value in _three_point(data, current=estimation).items():
        setattr(estimation, field, value)
    if "notes" in data:
        estimation.notes = data.get("notes")
    if data.get("unit"):
        if data["unit"] not in UNITS:
            raise ValidationError("Invalid estimation", details={"unit": f"must be one of {', '.join(UNITS)}"})
        estimation.unit = data["unit"]
    estimation.updated_by = as_tenant_context(ctx).user_id
    db.session.commit()
    return estimation


def list_history(ctx, estimation_id: int) -> list[EstimationHistory]:
    estimation = get_scoped(Estimation, estimation_id, ctx)
    return scoped_all(
        select(EstimationHistory)
        .where(EstimationHistory.estimation_id == estimation.id)
        .order_by(EstimationHistory.changed_at, EstimationHistory.id),
        ctx,
    )
