"""
Commitment Service — stakeholder delivery commitments inside a planning.

A user holds at most one commitment per (planning, feature); the feature
must be part of the planning. Status changes go through the Status Engine.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from wsjfp.core.exceptions import ValidationError
from wsjfp.models import db
from wsjfp.models.planning import COMMITMENT_TYPES, Commitment, Planning
from wsjfp.models.workflow import COMMITMENT
from wsjfp.services import status_engine
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.services.policies import authorize
from wsjfp.tenancy import as_tenant_context, stamp_on_create

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "A commitment for this feature and user already exists in the selected planning."


def _guard_unique_combination(ctx, planning_id, feature_id, user_id, ignore_id=None) -> None:
    stmt = select(Commitment).where(
        Commitment.planning_id == planning_id,
        Commitment.feature_id == feature_id,
        Commitment.user_id == user_id,
    )
    if ignore_id is not None:
        stmt = stmt.where(Commitment.id != ignore_id)
    if scoped_all(stmt.limit(1), ctx):
        raise ValidationError(DUPLICATE_MESSAGE, details={"commitment": DUPLICATE_MESSAGE})


def _guard_feature_in_planning(planning: Planning, feature_id) -> int:
    try:
        feature_id = int(feature_id)
    except (TypeError, ValueError):
        raise ValidationError("Invalid commitment data", details={"feature_id": "feature_id is required"}) from None
    if feature_id not in {f.id for f in planning.features}:
        raise ValidationError(
            "Feature is not part of the planning",
            details={"feature_id": "The feature does not belong to this planning."},
        )
    return feature_id


def _validate_type(value) -> str:
    if value not in COMMITMENT_TYPES:
        raise ValidationError(
            "Invalid commitment data",
            details={"commitment_type": f"must be one of {', '.join(COMMITMENT_TYPES)}"},
        )
    return value


def list_commitments_for_planning(ctx, planning_id: int) -> list[Commitment]:
    planning = get_scoped(Planning, planning_id, ctx)
    authorize(ctx, "view", planning)
    return scoped_all(
        select(Commitment).where(Commitment.planning_id == planning.id).order_by(Commitment.id),
        ctx,
    )


def get_commitment(ctx, commitment_id: int) -> Commitment:
    commitment = get_scoped(Commitment, commitment_id, ctx)
    authorize(ctx, "view", commitment)
    return commitment


def create_commitment(ctx, data: dict) -> Commitment:
    """Create a commitment; ``user_id`` defaults to the acting user."""
    authorize(ctx, "create", Commitment)

    planning = get_scoped(Planning, data.get("planning_id"), ctx)
    feature_id = _guard_feature_in_planning(planning, data.get("feature_id"))
    user_id = data.get("user_id") or as_tenant_context(ctx).user_id
    if not user_id:
        raise ValidationError("Invalid commitment data", details={"user_id": "user_id is required"})

    _guard_unique_combination(ctx, planning.id, feature_id, user_id)

    commitment = Commitment(
        planning_id=planning.id,
        feature_id=feature_id,
        user_id=user_id,
        commitment_type=_validate_type(data.get("commitment_type")),
        target_state=data.get("target_state"),
        actual_state=data.get("actual_state"),
    )
    if data.get("status"):
        commitment.status = status_engine.validate(COMMITMENT, data["status"])
    stamp_on_create(commitment, ctx)

    db.session.add(commitment)
    db.session.commit()
    logger.info(
        "Commitment created id=%s planning=%s feature=%s user=%s",
        commitment.id, planning.id, feature_id, user_id,
    )
    return commitment


def update_commitment(ctx, commitment_id: int, data: dict) -> Commitment:
    """Apply non-status fields first, then the optional status move."""
    commitment = get_scoped(Commitment, commitment_id, ctx)
    authorize(ctx, "update", commitment)

    feature_id = commitment.feature_id
    if "feature_id" in data:
        feature_id = _guard_feature_in_planning(commitment.planning, data["feature_id"])
    user_id = data.get("user_id") or commitment.user_id
    _guard_unique_combination(ctx, commitment.planning_id, feature_id, user_id, ignore_id=commitment.id)

    commitment.feature_id = feature_id
    commitment.user_id = user_id
    if "commitment_type" in data:
        commitment.commitment_type = _validate_type(data["commitment_type"])
    for field in ("target_state", "actual_state"):
        if field in data:
            setattr(commitment, field, data[field])

    target = data.get("status")
    if target:
        status_engine.transition(commitment, target)

    db.session.commit()
    return commitment


def transition_commitment(ctx, commitment_id: int, target: str) -> tuple[Commitment, bool]:
    commitment = get_scoped(Commitment, commitment_id, ctx)
    authorize(ctx, "update", commitment)

    changed = status_engine.transition(commitment, target)
    if changed:
        db.session.commit()
        logger.info("Commitment id=%s moved to %s", commitment.id, commitment.status)
    return commitment, changed


def delete_commitment(ctx, commitment_id: int) -> None:
    commitment = get_scoped(Commitment, commitment_id, ctx)
    authorize(ctx, "delete", commitment)
    db.session.delete(commitment)
    db.session.commit()
