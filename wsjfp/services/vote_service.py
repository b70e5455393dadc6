"""
Vote Service — WSJF scoring inside a planning.

Each stakeholder scores each planning feature in three dimensions
(BusinessValue, TimeCriticality, RiskOpportunity). The cost of delay of a
feature is the sum of its three average scores.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime, timezone
from numbers import Number

from sqlalchemy import select

from wsjfp.core.exceptions import ValidationError
from wsjfp.models import db
from wsjfp.models.planning import VOTE_TYPES, Planning, Vote
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.services.policies import authorize
from wsjfp.tenancy import as_tenant_context, stamp_on_create

logger = logging.getLogger(__name__)


def _validate_value(value) -> float:
    if isinstance(value, bool) or not isinstance(value, Number):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValidationError("Invalid vote", details={"value": "value must be a number"}) from None
    if not math.isfinite(value):
        raise ValidationError("Invalid vote", details={"value": "value must be a finite number"})
    if value < 0:
        raise ValidationError("Invalid vote", details={"value": "value must be zero or positive"})
    return float(value)


def _find_vote(ctx, planning_id, feature_id, user_id, vote_type) -> Vote | None:
    rows = scoped_all(
        select(Vote).where(
            Vote.planning_id == planning_id,
            Vote.feature_id == feature_id,
            Vote.user_id == user_id,
            Vote.type == vote_type,
        ),
        ctx,
    )
    return rows[0] if rows else None


def _upsert_vote(ctx, planning_id, feature_id, user_id, vote_type, value) -> Vote:
    vote = _find_vote(ctx, planning_id, feature_id, user_id, vote_type)
    now = datetime.now(timezone.utc)
    if vote is None:
        vote = Vote(
            planning_id=planning_id, feature_id=feature_id, user_id=user_id,
            type=vote_type, value=value, voted_at=now,
        )
        stamp_on_create(vote, ctx)
        db.session.add(vote)
    else:
        vote.value = value
        vote.voted_at = now
    return vote


def cast_vote(ctx, planning_id: int, data: dict) -> Vote:
    """Create or replace the acting user's vote for one feature and dimension."""
    authorize(ctx, "create", Vote)
    planning = get_scoped(Planning, planning_id, ctx)

    vote_type = data.get("type")
    if vote_type not in VOTE_TYPES:
        raise ValidationError("Invalid vote", details={"type": f"must be one of {', '.join(VOTE_TYPES)}"})
    value = _validate_value(data.get("value"))

    try:
        feature_id = int(data.get("feature_id"))
    except (TypeError, ValueError):
        raise ValidationError("Invalid vote", details={"feature_id": "feature_id is required"}) from None
    if feature_id not in {f.id for f in planning.features}:
        raise ValidationError(
            "Feature is not part of the planning",
            details={"feature_id": "The feature does not belong to this planning."},
        )

    user_id = as_tenant_context(ctx).user_id
    if user_id is None:
        raise ValidationError("Invalid vote", details={"user_id": "an acting user is required"})
    vote = _upsert_vote(ctx, planning.id, feature_id, user_id, vote_type, value)
    db.session.commit()
    return vote


def list_votes(ctx, planning_id: int, *, user_id: int | None = None) -> list[Vote]:
    planning = get_scoped(Planning, planning_id, ctx)
    stmt = select(Vote).where(Vote.planning_id == planning.id).order_by(Vote.feature_id, Vote.type)
    if user_id is not None:
        stmt = stmt.where(Vote.user_id == user_id)
    return scoped_all(stmt, ctx)


def calculate_average_votes_for_creator(ctx, planning_id: int) -> list[Vote]:
    """Write the planning creator's vote as the rounded-up mean of everyone else's.

    Features or dimensions nobody else voted on are skipped. Returns the
    creator votes that were created or updated.
    """
    planning = get_scoped(Planning, planning_id, ctx)
    creator_id = planning.created_by
    if not creator_id:
        logger.warning("Planning without creator id=%s", planning.id)
        return []
    if not planning.features:
        logger.info("No features in planning id=%s", planning.id)
        return []

    others = defaultdict(list)
    for vote in list_votes(ctx, planning.id):
        if vote.user_id != creator_id:
            others[(vote.feature_id, vote.type)].append(vote.value)

    written = []
    for feature in planning.features:
        for vote_type in VOTE_TYPES:
            values = others.get((feature.id, vote_type))
            if not values:
                logger.debug(
                    "No votes planning=%s feature=%s type=%s", planning.id, feature.id, vote_type,
                )
                continue
            rounded = math.ceil(sum(values) / len(values))
            written.append(_upsert_vote(ctx, planning.id, feature.id, creator_id, vote_type, rounded))
            logger.info(
                "Creator vote planning=%s feature=%s type=%s value=%s",
                planning.id, feature.id, vote_type, rounded,
            )

    db.session.commit()
    return written


def tally_votes(ctx, planning_id: int) -> list[dict]:
    """Average score per feature and dimension, ranked by cost of delay."""
    planning = get_scoped(Planning, planning_id, ctx)

    values = defaultdict(list)
    voters = defaultdict(set)
    for vote in list_votes(ctx, planning.id):
        values[(vote.feature_id, vote.type)].append(vote.value)
        voters[vote.feature_id].add(vote.user_id)

    result = []
    for feature in planning.features:
        scores = {}
        for vote_type in VOTE_TYPES:
            scored = values.get((feature.id, vote_type))
            scores[vote_type] = round(sum(scored) / len(scored), 2) if scored else None
        result.append({
            "feature_id": feature.id,
            "jira_key": feature.jira_key,
            "name": feature.name,
            "scores": scores,
            "cost_of_delay": round(sum(v for v in scores.values() if v is not None), 2),
            "voters": len(voters.get(feature.id, ())),
        })
    result.sort(key=lambda r: (-r["cost_of_delay"], r["feature_id"]))
    return result
