"""
State history — append-only audit trail of lifecycle changes.

One StateHistory row is written when a stateful entity is created
(from_status = NULL) and one per realized status change, inside the same
flush as the entity write. Rows are never updated or deleted.

This module also installs the status flush guard: every status write goes
through the Status Engine rules, even a plain ``feature.status = "x"``.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from wsjfp.core.exceptions import InvalidTransition, UnknownStateValue
from wsjfp.models import db
from wsjfp.models.base import StatefulMixin, TenantModel
from wsjfp.models.feature import Feature
from wsjfp.models.planning import Commitment, Planning
from wsjfp.models.project import Project
from wsjfp.models.workflow import COMMITMENT, FEATURE, PLANNING, PROJECT, normalize_status
from wsjfp.services import status_engine

logger = logging.getLogger(__name__)

# session.info flag set by the status repair pass
STATUS_REPAIR_KEY = "status_repair"

# lifecycle type → model, shared by comments and the status repair pass
MODELS_BY_TYPE = {
    FEATURE: Feature,
    PROJECT: Project,
    PLANNING: Planning,
    COMMITMENT: Commitment,
}

STATEFUL_MODELS = tuple(MODELS_BY_TYPE.values())


class StateHistory(TenantModel):
    __tablename__ = "state_histories"
    __table_args__ = (
        db.Index("idx_state_history_entity", "entity_type", "entity_id"),
    )

    entity_type = db.Column(db.String(20), nullable=False, comment="feature | project | planning | commitment")
    entity_id = db.Column(db.Integer, nullable=False)
    from_status = db.Column(db.String(30), nullable=True)
    to_status = db.Column(db.String(30), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "from_status_details": status_engine.presentation_details(self.entity_type, self.from_status),
            "to_status_details": status_engine.presentation_details(self.entity_type, self.to_status),
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
        }

    def __repr__(self):
        return f"<StateHistory {self.entity_type}#{self.entity_id}: {self.from_status} → {self.to_status}>"


@event.listens_for(StateHistory, "before_update")
def _history_is_immutable(mapper, connection, target):
    raise RuntimeError("StateHistory rows are append-only")


@event.listens_for(StateHistory, "before_delete")
def _history_is_undeletable(mapper, connection, target):
    raise RuntimeError("StateHistory rows cannot be deleted")


# ── Observers ────────────────────────────────────────────────────────────────


def _append_history(connection, target, from_status, timestamp_attr):
    to_status = normalize_status(target.status)
    changed_at = inspect(target).dict.get(timestamp_attr) or datetime.now(timezone.utc)
    connection.execute(
        StateHistory.__table__.insert(),
        {
            "tenant_id": target.tenant_id,
            "entity_type": target.__status_type__,
            "entity_id": target.id,
            "from_status": from_status,
            "to_status": to_status,
            "changed_at": changed_at,
            "created_at": changed_at,
            "updated_at": changed_at,
        },
    )


def _record_created(mapper, connection, target):
    _append_history(connection, target, None, "created_at")


def _record_status_change(mapper, connection, target):
    hist = inspect(target).attrs.status.history
    if not hist.has_changes():
        return
    from_status = normalize_status(hist.deleted[0]) if hist.deleted else None
    if from_status == normalize_status(target.status):
        return
    _append_history(connection, target, from_status, "updated_at")


for _model in STATEFUL_MODELS:
    event.listen(_model, "after_insert", _record_created)
    event.listen(_model, "after_update", _record_status_change)


# ── Flush guard ──────────────────────────────────────────────────────────────


@event.listens_for(Session, "before_flush")
def _guard_status_writes(session, flush_context, instances):
    """Default new statuses; reject undeclared values and illegal moves."""
    if session.info.get(STATUS_REPAIR_KEY):
        return

    for obj in session.new:
        if not isinstance(obj, StatefulMixin):
            continue
        entity_type = obj.__status_type__
        if obj.status is None:
            obj.status = status_engine.default_state(entity_type)
        else:
            status_engine.validate(entity_type, obj.status)

    for obj in session.dirty:
        if not isinstance(obj, StatefulMixin):
            continue
        hist = inspect(obj).attrs.status.history
        if not hist.has_changes():
            continue
        entity_type = obj.__status_type__
        previous = hist.deleted[0] if hist.deleted else None
        if obj.status is None:
            raise UnknownStateValue(entity_type, obj.status)
        status_engine.validate(entity_type, obj.status)
        try:
            status_engine.check_transition(
                entity_type, previous or status_engine.default_state(entity_type), obj.status,
            )
        except InvalidTransition:
            logger.warning(
                "Blocked %s id=%s status write %s → %s",
                entity_type, obj.id, previous, obj.status,
            )
            raise
