"""
Estimation domain models — three-point (PERT) effort estimates.

Models:
    - EstimationComponent:  a sub-part of a feature that gets estimated
    - Estimation:           best / most likely / worst case for a component
    - EstimationHistory:    one row per changed estimate field (append-only)
"""

from datetime import datetime, timezone

from sqlalchemy import event, inspect

from wsjfp.models import db
from wsjfp.models.base import TenantModel

TRACKED_FIELDS = ("best_case", "most_likely", "worst_case")


class EstimationComponent(TenantModel):
    __tablename__ = "estimation_components"

    feature_id = db.Column(
        db.Integer, db.ForeignKey("features.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    feature = db.relationship("Feature")
    estimations = db.relationship(
        "Estimation", back_populates="component", lazy="select",
        cascade="all, delete-orphan", order_by="Estimation.id",
    )

    @property
    def latest_estimation(self):
        return self.estimations[-1] if self.estimations else None

    def to_dict(self):
        latest = self.latest_estimation
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "feature_id": self.feature_id,
            "name": self.name,
            "description": self.description,
            "created_by": self.created_by,
            "latest_estimation": latest.to_dict() if latest else None,
        }


class Estimation(TenantModel):
    __tablename__ = "estimations"

    component_id = db.Column(
        db.Integer, db.ForeignKey("estimation_components.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    best_case = db.column_property(db.Column(db.Float, nullable=False), active_history=True)
    most_likely = db.column_property(db.Column(db.Float, nullable=False), active_history=True)
    worst_case = db.column_property(db.Column(db.Float, nullable=False), active_history=True)
    unit = db.Column(db.String(20), nullable=False, default="hours", comment="hours | days | story_points")
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    component = db.relationship("EstimationComponent", back_populates="estimations")
    history = db.relationship(
        "EstimationHistory", back_populates="estimation", lazy="select",
        cascade="all, delete-orphan", order_by="EstimationHistory.id",
    )

    @property
    def weighted_estimate(self) -> float:
        """PERT weighted mean."""
        return (self.best_case + 4 * self.most_likely + self.worst_case) / 6

    @property
    def standard_deviation(self) -> float:
        return (self.worst_case - self.best_case) / 6

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "component_id": self.component_id,
            "best_case": self.best_case,
            "most_likely": self.most_likely,
            "worst_case": self.worst_case,
            "unit": self.unit,
            "notes": self.notes,
            "weighted_estimate": round(self.weighted_estimate, 2),
            "standard_deviation": round(self.standard_deviation, 2),
            "created_by": self.created_by,
            **self._timestamps(),
        }


class EstimationHistory(TenantModel):
    __tablename__ = "estimation_histories"

    estimation_id = db.Column(
        db.Integer, db.ForeignKey("estimations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    field_name = db.Column(db.String(30), nullable=False)
    old_value = db.Column(db.Float, nullable=True)
    new_value = db.Column(db.Float, nullable=True)
    changed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    estimation = db.relationship("Estimation", back_populates="history")

    def to_dict(self):
        return {
            "id": self.id,
            "estimation_id": self.estimation_id,
            "field_name": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "changed_by": self.changed_by,
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
        }


@event.listens_for(Estimation, "before_update")
def _record_estimation_changes(mapper, connection, target) -> None:
    """Append one EstimationHistory row per changed three-point field."""
    state = inspect(target)
    now = datetime.now(timezone.utc)
    rows = []
    for field in TRACKED_FIELDS:
        hist = state.attrs[field].history
        if not hist.has_changes() or not hist.deleted:
            continue
        old, new = hist.deleted[0], getattr(target, field)
        if old == new:
            continue
        rows.append({
            "tenant_id": target.tenant_id,
            "estimation_id": target.id,
            "field_name": field,
            "old_value": old,
            "new_value": new,
            "changed_by": target.updated_by,
            "changed_at": now,
            "created_at": now,
            "updated_at": now,
        })
    if rows:
        connection.execute(EstimationHistory.__table__.insert(), rows)
