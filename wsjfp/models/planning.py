"""
Planning domain models — prioritisation sessions.

Models:
    - Planning:    a WSJF session over a set of features with stakeholders
    - Vote:        one stakeholder's score for one feature in one dimension
    - Commitment:  a stakeholder's A/B/C/D commitment to deliver a feature

Architecture:
    Project ──1:N──▶ Planning ──N:M──▶ Feature     (planning_feature)
                     Planning ──N:M──▶ User        (planning_stakeholder)
                     Planning ──1:N──▶ Vote, Commitment
"""

from datetime import datetime, timezone

from wsjfp.models import db
from wsjfp.models.base import StatefulMixin, TenantModel
from wsjfp.models.workflow import COMMITMENT, PLANNING

VOTE_TYPES = ("BusinessValue", "TimeCriticality", "RiskOpportunity")

COMMITMENT_TYPES = {
    "A": "Hohe Priorität & Dringlichkeit",
    "B": "Hohe Priorität, geringe Dringlichkeit",
    "C": "Geringe Priorität, hohe Dringlichkeit",
    "D": "Geringe Priorität & Dringlichkeit",
}


planning_stakeholder = db.Table(
    "planning_stakeholder",
    db.Column("planning_id", db.Integer, db.ForeignKey("plannings.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

planning_feature = db.Table(
    "planning_feature",
    db.Column("planning_id", db.Integer, db.ForeignKey("plannings.id", ondelete="CASCADE"), primary_key=True),
    db.Column("feature_id", db.Integer, db.ForeignKey("features.id", ondelete="CASCADE"), primary_key=True),
)


class Planning(StatefulMixin, TenantModel):
    __tablename__ = "plannings"
    __status_type__ = PLANNING

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    planned_at = db.Column(db.Date, nullable=True)
    executed_at = db.Column(db.Date, nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    deputy_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    project = db.relationship("Project", back_populates="plannings")
    stakeholders = db.relationship("User", secondary=planning_stakeholder, lazy="select")
    features = db.relationship(
        "Feature", secondary=planning_feature, lazy="select", order_by="Feature.id",
    )
    votes = db.relationship(
        "Vote", back_populates="planning", lazy="select", cascade="all, delete-orphan",
    )
    commitments = db.relationship(
        "Commitment", back_populates="planning", lazy="select", cascade="all, delete-orphan",
        order_by="Commitment.id",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "planned_at": self.planned_at.isoformat() if self.planned_at else None,
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "owner_id": self.owner_id,
            "deputy_id": self.deputy_id,
            "created_by": self.created_by,
            "status": self.status,
            "status_details": self.status_details,
            "stakeholder_ids": [u.id for u in self.stakeholders],
            "feature_ids": [f.id for f in self.features],
            **self._timestamps(),
        }
        if include_children:
            result["commitments"] = [c.to_dict() for c in self.commitments]
        return result

    def __repr__(self):
        return f"<Planning {self.id}: {self.title} [{self.status}]>"


class Vote(TenantModel):
    __tablename__ = "votes"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    feature_id = db.Column(
        db.Integer, db.ForeignKey("features.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    planning_id = db.Column(
        db.Integer, db.ForeignKey("plannings.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type = db.Column(db.String(30), nullable=False, comment="BusinessValue | TimeCriticality | RiskOpportunity")
    value = db.Column(db.Float, nullable=False)
    voted_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "feature_id", "planning_id", "type", name="uq_vote_user_feature_planning_type"),
    )

    planning = db.relationship("Planning", back_populates="votes")
    feature = db.relationship("Feature")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "feature_id": self.feature_id,
            "planning_id": self.planning_id,
            "type": self.type,
            "value": self.value,
            "voted_at": self.voted_at.isoformat() if self.voted_at else None,
        }


class Commitment(StatefulMixin, TenantModel):
    __tablename__ = "commitments"
    __status_type__ = COMMITMENT

    planning_id = db.Column(
        db.Integer, db.ForeignKey("plannings.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    feature_id = db.Column(db.Integer, db.ForeignKey("features.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    commitment_type = db.Column(db.String(1), nullable=False, comment="A | B | C | D")
    target_state = db.Column(db.Text, nullable=True, comment="Soll-Zustand")
    actual_state = db.Column(db.Text, nullable=True, comment="Ist-Zustand")

    __table_args__ = (
        db.UniqueConstraint("planning_id", "feature_id", "user_id", name="uq_commitment_planning_feature_user"),
    )

    planning = db.relationship("Planning", back_populates="commitments")
    feature = db.relationship("Feature")

    @property
    def commitment_type_description(self) -> str:
        return COMMITMENT_TYPES.get(self.commitment_type, "Unbekannt")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "planning_id": self.planning_id,
            "feature_id": self.feature_id,
            "user_id": self.user_id,
            "commitment_type": self.commitment_type,
            "commitment_type_description": self.commitment_type_description,
            "target_state": self.target_state,
            "actual_state": self.actual_state,
            "status": self.status,
            "status_details": self.status_details,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<Commitment {self.id}: planning={self.planning_id} feature={self.feature_id} [{self.status}]>"
