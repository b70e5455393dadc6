"""
Feature domain models.

Models:
    - Feature:            a prioritisable unit of work inside a Project
    - FeatureDependency:  typed edge between two features of the same tenant
"""

from wsjfp.models import db
from wsjfp.models.base import StatefulMixin, TenantModel
from wsjfp.models.workflow import FEATURE

# ermöglicht | verhindert | bedingt | ersetzt
DEPENDENCY_TYPES = {"ermoeglicht", "verhindert", "bedingt", "ersetzt"}


class Feature(StatefulMixin, TenantModel):
    __tablename__ = "features"
    __status_type__ = FEATURE

    jira_key = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    requester_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    project = db.relationship("Project", back_populates="features")
    requester = db.relationship("User", foreign_keys=[requester_id])
    dependencies = db.relationship(
        "FeatureDependency",
        foreign_keys="FeatureDependency.feature_id",
        back_populates="feature",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def to_dict(self, include_dependencies=False):
        result = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "jira_key": self.jira_key,
            "name": self.name,
            "description": self.description,
            "requester_id": self.requester_id,
            "project_id": self.project_id,
            "status": self.status,
            "status_details": self.status_details,
            **self._timestamps(),
        }
        if include_dependencies:
            result["dependencies"] = [d.to_dict() for d in self.dependencies]
        return result

    def __repr__(self):
        return f"<Feature {self.id}: {self.jira_key} [{self.status}]>"


class FeatureDependency(TenantModel):
    __tablename__ = "feature_dependencies"

    feature_id = db.Column(
        db.Integer, db.ForeignKey("features.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    related_feature_id = db.Column(
        db.Integer, db.ForeignKey("features.id", ondelete="CASCADE"), nullable=False,
    )
    type = db.Column(db.String(30), nullable=False, comment="ermoeglicht | verhindert | bedingt | ersetzt")

    __table_args__ = (
        db.UniqueConstraint(
            "tenant_id", "feature_id", "related_feature_id", "type", name="feat_dep_unique",
        ),
    )

    feature = db.relationship("Feature", foreign_keys=[feature_id], back_populates="dependencies")
    related = db.relationship("Feature", foreign_keys=[related_feature_id])

    def to_dict(self):
        return {
            "id": self.id,
            "feature_id": self.feature_id,
            "related_feature_id": self.related_feature_id,
            "type": self.type,
        }
