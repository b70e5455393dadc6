"""Project domain model — top of the Project → Feature → Planning hierarchy."""

from wsjfp.models import db
from wsjfp.models.base import StatefulMixin, TenantModel
from wsjfp.models.workflow import PROJECT


class Project(StatefulMixin, TenantModel):
    """A delivery project whose features are prioritised in plannings."""

    __tablename__ = "projects"
    __status_type__ = PROJECT

    project_number = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    project_leader_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    deputy_leader_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=False,
        comment="Creator — required on every save",
    )

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "project_number", name="uq_project_tenant_number"),
    )

    features = db.relationship(
        "Feature", back_populates="project", lazy="select",
        cascade="all, delete-orphan", order_by="Feature.id",
    )
    plannings = db.relationship(
        "Planning", back_populates="project", lazy="select",
        cascade="all, delete-orphan", order_by="Planning.id",
    )
    project_leader = db.relationship("User", foreign_keys=[project_leader_id])
    deputy_leader = db.relationship("User", foreign_keys=[deputy_leader_id])

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "project_number": self.project_number,
            "name": self.name,
            "description": self.description,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "project_leader_id": self.project_leader_id,
            "deputy_leader_id": self.deputy_leader_id,
            "created_by": self.created_by,
            "status": self.status,
            "status_details": self.status_details,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.project_number} [{self.status}]>"
