"""
TenantModel — Abstract base class for tenant-scoped models.

All models that need tenant isolation inherit from TenantModel instead of
db.Model directly. This adds:
  - integer ``id`` PK and ``created_at`` / ``updated_at`` timestamps
  - tenant_id FK column with index (NOT NULL — every row has an owner)
  - automatic tenant filtering of every ORM query (see ``wsjfp.tenancy``)

StatefulMixin adds a lifecycle ``status`` column bound to one of the
Status Engine's entity types.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import declared_attr, validates

from wsjfp.models import db
from wsjfp.models.workflow import DEFAULT_STATES, normalize_status
from wsjfp.services.status_engine import presentation_details


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TenantModel(db.Model):
    """Abstract base for tenant-scoped tables."""
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True)

    @declared_attr
    def tenant_id(cls):
        return db.Column(
            db.Integer,
            db.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @classmethod
    def tenant_composite_index(cls, *extra_cols):
        """Helper to build (tenant_id, ...) composite index name+tuple."""
        name = f"ix_{cls.__tablename__}_tenant_{'_'.join(extra_cols)}"
        cols = ("tenant_id",) + extra_cols
        return db.Index(name, *cols)

    def _timestamps(self) -> dict:
        return {
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class StatefulMixin:
    """Lifecycle ``status`` column; subclasses set ``__status_type__``.

    The column keeps active history so the flush guard and the state-history
    observer always see the previous value.
    """

    __status_type__: str = ""

    @declared_attr
    def status(cls):
        return db.column_property(
            db.Column(
                db.String(30),
                nullable=False,
                default=DEFAULT_STATES[cls.__status_type__],
                index=True,
            ),
            active_history=True,
        )

    @validates("status")
    def _normalize_status(self, key, value):
        return normalize_status(value)

    @property
    def status_details(self) -> dict | None:
        return presentation_details(self.__status_type__, self.status)
