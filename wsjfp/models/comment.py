"""Comment model — polymorphic notes attached to any scoped entity."""

from wsjfp.models import db
from wsjfp.models.base import TenantModel

COMMENTABLE_TYPES = {"feature", "project", "planning", "commitment"}


class Comment(TenantModel):
    __tablename__ = "comments"
    __table_args__ = (
        db.Index("idx_comment_target", "commentable_type", "commentable_id"),
    )

    commentable_type = db.Column(db.String(30), nullable=False)
    commentable_id = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    body = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "commentable_type": self.commentable_type,
            "commentable_id": self.commentable_id,
            "user_id": self.user_id,
            "body": self.body,
            **self._timestamps(),
        }
