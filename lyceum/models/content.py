# lyceum/models/content.py

from sqlalchemy import UniqueConstraint

from .base import BaseModel, db, utcnow
from .enums import EditStatus


class Content(BaseModel):
    """A contributed text attached to a philosopher and/or school."""

    __tablename__ = "contents"

    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=True)
    content_en = db.Column(db.Text, nullable=True)
    title = db.Column(db.String(200), nullable=True)
    order_index = db.Column(db.Integer, nullable=True)
    philosopher_id = db.Column(db.Integer, db.ForeignKey("philosophers.id"), nullable=True, index=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Editing lock
    locked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    locked_at = db.Column(db.DateTime, nullable=True)
    locked_until = db.Column(db.DateTime, nullable=True)
    history_pinned = db.Column(db.Boolean, nullable=False, default=False)

    like_count = db.Column(db.Integer, nullable=True, default=0)

    # Moderation
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    privacy_set_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    privacy_set_at = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.Integer, nullable=False, default=0)
    is_blocked = db.Column(db.Boolean, nullable=False, default=False)
    blocked_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    blocked_at = db.Column(db.DateTime, nullable=True)

    version = db.Column(db.Integer, nullable=True, default=0)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    author = db.relationship("User", foreign_keys=[user_id])
    philosopher = db.relationship("Philosopher", foreign_keys=[philosopher_id])
    school = db.relationship("School", foreign_keys=[school_id])

    def __repr__(self):
        return f"<Content {self.id}>"


class Comment(BaseModel):
    """A comment on a content item; replies point at their parent comment."""

    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    body = db.Column(db.Text, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    content_id = db.Column(db.Integer, db.ForeignKey("contents.id"), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("comments.id"), nullable=True, index=True)
    like_count = db.Column(db.Integer, nullable=True, default=0)
    status = db.Column(db.Integer, nullable=False, default=0)
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    privacy_set_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    privacy_set_at = db.Column(db.DateTime, nullable=True)
    is_blocked = db.Column(db.Boolean, nullable=False, default=False)
    blocked_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    blocked_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    author = db.relationship("User", foreign_keys=[user_id])
    parent = db.relationship("Comment", remote_side=[id], backref="replies")


class Like(BaseModel):
    """A like on any likeable record, addressed by (entity_type, entity_id)."""

    __tablename__ = "likes"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    entity_type = db.Column(db.String(20), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "entity_type", "entity_id", name="uq_likes_target"),)


class UserContentEdit(BaseModel):
    """A user-proposed edit awaiting moderator review."""

    __tablename__ = "user_content_edits"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    original_content_id = db.Column(db.Integer, db.ForeignKey("contents.id"), nullable=True)
    philosopher_id = db.Column(db.Integer, db.ForeignKey("philosophers.id"), nullable=False)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False)
    title = db.Column(db.String(200), nullable=False, default="")
    content = db.Column(db.Text, nullable=False, default="")
    content_en = db.Column(db.Text, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=EditStatus.PENDING.value)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)
