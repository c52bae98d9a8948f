# lyceum/models/moderation.py

from sqlalchemy import UniqueConstraint

from .base import BaseModel, db, utcnow


class UserBlock(BaseModel):
    """One user hiding another"""

    __tablename__ = "user_blocks"

    id = db.Column(db.Integer, primary_key=True)
    blocker_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    blocked_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    __table_args__ = (UniqueConstraint("blocker_id", "blocked_id", name="uq_user_blocks_pair"),)


class ModeratorBlock(BaseModel):
    """A moderator banning a user from a school"""

    __tablename__ = "moderator_blocks"

    id = db.Column(db.Integer, primary_key=True)
    moderator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    blocked_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("moderator_id", "blocked_user_id", "school_id", name="uq_moderator_blocks_triple"),
    )
