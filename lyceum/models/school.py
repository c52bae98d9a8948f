# lyceum/models/school.py

from .base import BaseModel, db, utcnow


class School(BaseModel):
    """A school of thought; schools nest through ``parent_id``."""

    __tablename__ = "schools"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False, index=True)
    name_en = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    description_en = db.Column(db.Text, nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    like_count = db.Column(db.Integer, nullable=True, default=0)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    parent = db.relationship("School", remote_side=[id], backref="children")
    creator = db.relationship("User", foreign_keys=[user_id])

    def __repr__(self):
        return f"<School {self.name}>"
