# lyceum/models/philosopher.py

from .base import BaseModel, db, utcnow

philosopher_school = db.Table(
    "philosopher_school",
    db.Column("philosopher_id", db.Integer, db.ForeignKey("philosophers.id"), primary_key=True),
    db.Column("school_id", db.Integer, db.ForeignKey("schools.id"), primary_key=True),
)


class Philosopher(BaseModel):
    """A philosopher; linked to schools through ``philosopher_school``."""

    __tablename__ = "philosophers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    name_en = db.Column(db.String(100), nullable=True)
    birth_year = db.Column(db.Integer, nullable=True)
    death_year = db.Column(db.Integer, nullable=True)
    era = db.Column(db.String(50), nullable=True)
    nationality = db.Column(db.String(100), nullable=True)
    biography = db.Column(db.Text, nullable=True)
    bio_en = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    like_count = db.Column(db.Integer, nullable=True, default=0)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    schools = db.relationship("School", secondary=philosopher_school, backref="philosophers")

    def __repr__(self):
        return f"<Philosopher {self.name}>"
