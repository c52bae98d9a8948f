# lyceum/models/translation.py

from sqlalchemy import UniqueConstraint

from .base import BaseModel, db, utcnow


class SchoolTranslation(BaseModel):
    __tablename__ = "schools_translation"

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    language_code = db.Column(db.String(10), nullable=False, default="en")
    name_en = db.Column(db.String(100), nullable=True)
    description_en = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    __table_args__ = (UniqueConstraint("school_id", "language_code", name="uq_schools_translation_lang"),)


class ContentTranslation(BaseModel):
    __tablename__ = "contents_translation"

    id = db.Column(db.Integer, primary_key=True)
    content_id = db.Column(db.Integer, db.ForeignKey("contents.id"), nullable=False, index=True)
    language_code = db.Column(db.String(10), nullable=False, default="en")
    content_en = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    __table_args__ = (UniqueConstraint("content_id", "language_code", name="uq_contents_translation_lang"),)


class PhilosopherTranslation(BaseModel):
    __tablename__ = "philosophers_translation"

    id = db.Column(db.Integer, primary_key=True)
    philosopher_id = db.Column(db.Integer, db.ForeignKey("philosophers.id"), nullable=False, index=True)
    language_code = db.Column(db.String(10), nullable=False, default="en")
    name_en = db.Column(db.String(100), nullable=True)
    biography_en = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("philosopher_id", "language_code", name="uq_philosophers_translation_lang"),
    )
