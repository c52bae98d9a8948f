# lyceum/models/base.py

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    """Naive UTC timestamp used for audit columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


class BaseModel(db.Model):
    """Abstract base carrying the creation audit column shared by every table."""

    __abstract__ = True

    created_at = db.Column(db.DateTime, nullable=True, default=utcnow)
