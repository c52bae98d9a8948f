# lyceum/models/enums.py
"""
Enums for platform models.

Values are stored as plain strings so rows written by other clients (and by the
bulk importer) remain readable without an enum round-trip.
"""

from enum import Enum as PyEnum


class UserRole(str, PyEnum):
    """Platform roles"""

    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class LikeEntityType(str, PyEnum):
    """Kinds of records a like can point at"""

    PHILOSOPHER = "PHILOSOPHER"
    SCHOOL = "SCHOOL"
    CONTENT = "CONTENT"
    COMMENT = "COMMENT"
    USER = "USER"


class EditStatus(str, PyEnum):
    """Review state of a user-submitted content edit"""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
