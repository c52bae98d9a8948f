# lyceum/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db, utcnow
from .content import Comment, Content, Like, UserContentEdit
from .enums import EditStatus, LikeEntityType, UserRole
from .moderation import ModeratorBlock, UserBlock
from .philosopher import Philosopher, philosopher_school
from .school import School
from .transfer_run import TransferRun, TransferRunKind, TransferRunStatus
from .translation import ContentTranslation, PhilosopherTranslation, SchoolTranslation
from .user import User, UserFollow, UserLoginInfo

__all__ = [
    "db",
    "BaseModel",
    "utcnow",
    "User",
    "UserLoginInfo",
    "UserFollow",
    "School",
    "Philosopher",
    "philosopher_school",
    "Content",
    "Comment",
    "Like",
    "UserContentEdit",
    "UserBlock",
    "ModeratorBlock",
    "SchoolTranslation",
    "ContentTranslation",
    "PhilosopherTranslation",
    "TransferRun",
    "TransferRunKind",
    "TransferRunStatus",
    "UserRole",
    "LikeEntityType",
    "EditStatus",
]
