# lyceum/models/user.py

from sqlalchemy import UniqueConstraint

from .base import BaseModel, db, utcnow
from .enums import UserRole


class User(BaseModel):
    """Platform account"""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False, index=True)
    email = db.Column(db.String(100), unique=True, nullable=True, index=True)
    password = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(50), nullable=True)
    last_name = db.Column(db.String(50), nullable=True)
    role = db.Column(db.String(20), nullable=False, default=UserRole.USER.value)
    enabled = db.Column(db.Boolean, nullable=False, default=True)

    # Login protection
    failed_login_attempts = db.Column(db.Integer, nullable=False, default=0)
    account_locked = db.Column(db.Boolean, nullable=False, default=False)
    lock_time = db.Column(db.DateTime, nullable=True)
    lock_expire_time = db.Column(db.DateTime, nullable=True)
    admin_login_attempts = db.Column(db.Integer, nullable=False, default=0)

    # Privacy switches
    profile_private = db.Column(db.Boolean, nullable=False, default=False)
    comments_private = db.Column(db.Boolean, nullable=False, default=False)
    contents_private = db.Column(db.Boolean, nullable=False, default=False)

    like_count = db.Column(db.Integer, nullable=True, default=0)
    # Plain identifier, not a foreign key: moderators keep it across school reloads
    assigned_school_id = db.Column(db.Integer, nullable=True)

    # Last seen client
    ip_address = db.Column(db.String(45), nullable=True)
    device_type = db.Column(db.String(50), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    avatar_url = db.Column(db.String(500), nullable=True)
    language = db.Column(db.String(10), nullable=True, default="zh")
    theme = db.Column(db.String(10), nullable=True, default="midnight")
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    login_records = db.relationship("UserLoginInfo", back_populates="user")

    def __repr__(self):
        return f"<User {self.username}>"


class UserLoginInfo(BaseModel):
    """One recorded sign-in of a user"""

    __tablename__ = "user_login_info"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    ip_address = db.Column(db.String(45), nullable=False, default="")
    user_agent = db.Column(db.Text, nullable=True)
    browser = db.Column(db.String(50), nullable=True)
    operating_system = db.Column(db.String(50), nullable=True)
    device_type = db.Column(db.String(50), nullable=True)
    device_id = db.Column(db.String(128), nullable=True)
    login_time = db.Column(db.DateTime, nullable=True, default=utcnow)

    user = db.relationship("User", back_populates="login_records")


class UserFollow(BaseModel):
    """Directed follow edge between two users"""

    __tablename__ = "user_follows"

    id = db.Column(db.Integer, primary_key=True)
    follower_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    following_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    __table_args__ = (UniqueConstraint("follower_id", "following_id", name="uq_user_follows_pair"),)
