"""User model.

Identity is provisioned elsewhere; this table only holds profile info used to
render assignees and presence.
Flask-Login integration via UserMixin.
"""

import hashlib
import uuid
from datetime import datetime, timezone

from flask_login import UserMixin

from taskboard.extensions import db


def utcnow():
    return datetime.now(timezone.utc)


# Display colors handed out to users, picked by hashing the email.
USER_COLORS = [
    "#ef4444", "#f97316", "#f59e0b", "#eab308", "#84cc16",
    "#22c55e", "#10b981", "#14b8a6", "#06b6d4", "#0ea5e9",
    "#3b82f6", "#6366f1", "#8b5cf6", "#a855f7", "#d946ef",
    "#ec4899", "#f43f5e",
]


def color_for_email(email):
    """Deterministically map an email address onto USER_COLORS."""
    digest = hashlib.sha256((email or "").strip().lower().encode("utf-8")).hexdigest()
    return USER_COLORS[int(digest, 16) % len(USER_COLORS)]


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    avatar_url = db.Column(db.String(1024), nullable=True)
    color = db.Column(db.String(16), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self):
        return f"<User {self.email}>"
