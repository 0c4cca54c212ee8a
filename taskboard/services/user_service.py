"""User service — list and create user profiles.

Functions flush but do NOT commit — the caller commits.
"""

import logging

from taskboard.errors import ValidationError
from taskboard.extensions import db
from taskboard.models.user import User, color_for_email
from taskboard.services.sanitize import sanitize

logger = logging.getLogger(__name__)


def list_users():
    return User.query.order_by(User.name).all()


def create_user(name, email, avatar_url=None):
    """Create a user profile with a deterministic display color.

    Raises:
        ValidationError: If name/email are missing or the email is taken.
    """
    name = sanitize(name)
    email = (email or "").strip().lower()
    if not name:
        raise ValidationError("Name is required.")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required.")
    if User.query.filter_by(email=email).first() is not None:
        raise ValidationError("User with this email already exists.")

    user = User(
        name=name,
        email=email,
        avatar_url=(avatar_url or None),
        color=color_for_email(email),
    )
    db.session.add(user)
    db.session.flush()
    logger.info(f"Created user {user.id} ({email})")
    return user
