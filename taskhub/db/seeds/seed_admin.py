"""Seed the platform admin user from env vars."""

import logging

from sqlalchemy.orm import Session
from taskhub.models.user import User, UserRole, Profile
from taskhub.db.base import utcnow
from taskhub.core.security import hash_password
from taskhub.core.config import settings

logger = logging.getLogger("taskhub")


def seed_admin(db: Session) -> User:
    """Create the admin user if not already present."""
    email = settings.ADMIN_EMAIL.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        logger.info("Admin '%s' already exists, skipping", email)
        return existing

    admin = User(
        email=email,
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        email_verified_at=utcnow(),
    )
    admin.profile = Profile(first_name="Platform", last_name="Admin")
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Created admin: %s", email)
    return admin
