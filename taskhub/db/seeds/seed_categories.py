"""Seed the default task categories."""

import logging
from typing import List

from sqlalchemy.orm import Session
from taskhub.models.category import Category

logger = logging.getLogger("taskhub")

DEFAULT_CATEGORIES = [
    "Web Development",
    "Mobile Development",
    "Design",
    "Writing",
    "Marketing",
    "Data Entry",
    "Video & Animation",
    "Translation",
]


def seed_categories(db: Session, names: List[str] = DEFAULT_CATEGORIES) -> int:
    """Insert categories that don't already exist. Returns how many were added."""
    existing = {name for (name,) in db.query(Category.name).all()}
    added = 0
    for name in names:
        if name in existing:
            continue
        db.add(Category(name=name))
        added += 1
    db.commit()
    logger.info("Seeded %d categories (%d already present)", added, len(names) - added)
    return added
