"""Category service — reference data CRUD with a cached public list."""

import logging
from typing import List

from sqlalchemy.orm import Session

from taskhub.core.config import settings
from taskhub.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from taskhub.models.category import Category
from taskhub.models.task import Task
from taskhub.models.user import User
from taskhub.schemas.schemas import CategoryOut
from taskhub.services.audit_service import AuditService
from taskhub.services.cache_service import CacheService

logger = logging.getLogger("taskhub.categories")

CATEGORY_LIST_KEY = "categories:all"


class CategoryService:

    @staticmethod
    def list_categories(db: Session, cache: CacheService) -> List[dict]:
        """All categories ordered by name, served from Redis when warm."""
        cached = cache.get_json(CATEGORY_LIST_KEY)
        if cached is not None:
            return cached
        rows = db.query(Category).order_by(Category.name.asc()).all()
        data = [CategoryOut.model_validate(c).model_dump() for c in rows]
        cache.set_json(CATEGORY_LIST_KEY, data, settings.CATEGORY_CACHE_TTL_SECONDS)
        return data

    @staticmethod
    def get_category(db: Session, category_id: int) -> Category:
        category = db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise ResourceNotFoundError("Category not found")
        return category

    @staticmethod
    def create_category(db: Session, cache: CacheService, actor: User, name: str) -> Category:
        name = name.strip()
        if db.query(Category).filter(Category.name == name).first():
            raise ResourceConflictError("Category with this name already exists")
        category = Category(name=name)
        db.add(category)
        db.flush()
        AuditService.record(db, actor, "category.created", "category", category.id, {"name": name})
        db.commit()
        db.refresh(category)
        cache.delete(CATEGORY_LIST_KEY)
        return category

    @staticmethod
    def update_category(
        db: Session, cache: CacheService, actor: User, category_id: int, name: str
    ) -> Category:
        category = CategoryService.get_category(db, category_id)
        name = name.strip()
        clash = (
            db.query(Category)
            .filter(Category.name == name, Category.id != category_id)
            .first()
        )
        if clash:
            raise ResourceConflictError("Another category with this name already exists")
        old_name = category.name
        category.name = name
        AuditService.record(
            db, actor, "category.updated", "category", category.id,
            {"from": old_name, "to": name},
        )
        db.commit()
        db.refresh(category)
        cache.delete(CATEGORY_LIST_KEY)
        return category

    @staticmethod
    def delete_category(db: Session, cache: CacheService, actor: User, category_id: int) -> None:
        """Delete a category no task points at.

        Raises:
            ValidationError: While any task still references the category.
        """
        category = CategoryService.get_category(db, category_id)
        in_use = db.query(Task).filter(Task.category_id == category_id).count()
        if in_use:
            raise ValidationError(
                f"Cannot delete category: {in_use} task(s) are still associated with it"
            )
        AuditService.record(db, actor, "category.deleted", "category", category.id, {"name": category.name})
        db.delete(category)
        db.commit()
        cache.delete(CATEGORY_LIST_KEY)
        logger.info("Category %s deleted by %s", category_id, actor.id)
