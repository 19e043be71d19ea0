"""Unit tests for CategoryService and its cached listing."""

import pytest

from taskhub.core.exceptions import ResourceConflictError, ValidationError
from taskhub.models.category import Category
from taskhub.services.category_service import CATEGORY_LIST_KEY, CategoryService


class TestCategories:

    @pytest.mark.unit
    def test_listing_is_sorted_and_cached(self, db, cache, admin_user):
        CategoryService.create_category(db, cache, admin_user, "Writing")
        CategoryService.create_category(db, cache, admin_user, "Design")

        listed = CategoryService.list_categories(db, cache)

        assert [c["name"] for c in listed] == ["Design", "Writing"]
        assert cache.store[CATEGORY_LIST_KEY] == listed

    @pytest.mark.unit
    def test_mutations_invalidate_cache(self, db, cache, admin_user):
        design = CategoryService.create_category(db, cache, admin_user, "Design")
        CategoryService.list_categories(db, cache)

        CategoryService.update_category(db, cache, admin_user, design.id, "Graphic Design")

        assert CATEGORY_LIST_KEY not in cache.store
        assert [c["name"] for c in CategoryService.list_categories(db, cache)] == ["Graphic Design"]

    @pytest.mark.unit
    def test_duplicate_names_conflict(self, db, cache, admin_user):
        CategoryService.create_category(db, cache, admin_user, "Design")
        writing = CategoryService.create_category(db, cache, admin_user, "Writing")
        with pytest.raises(ResourceConflictError):
            CategoryService.create_category(db, cache, admin_user, " Design ")
        with pytest.raises(ResourceConflictError):
            CategoryService.update_category(db, cache, admin_user, writing.id, "Design")

    @pytest.mark.unit
    def test_referenced_category_cannot_be_deleted(self, db, cache, admin_user, category, make_task):
        make_task()
        with pytest.raises(ValidationError) as exc_info:
            CategoryService.delete_category(db, cache, admin_user, category.id)
        assert exc_info.value.status_code == 400

    @pytest.mark.unit
    def test_unreferenced_category_is_deleted(self, db, cache, admin_user, category):
        category_id = category.id
        CategoryService.delete_category(db, cache, admin_user, category_id)
        assert db.query(Category).filter(Category.id == category_id).first() is None
