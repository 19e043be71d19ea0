"""Categories API router — public list, admin CRUD."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from taskhub.core.security import require_admin
from taskhub.db.session import get_db
from taskhub.models.user import User
from taskhub.schemas.schemas import ApiResponse, CategoryCreate, CategoryOut, ok
from taskhub.services.cache_service import CacheService, get_cache
from taskhub.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=ApiResponse[list[CategoryOut]])
async def list_categories(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return ok(CategoryService.list_categories(db, cache))


@router.get("/{category_id}", response_model=ApiResponse[CategoryOut])
async def get_category(category_id: int, db: Session = Depends(get_db)):
    return ok(CategoryOut.model_validate(CategoryService.get_category(db, category_id)))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[CategoryOut])
async def create_category(
    body: CategoryCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    admin: User = Depends(require_admin),
):
    category = CategoryService.create_category(db, cache, admin, body.name)
    return ok(CategoryOut.model_validate(category), "Category created successfully")


@router.put("/{category_id}", response_model=ApiResponse[CategoryOut])
async def update_category(
    category_id: int,
    body: CategoryCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    admin: User = Depends(require_admin),
):
    category = CategoryService.update_category(db, cache, admin, category_id, body.name)
    return ok(CategoryOut.model_validate(category), "Category updated successfully")


@router.delete("/{category_id}", response_model=ApiResponse[None])
async def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    admin: User = Depends(require_admin),
):
    CategoryService.delete_category(db, cache, admin, category_id)
    return ok(message="Category deleted successfully")
