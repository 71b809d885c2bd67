"""
Complaint category APIs. Reading is open to any signed-in user; changes are admin only.
"""
from fastapi import APIRouter, Depends, status, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from database.models import User
from auth.dependencies import get_current_user, get_db_session
from services.taxonomy_service import CategoryService
from services.audit_service import AuditService
from services.serializers import category_to_dict
from core.responses import success


router = APIRouter(tags=["categories"])


class CategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None
    is_active: Optional[bool] = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("/api/categories")
async def list_categories(
    active_only: bool = Query(False, description="Only active categories"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    categories = CategoryService.list(db, active_only=active_only)
    return success("Categories retrieved successfully", [category_to_dict(c) for c in categories])


@router.get("/api/categories/{category_id}")
async def get_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    category = CategoryService.get(db, category_id)
    return success("Category retrieved successfully", category_to_dict(category))


@router.post("/api/admin/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Create a category. Admin only; names are unique."""
    data = payload.model_dump()
    if data.get("is_active") is None:
        data["is_active"] = True
    category = CategoryService.create(db, current_user, data)
    AuditService.log_from_request(
        db=db, request=request, action="category_create", actor=current_user,
        resource_type="category", resource_id=category.id, details={"name": category.name}
    )
    return success("Category created successfully", category_to_dict(category))


@router.put("/api/admin/categories/{category_id}")
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Partial update. Deactivate instead of deleting a category that is in use."""
    changes = payload.model_dump(exclude_unset=True)
    category = CategoryService.update(db, current_user, category_id, changes)
    AuditService.log_from_request(
        db=db, request=request, action="category_update", actor=current_user,
        resource_type="category", resource_id=category.id, details={"fields": sorted(changes)}
    )
    return success("Category updated successfully", category_to_dict(category))


@router.delete("/api/admin/categories/{category_id}")
async def delete_category(
    category_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    CategoryService.delete(db, current_user, category_id)
    AuditService.log_from_request(
        db=db, request=request, action="category_delete", actor=current_user,
        resource_type="category", resource_id=category_id
    )
    return success("Category deleted successfully")
