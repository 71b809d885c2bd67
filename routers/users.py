"""
User Management APIs (Admin).
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional

from database.models import User
from auth.dependencies import require_admin, get_db_session
from services.user_service import UserService
from services.audit_service import AuditService
from services.serializers import user_to_dict
from core.responses import success, paginated
import config


router = APIRouter(prefix="/api/admin/users", tags=["users"])


# Request Models
class UserCreate(BaseModel):
    """Create user request."""
    name: str
    email: EmailStr
    password: str
    role: str
    student_id: Optional[str] = None
    department: Optional[str] = None
    is_active: Optional[bool] = True


class UserUpdate(BaseModel):
    """Update user request."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[str] = None
    student_id: Optional[str] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("")
async def list_users(
    role: Optional[str] = Query(None, description="Filter by role"),
    search: Optional[str] = Query(None, description="Search by name, email or student ID"),
    sort_field: str = Query("created_at"),
    sort_direction: str = Query("desc"),
    page: int = Query(1, ge=1),
    per_page: int = Query(config.DEFAULT_PER_PAGE, ge=1, le=config.MAX_PER_PAGE),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    List users (paginated, filterable).
    Admin only.
    """
    users, total = UserService.list(
        db,
        current_user,
        role=role,
        search=search,
        sort_field=sort_field,
        sort_direction=sort_direction,
        page=page,
        per_page=per_page,
    )
    return success("Users retrieved successfully", paginated([user_to_dict(u) for u in users], total, page, per_page))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    user = UserService.create(db, current_user, payload.model_dump())
    AuditService.log_from_request(
        db=db, request=request, action="user_create", actor=current_user,
        resource_type="user", resource_id=user.id, details={"role": user.role.value}
    )
    return success("User created successfully", user_to_dict(user))


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    user = UserService.get(db, current_user, user_id)
    return success("User retrieved successfully", user_to_dict(user))


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    changes = payload.model_dump(exclude_unset=True)
    user = UserService.update(db, current_user, user_id, changes)
    AuditService.log_from_request(
        db=db, request=request, action="user_update", actor=current_user,
        resource_type="user", resource_id=user.id, details={"fields": sorted(changes)}
    )
    return success("User updated successfully", user_to_dict(user))


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Delete a user with their complaints and responses. Admins cannot delete themselves."""
    UserService.delete(db, current_user, user_id)
    AuditService.log_from_request(
        db=db, request=request, action="user_delete", actor=current_user,
        resource_type="user", resource_id=user_id
    )
    return success("User deleted successfully")
