"""
Complaint status APIs. Reading is open to any signed-in user; changes are admin only.
"""
from fastapi import APIRouter, Depends, status, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from database.models import User
from auth.dependencies import get_current_user, get_db_session
from services.taxonomy_service import StatusService
from services.audit_service import AuditService
from services.serializers import status_to_dict
from core.responses import success


router = APIRouter(tags=["statuses"])


class StatusCreate(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None  # Hex display color, e.g. "#3498db"
    is_active: Optional[bool] = True


class StatusUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("/api/statuses")
async def list_statuses(
    active_only: bool = Query(False, description="Only active statuses"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    statuses = StatusService.list(db, active_only=active_only)
    return success("Statuses retrieved successfully", [status_to_dict(s) for s in statuses])


@router.get("/api/statuses/{status_id}")
async def get_status(
    status_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    complaint_status = StatusService.get(db, status_id)
    return success("Status retrieved successfully", status_to_dict(complaint_status))


@router.post("/api/admin/statuses", status_code=status.HTTP_201_CREATED)
async def create_status(
    payload: StatusCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    data = payload.model_dump()
    if data.get("is_active") is None:
        data["is_active"] = True
    complaint_status = StatusService.create(db, current_user, data)
    AuditService.log_from_request(
        db=db, request=request, action="status_create", actor=current_user,
        resource_type="status", resource_id=complaint_status.id, details={"name": complaint_status.name}
    )
    return success("Status created successfully", status_to_dict(complaint_status))


@router.put("/api/admin/statuses/{status_id}")
async def update_status(
    status_id: int,
    payload: StatusUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    changes = payload.model_dump(exclude_unset=True)
    complaint_status = StatusService.update(db, current_user, status_id, changes)
    AuditService.log_from_request(
        db=db, request=request, action="status_update", actor=current_user,
        resource_type="status", resource_id=complaint_status.id, details={"fields": sorted(changes)}
    )
    return success("Status updated successfully", status_to_dict(complaint_status))


@router.delete("/api/admin/statuses/{status_id}")
async def delete_status(
    status_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Delete a status no complaint references; otherwise deactivate it instead."""
    StatusService.delete(db, current_user, status_id)
    AuditService.log_from_request(
        db=db, request=request, action="status_delete", actor=current_user,
        resource_type="status", resource_id=status_id
    )
    return success("Status deleted successfully")
