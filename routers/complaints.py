"""
Complaint APIs.

Create and update take multipart/form-data so attachments can be uploaded
alongside the fields.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database.models import User
from auth.dependencies import get_current_user, get_db_session
from services.complaint_service import ComplaintService
from services.audit_service import AuditService
from services.email_service import EmailService
from services.serializers import complaint_to_dict
from storage.attachments import read_uploads
from core.responses import success, paginated
from core.logger import logger
import config


router = APIRouter(prefix="/api/complaints", tags=["complaints"])


def _form_payload(**fields) -> dict:
    """Keep only the form fields the client actually sent."""
    return {k: v for k, v in fields.items() if v is not None}


@router.get("")
async def list_complaints(
    category_id: Optional[int] = Query(None),
    status_id: Optional[int] = Query(None),
    is_resolved: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Search subject or description"),
    sort_field: str = Query("created_at"),
    sort_direction: str = Query("desc"),
    page: int = Query(1, ge=1),
    per_page: int = Query(config.DEFAULT_PER_PAGE, ge=1, le=config.MAX_PER_PAGE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """
    List complaints.
    Staff and admins see every complaint; students see their own.
    """
    complaints, total = ComplaintService.list(
        db,
        current_user,
        category_id=category_id,
        status_id=status_id,
        is_resolved=is_resolved,
        search=search,
        sort_field=sort_field,
        sort_direction=sort_direction,
        page=page,
        per_page=per_page,
    )
    items = [complaint_to_dict(c, current_user) for c in complaints]
    return success("Complaints retrieved successfully", paginated(items, total, page, per_page))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_complaint(
    request: Request,
    category_id: Optional[int] = Form(None),
    subject: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    is_anonymous: Optional[bool] = Form(None),
    attachments: List[UploadFile] = File(default=[]),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """File a complaint. It starts unresolved in the default status."""
    payload = _form_payload(
        category_id=category_id,
        subject=subject,
        description=description,
        is_anonymous=is_anonymous,
    )
    uploads = await read_uploads(attachments)
    complaint = ComplaintService.create(db, current_user, payload, uploads)

    AuditService.log_from_request(
        db=db, request=request, action="complaint_create", actor=current_user,
        resource_type="complaint", resource_id=complaint.id,
        details={"attachments": len(complaint.attachments or [])}
    )
    return success("Complaint created successfully", complaint_to_dict(complaint, current_user))


@router.get("/{complaint_id}")
async def get_complaint(
    complaint_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Get a complaint with the part of its thread the caller may see."""
    complaint = ComplaintService.get(db, current_user, complaint_id)
    return success(
        "Complaint retrieved successfully",
        complaint_to_dict(complaint, current_user, include_responses=True)
    )


@router.put("/{complaint_id}")
async def update_complaint(
    complaint_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    category_id: Optional[int] = Form(None),
    status_id: Optional[int] = Form(None),
    subject: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    is_anonymous: Optional[bool] = Form(None),
    is_resolved: Optional[bool] = Form(None),
    attachments: List[UploadFile] = File(default=[]),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """
    Update a complaint.
    Students may edit their own unresolved complaints; status_id and
    is_resolved are ignored for them.
    """
    payload = _form_payload(
        category_id=category_id,
        status_id=status_id,
        subject=subject,
        description=description,
        is_anonymous=is_anonymous,
        is_resolved=is_resolved,
    )
    uploads = await read_uploads(attachments)
    complaint, newly_resolved = ComplaintService.update(db, current_user, complaint_id, payload, uploads)

    AuditService.log_from_request(
        db=db, request=request, action="complaint_update", actor=current_user,
        resource_type="complaint", resource_id=complaint.id,
        details={"fields": sorted(payload), "new_attachments": len(uploads)}
    )

    mail = getattr(request.app.state, "mail", None)
    if newly_resolved and mail is not None and complaint.user is not None:
        background_tasks.add_task(
            EmailService.send_resolved_notification,
            mail, complaint.user.email, complaint.id, complaint.subject
        )
        logger.info(f"Queued resolution notice for complaint {complaint.id}")

    return success("Complaint updated successfully", complaint_to_dict(complaint, current_user))


@router.delete("/{complaint_id}")
async def delete_complaint(
    complaint_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Delete a complaint, its responses, and their attachments. Admin or owner."""
    ComplaintService.delete(db, current_user, complaint_id)
    AuditService.log_from_request(
        db=db, request=request, action="complaint_delete", actor=current_user,
        resource_type="complaint", resource_id=complaint_id
    )
    return success("Complaint deleted successfully")
