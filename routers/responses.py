"""
Complaint response thread APIs, nested under a complaint.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database.models import User
from auth.dependencies import get_current_user, get_db_session
from services.response_service import ResponseService
from services.audit_service import AuditService
from services.email_service import EmailService
from services.serializers import response_to_dict
from storage.attachments import read_uploads
from core.responses import success
from core.logger import logger


router = APIRouter(prefix="/api/complaints/{complaint_id}/responses", tags=["responses"])


@router.get("")
async def list_responses(
    complaint_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Thread in creation order. Private responses are omitted for students."""
    responses = ResponseService.list(db, current_user, complaint_id)
    return success("Responses retrieved successfully", [response_to_dict(r, current_user) for r in responses])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_response(
    complaint_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    response: Optional[str] = Form(None),
    is_private: Optional[bool] = Form(None),
    attachments: List[UploadFile] = File(default=[]),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    payload = {"response": response}
    if is_private is not None:
        payload["is_private"] = is_private
    uploads = await read_uploads(attachments)
    created = ResponseService.create(db, current_user, complaint_id, payload, uploads)

    AuditService.log_from_request(
        db=db, request=request, action="response_create", actor=current_user,
        resource_type="complaint_response", resource_id=created.id,
        details={"complaint_id": complaint_id, "is_private": created.is_private}
    )

    complaint = created.complaint
    mail = getattr(request.app.state, "mail", None)
    if mail is not None and not created.is_private and complaint.user_id != current_user.id:
        background_tasks.add_task(
            EmailService.send_response_notification,
            mail, complaint.user.email, complaint.id, complaint.subject,
            current_user.name, created.response
        )
        logger.info(f"Queued response notice for complaint {complaint.id}")

    return success("Response created successfully", response_to_dict(created, current_user))


@router.get("/{response_id}")
async def get_response(
    complaint_id: int,
    response_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    found = ResponseService.get(db, current_user, complaint_id, response_id)
    return success("Response retrieved successfully", response_to_dict(found, current_user))


@router.put("/{response_id}")
async def update_response(
    complaint_id: int,
    response_id: int,
    request: Request,
    response: Optional[str] = Form(None),
    is_private: Optional[bool] = Form(None),
    attachments: List[UploadFile] = File(default=[]),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Edit own response. New attachments are appended."""
    payload = {}
    if response is not None:
        payload["response"] = response
    if is_private is not None:
        payload["is_private"] = is_private
    uploads = await read_uploads(attachments)
    updated = ResponseService.update(db, current_user, complaint_id, response_id, payload, uploads)

    AuditService.log_from_request(
        db=db, request=request, action="response_update", actor=current_user,
        resource_type="complaint_response", resource_id=updated.id,
        details={"fields": sorted(payload), "new_attachments": len(uploads)}
    )
    return success("Response updated successfully", response_to_dict(updated, current_user))


@router.delete("/{response_id}")
async def delete_response(
    complaint_id: int,
    response_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    ResponseService.delete(db, current_user, complaint_id, response_id)
    AuditService.log_from_request(
        db=db, request=request, action="response_delete", actor=current_user,
        resource_type="complaint_response", resource_id=response_id,
        details={"complaint_id": complaint_id}
    )
    return success("Response deleted successfully")
