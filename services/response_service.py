"""
Response thread of a complaint.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import User, Complaint, ComplaintResponse
from auth.policies import (
    is_student, can_view_complaint, can_view_response, can_create_response,
    can_mutate_response, can_delete_response
)
from core.exceptions import ValidationError, ForbiddenError, NotFoundError
from core.logger import logger
from services.complaint_service import ComplaintService, commit_with_uploads
from storage.attachments import AttachmentUpload, validate_uploads, store_uploads, delete_attachments
import config


class ResponseService:
    """Service for complaint responses."""

    @staticmethod
    def _complaint_for(db: Session, actor: User, complaint_id: int) -> Complaint:
        complaint = ComplaintService.get_or_404(db, complaint_id)
        if not can_view_complaint(actor, complaint):
            logger.warning(f"User {actor.id} denied access to responses of complaint {complaint_id}")
            raise ForbiddenError("You do not have permission to access responses for this complaint")
        return complaint

    @staticmethod
    def _response_for(db: Session, complaint: Complaint, response_id: int) -> ComplaintResponse:
        response = db.query(ComplaintResponse).filter(
            ComplaintResponse.id == response_id,
            ComplaintResponse.complaint_id == complaint.id
        ).first()
        if response is None:
            raise NotFoundError("Response not found")
        return response

    @staticmethod
    def _validate(payload: Dict[str, Any], uploads: List[AttachmentUpload], creating: bool) -> None:
        errors = {}
        if creating or "response" in payload:
            text = payload.get("response")
            if text is None or not str(text).strip():
                errors["response"] = ["The response field is required."]
        if "is_private" in payload and payload["is_private"] is None:
            errors["is_private"] = ["The is private field must be true or false."]
        try:
            validate_uploads(uploads)
        except ValidationError as e:
            errors.update(e.errors)
        if errors:
            raise ValidationError(errors=errors)

    @staticmethod
    def list(db: Session, actor: User, complaint_id: int) -> List[ComplaintResponse]:
        """Responses visible to ``actor``, oldest first."""
        complaint = ResponseService._complaint_for(db, actor, complaint_id)
        responses = db.query(ComplaintResponse).filter(
            ComplaintResponse.complaint_id == complaint.id
        ).order_by(ComplaintResponse.created_at.asc(), ComplaintResponse.id.asc()).all()
        return [r for r in responses if can_view_response(actor, complaint, r)]

    @staticmethod
    def create(
        db: Session,
        actor: User,
        complaint_id: int,
        payload: Dict[str, Any],
        uploads: Optional[List[AttachmentUpload]] = None
    ) -> ComplaintResponse:
        uploads = uploads or []
        complaint = ComplaintService.get_or_404(db, complaint_id)
        if not can_view_complaint(actor, complaint):
            logger.warning(f"User {actor.id} denied response on complaint {complaint_id}")
            raise ForbiddenError("You do not have permission to respond to this complaint")
        wants_private = bool(payload.get("is_private") or False)
        if not can_create_response(actor, complaint, wants_private):
            raise ForbiddenError("Students cannot create private responses")

        ResponseService._validate(payload, uploads, creating=True)
        refs = store_uploads(config.RESPONSE_ATTACHMENTS_FOLDER, uploads)

        response = ComplaintResponse(
            complaint_id=complaint.id,
            user_id=actor.id,
            response=payload["response"],
            attachments=refs,
            is_private=wants_private,
        )
        db.add(response)
        commit_with_uploads(db, refs)
        db.refresh(response)
        logger.info(
            f"User {actor.id} added {'private' if wants_private else 'public'} response {response.id} "
            f"to complaint {complaint.id}"
        )
        return response

    @staticmethod
    def get(db: Session, actor: User, complaint_id: int, response_id: int) -> ComplaintResponse:
        complaint = ResponseService._complaint_for(db, actor, complaint_id)
        response = ResponseService._response_for(db, complaint, response_id)
        if not can_view_response(actor, complaint, response):
            raise ForbiddenError("You do not have permission to view this private response")
        return response

    @staticmethod
    def update(
        db: Session,
        actor: User,
        complaint_id: int,
        response_id: int,
        payload: Dict[str, Any],
        uploads: Optional[List[AttachmentUpload]] = None
    ) -> ComplaintResponse:
        """Author-only partial update. New attachments are appended."""
        uploads = uploads or []
        complaint = ComplaintService.get_or_404(db, complaint_id)
        response = ResponseService._response_for(db, complaint, response_id)

        if not can_mutate_response(actor, response):
            logger.warning(f"User {actor.id} denied update of response {response_id}")
            raise ForbiddenError("You do not have permission to update this response")
        if is_student(actor) and payload.get("is_private"):
            raise ForbiddenError("Students cannot create private responses")

        changes = {k: v for k, v in payload.items() if k in ("response", "is_private")}
        ResponseService._validate(changes, uploads, creating=False)

        for field, value in changes.items():
            setattr(response, field, value)
        refs = store_uploads(config.RESPONSE_ATTACHMENTS_FOLDER, uploads)
        if refs:
            response.attachments = list(response.attachments or []) + refs

        commit_with_uploads(db, refs)
        db.refresh(response)
        logger.info(f"User {actor.id} updated response {response.id}")
        return response

    @staticmethod
    def delete(db: Session, actor: User, complaint_id: int, response_id: int) -> None:
        complaint = ComplaintService.get_or_404(db, complaint_id)
        response = ResponseService._response_for(db, complaint, response_id)
        if not can_delete_response(actor, response):
            logger.warning(f"User {actor.id} denied delete of response {response_id}")
            raise ForbiddenError("You do not have permission to delete this response")

        refs = list(response.attachments or [])
        db.delete(response)
        db.commit()
        delete_attachments(refs)
        logger.info(f"User {actor.id} deleted response {response_id} of complaint {complaint_id}")
