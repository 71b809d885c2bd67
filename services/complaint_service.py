"""
Complaint workflow: filing, listing, triage updates and deletion.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import JSON, or_
from sqlalchemy.orm import Session

from database.models import User, Complaint, ComplaintCategory, ComplaintStatus
from auth.policies import (
    can, Capability, allowed_complaint_fields, can_view_complaint,
    can_mutate_complaint, can_delete_complaint, owns_complaint
)
from core.exceptions import ValidationError, ForbiddenError, NotFoundError
from core.logger import logger
from storage.attachments import AttachmentUpload, validate_uploads, store_uploads, delete_attachments
import config

SORT_DIRECTIONS = ("asc", "desc")


def commit_with_uploads(db: Session, new_refs: List[str]) -> None:
    """Commit; if the commit fails, drop the blobs stored for it and re-raise."""
    try:
        db.commit()
    except Exception:
        db.rollback()
        delete_attachments(new_refs)
        raise


class ComplaintService:
    """Service for complaint operations. The acting user is passed to every call."""

    @staticmethod
    def default_status(db: Session) -> ComplaintStatus:
        """
        Status assigned to new complaints: "Pending", else "New", else the
        first status by id.
        """
        for name in config.DEFAULT_STATUS_NAMES:
            found = db.query(ComplaintStatus).filter(ComplaintStatus.name == name).first()
            if found is not None:
                return found
        found = db.query(ComplaintStatus).order_by(ComplaintStatus.id.asc()).first()
        if found is None:
            raise ValidationError.for_field("status_id", "No complaint status is configured.")
        return found

    @staticmethod
    def _validate_fields(db: Session, payload: Dict[str, Any], creating: bool) -> Dict[str, List[str]]:
        errors = {}
        required = ("category_id", "subject", "description")
        for field in required:
            if field not in payload and not creating:
                continue
            value = payload.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field] = [f"The {field.replace('_', ' ')} field is required."]

        subject = payload.get("subject")
        if isinstance(subject, str) and len(subject) > 255:
            errors.setdefault("subject", []).append("The subject may not be greater than 255 characters.")

        if payload.get("category_id") is not None and "category_id" not in errors:
            if db.query(ComplaintCategory.id).filter(ComplaintCategory.id == payload["category_id"]).first() is None:
                errors["category_id"] = ["The selected category id is invalid."]

        if "status_id" in payload:
            if payload["status_id"] is None:
                errors["status_id"] = ["The status id field is required."]
            elif db.query(ComplaintStatus.id).filter(ComplaintStatus.id == payload["status_id"]).first() is None:
                errors["status_id"] = ["The selected status id is invalid."]

        for flag in ("is_anonymous", "is_resolved"):
            if flag in payload and payload[flag] is None:
                errors[flag] = [f"The {flag.replace('_', ' ')} field must be true or false."]
        return errors

    @staticmethod
    def create(
        db: Session,
        actor: User,
        payload: Dict[str, Any],
        uploads: Optional[List[AttachmentUpload]] = None
    ) -> Complaint:
        """
        File a complaint for ``actor``.

        Any status_id or is_resolved in the payload is ignored; new complaints
        start unresolved in the default status.
        """
        uploads = uploads or []
        payload = {k: v for k, v in payload.items() if k in ("category_id", "subject", "description", "is_anonymous")}
        errors = ComplaintService._validate_fields(db, payload, creating=True)
        try:
            validate_uploads(uploads)
        except ValidationError as e:
            errors.update(e.errors)
        if errors:
            raise ValidationError(errors=errors)

        default_status = ComplaintService.default_status(db)
        refs = store_uploads(config.COMPLAINT_ATTACHMENTS_FOLDER, uploads)

        complaint = Complaint(
            user_id=actor.id,
            category_id=payload["category_id"],
            status_id=default_status.id,
            subject=payload["subject"].strip(),
            description=payload["description"],
            attachments=refs,
            is_anonymous=bool(payload.get("is_anonymous") or False),
            is_resolved=False,
        )
        db.add(complaint)
        commit_with_uploads(db, refs)
        db.refresh(complaint)
        logger.info(f"User {actor.id} filed complaint {complaint.id} with {len(refs)} attachment(s)")
        return complaint

    @staticmethod
    def list(
        db: Session,
        actor: User,
        category_id: Optional[int] = None,
        status_id: Optional[int] = None,
        is_resolved: Optional[bool] = None,
        search: Optional[str] = None,
        sort_field: str = "created_at",
        sort_direction: str = "desc",
        page: int = 1,
        per_page: int = config.DEFAULT_PER_PAGE
    ) -> Tuple[List[Complaint], int]:
        """
        List complaints visible to ``actor``. Students see only their own.

        Returns:
            Tuple of (page of complaints, total matching)
        """
        columns = Complaint.__table__.columns
        sortable = [name for name, column in columns.items() if not isinstance(column.type, JSON)]
        if sort_field not in sortable:
            raise ValidationError.for_field("sort_field", "The selected sort field is invalid.")
        sort_direction = (sort_direction or "desc").lower()
        if sort_direction not in SORT_DIRECTIONS:
            raise ValidationError.for_field("sort_direction", "The selected sort direction is invalid.")

        query = db.query(Complaint)
        if not can(actor, Capability.VIEW_ALL_COMPLAINTS):
            query = query.filter(Complaint.user_id == actor.id)

        if category_id is not None:
            query = query.filter(Complaint.category_id == category_id)
        if status_id is not None:
            query = query.filter(Complaint.status_id == status_id)
        if is_resolved is not None:
            query = query.filter(Complaint.is_resolved == is_resolved)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Complaint.subject.ilike(pattern),
                    Complaint.description.ilike(pattern)
                )
            )

        total = query.count()

        column = columns[sort_field]
        order = column.asc() if sort_direction == "asc" else column.desc()
        offset = (page - 1) * per_page
        complaints = query.order_by(order, Complaint.id.desc()).offset(offset).limit(per_page).all()
        return complaints, total

    @staticmethod
    def get_or_404(db: Session, complaint_id: int) -> Complaint:
        complaint = db.query(Complaint).filter(Complaint.id == complaint_id).first()
        if complaint is None:
            raise NotFoundError("Complaint not found")
        return complaint

    @staticmethod
    def get(db: Session, actor: User, complaint_id: int) -> Complaint:
        complaint = ComplaintService.get_or_404(db, complaint_id)
        if not can_view_complaint(actor, complaint):
            logger.warning(f"User {actor.id} denied view of complaint {complaint_id}")
            raise ForbiddenError("You do not have permission to view this complaint")
        return complaint

    @staticmethod
    def update(
        db: Session,
        actor: User,
        complaint_id: int,
        payload: Dict[str, Any],
        uploads: Optional[List[AttachmentUpload]] = None
    ) -> Tuple[Complaint, bool]:
        """
        Apply a partial update.

        Fields outside the actor's allow-list (status_id and is_resolved for
        students) are dropped. New attachments are appended.

        Returns:
            Tuple of (complaint, whether this update resolved it)
        """
        uploads = uploads or []
        complaint = ComplaintService.get_or_404(db, complaint_id)

        if not can(actor, Capability.MANAGE_COMPLAINT_WORKFLOW):
            if not owns_complaint(actor, complaint):
                logger.warning(f"User {actor.id} denied update of complaint {complaint_id}")
                raise ForbiddenError("You do not have permission to update this complaint")
            if complaint.is_resolved:
                raise ForbiddenError("Cannot update a resolved complaint")

        allowed = allowed_complaint_fields(actor)
        changes = {k: v for k, v in payload.items() if k in allowed}
        if not can_mutate_complaint(actor, complaint, changes.keys()):
            raise ForbiddenError("You do not have permission to update this complaint")

        errors = ComplaintService._validate_fields(db, changes, creating=False)
        try:
            validate_uploads(uploads)
        except ValidationError as e:
            errors.update(e.errors)
        if errors:
            raise ValidationError(errors=errors)

        newly_resolved = False
        if changes.get("is_resolved") is True and not complaint.is_resolved:
            newly_resolved = True
            if complaint.resolved_at is None:
                complaint.resolved_at = datetime.utcnow()

        for field, value in changes.items():
            if field == "subject":
                value = value.strip()
            setattr(complaint, field, value)

        refs = store_uploads(config.COMPLAINT_ATTACHMENTS_FOLDER, uploads)
        if refs:
            complaint.attachments = list(complaint.attachments or []) + refs

        commit_with_uploads(db, refs)
        db.refresh(complaint)
        logger.info(
            f"User {actor.id} updated complaint {complaint.id}: "
            f"{', '.join(sorted(changes)) or 'no fields'}, {len(refs)} new attachment(s)"
        )
        return complaint, newly_resolved

    @staticmethod
    def delete(db: Session, actor: User, complaint_id: int) -> None:
        """Delete a complaint and its thread, then remove their stored attachments."""
        complaint = ComplaintService.get_or_404(db, complaint_id)
        if not can_delete_complaint(actor, complaint):
            logger.warning(f"User {actor.id} denied delete of complaint {complaint_id}")
            raise ForbiddenError("You do not have permission to delete this complaint")

        refs = list(complaint.attachments or [])
        for response in complaint.responses:
            refs.extend(response.attachments or [])

        db.delete(complaint)
        db.commit()
        removed = delete_attachments(refs)
        logger.info(f"User {actor.id} deleted complaint {complaint_id} ({removed}/{len(refs)} attachment(s) removed)")
