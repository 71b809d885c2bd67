"""
Category and status reference data.

Both entities share one workflow: admins create, rename, deactivate and
delete them; a row still referenced by a complaint cannot be deleted.
"""
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from database.models import User, Complaint, ComplaintCategory, ComplaintStatus
from auth.policies import can, Capability
from core.exceptions import ValidationError, ForbiddenError, NotFoundError, ConflictError
from core.logger import logger
import config


class TaxonomyService:
    """Shared CRUD for taxonomy models. Subclasses set ``model``, ``label`` and ``fields``."""

    model = None
    label = ""
    plural = ""
    fields = ("name", "description", "is_active")
    max_lengths = {"name": 255}

    @classmethod
    def _require_admin(cls, actor: User, verb: str) -> None:
        if not can(actor, Capability.MANAGE_TAXONOMY):
            logger.warning(f"User {actor.id} denied {verb} on {cls.plural}")
            raise ForbiddenError(f"You do not have permission to {verb} {cls.plural}")

    @classmethod
    def _validate(cls, db: Session, payload: Dict[str, Any], exclude_id: int = None) -> Dict[str, Any]:
        errors = {}
        for field, max_length in cls.max_lengths.items():
            value = payload.get(field)
            if value is not None and len(value) > max_length:
                errors[field] = [f"The {field} may not be greater than {max_length} characters."]

        if "name" in payload:
            name = (payload["name"] or "").strip()
            if not name:
                errors["name"] = ["The name field is required."]
            else:
                payload["name"] = name
                query = db.query(cls.model).filter(cls.model.name == name)
                if exclude_id is not None:
                    query = query.filter(cls.model.id != exclude_id)
                if query.first() is not None:
                    errors.setdefault("name", []).append("The name has already been taken.")

        if "is_active" in payload and payload["is_active"] is None:
            errors["is_active"] = ["The is active field must be true or false."]

        if errors:
            raise ValidationError(errors=errors)
        return payload

    @classmethod
    def list(cls, db: Session, active_only: bool = False) -> List:
        query = db.query(cls.model)
        if active_only:
            query = query.filter(cls.model.is_active == True)
        return query.order_by(cls.model.name.asc()).all()

    @classmethod
    def get(cls, db: Session, item_id: int):
        item = db.query(cls.model).filter(cls.model.id == item_id).first()
        if item is None:
            raise NotFoundError(f"{cls.label.capitalize()} not found")
        return item

    @classmethod
    def create(cls, db: Session, actor: User, payload: Dict[str, Any]):
        cls._require_admin(actor, "create")
        payload = {k: v for k, v in payload.items() if k in cls.fields}
        payload.setdefault("name", None)
        payload = cls._validate(db, payload)

        item = cls.model(**payload)
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info(f"User {actor.id} created {cls.label} {item.id} ({item.name})")
        return item

    @classmethod
    def update(cls, db: Session, actor: User, item_id: int, payload: Dict[str, Any]):
        cls._require_admin(actor, "update")
        item = cls.get(db, item_id)
        payload = {k: v for k, v in payload.items() if k in cls.fields}
        payload = cls._validate(db, payload, exclude_id=item.id)

        for field, value in payload.items():
            setattr(item, field, value)
        db.commit()
        db.refresh(item)
        logger.info(f"User {actor.id} updated {cls.label} {item.id}: {', '.join(sorted(payload)) or 'no changes'}")
        return item

    @classmethod
    def delete(cls, db: Session, actor: User, item_id: int) -> None:
        cls._require_admin(actor, "delete")
        item = cls.get(db, item_id)

        foreign_key = getattr(Complaint, f"{cls.label}_id")
        in_use = db.query(Complaint.id).filter(foreign_key == item.id).first() is not None
        if in_use:
            logger.warning(f"Refused to delete {cls.label} {item.id}: complaints still reference it")
            raise ConflictError(
                f"Cannot delete {cls.label} with associated complaints. Deactivate it instead."
            )

        db.delete(item)
        db.commit()
        logger.info(f"User {actor.id} deleted {cls.label} {item_id}")


class CategoryService(TaxonomyService):
    model = ComplaintCategory
    label = "category"
    plural = "categories"


class StatusService(TaxonomyService):
    model = ComplaintStatus
    label = "status"
    plural = "statuses"
    fields = ("name", "description", "color", "is_active")
    max_lengths = {"name": 255, "color": 7}

    @classmethod
    def create(cls, db: Session, actor: User, payload: Dict[str, Any]):
        payload = dict(payload)
        if not payload.get("color"):
            payload["color"] = config.DEFAULT_STATUS_COLOR
        return super().create(db, actor, payload)

    @classmethod
    def update(cls, db: Session, actor: User, item_id: int, payload: Dict[str, Any]):
        payload = dict(payload)
        if "color" in payload and not payload["color"]:
            # Column is NOT NULL; an explicit blank keeps the current color
            payload.pop("color")
        return super().update(db, actor, item_id, payload)
