"""
Admin user management.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import User, UserRole
from auth.policies import can, Capability
from core.exceptions import ValidationError, ForbiddenError, NotFoundError
from core.logger import logger
from services.auth_service import AuthService, normalize_email
from storage.attachments import delete_attachments
import config

USER_SORT_FIELDS = ("id", "name", "email", "role", "student_id", "department", "is_active", "created_at", "updated_at")


def parse_role(value: Any, field: str = "role") -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise ValidationError.for_field(field, "The selected role is invalid.")


class UserService:
    """Service for admin operations on user accounts."""

    @staticmethod
    def _require_admin(actor: User) -> None:
        if not can(actor, Capability.MANAGE_USERS):
            logger.warning(f"User {actor.id} denied user management")
            raise ForbiddenError()

    @staticmethod
    def list(
        db: Session,
        actor: User,
        role: Optional[str] = None,
        search: Optional[str] = None,
        sort_field: str = "created_at",
        sort_direction: str = "desc",
        page: int = 1,
        per_page: int = config.DEFAULT_PER_PAGE
    ) -> Tuple[List[User], int]:
        UserService._require_admin(actor)
        if sort_field not in USER_SORT_FIELDS:
            raise ValidationError.for_field("sort_field", "The selected sort field is invalid.")
        if sort_direction not in ("asc", "desc"):
            raise ValidationError.for_field("sort_direction", "The selected sort direction is invalid.")

        query = db.query(User)
        if role:
            query = query.filter(User.role == parse_role(role))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    User.name.ilike(pattern),
                    User.email.ilike(pattern),
                    User.student_id.ilike(pattern)
                )
            )

        total = query.count()
        column = getattr(User, sort_field)
        order = column.asc() if sort_direction == "asc" else column.desc()
        users = query.order_by(order, User.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
        return users, total

    @staticmethod
    def get(db: Session, actor: User, user_id: int) -> User:
        UserService._require_admin(actor)
        user = AuthService.get_user_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def create(db: Session, actor: User, payload: Dict[str, Any]) -> User:
        UserService._require_admin(actor)
        errors = {}
        for field in ("name", "email", "password", "role"):
            if not payload.get(field):
                errors[field] = [f"The {field} field is required."]
        if errors:
            raise ValidationError(errors=errors)

        user = AuthService.create_user(
            db,
            name=payload["name"],
            email=payload["email"],
            password=payload["password"],
            role=parse_role(payload["role"]),
            student_id=payload.get("student_id"),
            department=payload.get("department"),
            is_active=payload.get("is_active", True) is not False,
        )
        logger.info(f"Admin {actor.id} created user {user.id} ({user.role.value})")
        return user

    @staticmethod
    def update(db: Session, actor: User, user_id: int, payload: Dict[str, Any]) -> User:
        """Partial update; the password is re-hashed when given."""
        user = UserService.get(db, actor, user_id)

        if "name" in payload and not (payload["name"] or "").strip():
            raise ValidationError.for_field("name", "The name field is required.")
        if payload.get("email") is not None:
            AuthService.ensure_email_available(db, payload["email"], exclude_user_id=user.id)
            user.email = normalize_email(payload["email"])
        if payload.get("password"):
            user.hashed_password = AuthService.hash_valid_password(payload["password"])
        if payload.get("role") is not None:
            user.role = parse_role(payload["role"])
        if payload.get("name") is not None:
            user.name = payload["name"].strip()
        for field in ("student_id", "department"):
            if field in payload:
                setattr(user, field, payload[field])
        if payload.get("is_active") is not None:
            user.is_active = bool(payload["is_active"])

        db.commit()
        db.refresh(user)
        logger.info(f"Admin {actor.id} updated user {user.id}")
        return user

    @staticmethod
    def delete(db: Session, actor: User, user_id: int) -> None:
        """Delete a user with their complaints and responses, then their stored attachments."""
        user = UserService.get(db, actor, user_id)
        if user.id == actor.id:
            raise ValidationError(
                "You cannot delete your own account",
                errors={"user": ["You cannot delete your own account."]}
            )

        refs = []
        for complaint in user.complaints:
            refs.extend(complaint.attachments or [])
            for response in complaint.responses:
                refs.extend(response.attachments or [])
        for response in user.responses:
            refs.extend(response.attachments or [])
        refs = list(dict.fromkeys(refs))

        db.delete(user)
        db.commit()
        removed = delete_attachments(refs)
        logger.info(f"Admin {actor.id} deleted user {user_id} ({removed}/{len(refs)} attachment(s) removed)")
