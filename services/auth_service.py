"""
Authentication service: accounts, credentials, and refresh tokens.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy import func

from database.models import User, UserRole, RefreshToken
from auth.security import (
    verify_password, get_password_hash, validate_password, create_access_token, create_refresh_token,
    decode_refresh_token, generate_refresh_token_hash
)
from core.exceptions import ValidationError, UnauthorizedError
from core.logger import logger
import config

# Fields a user may change on their own account
PROFILE_FIELDS = ("name", "email", "password", "student_id", "department")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Service for authentication operations."""

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        return db.query(User).filter(func.lower(User.email) == normalize_email(email)).first()

    @staticmethod
    def ensure_email_available(db: Session, email: str, exclude_user_id: Optional[int] = None) -> None:
        query = db.query(User).filter(func.lower(User.email) == normalize_email(email))
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        if query.first() is not None:
            raise ValidationError.for_field("email", "The email has already been taken.")

    @staticmethod
    def hash_valid_password(password: str) -> str:
        """Validate then hash a password, raising ValidationError on field ``password``."""
        is_valid, error_message = validate_password(password)
        if not is_valid:
            raise ValidationError.for_field("password", error_message)
        return get_password_hash(password)

    @staticmethod
    def create_user(
        db: Session,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.STUDENT,
        student_id: Optional[str] = None,
        department: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        """
        Create a new user.

        Args:
            db: Database session
            name: Display name
            email: Unique email address
            password: Plain text password
            role: User role (registration always passes student)
            student_id: Campus student number
            department: Department name
            is_active: Whether the account may sign in

        Returns:
            Created User
        """
        AuthService.ensure_email_available(db, email)
        hashed_password = AuthService.hash_valid_password(password)

        user = User(
            name=name.strip(),
            email=normalize_email(email),
            hashed_password=hashed_password,
            role=role,
            student_id=student_id,
            department=department,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Created user: {user.email} (role: {role.value})")
        return user

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns:
            User if authenticated, None otherwise (inactive accounts included)
        """
        user = AuthService.get_user_by_email(db, email)
        if not user:
            return None

        if not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            return None

        if not user.is_active:
            logger.warning(f"Login attempt for inactive account: {email}")
            return None

        user.last_login = datetime.utcnow()
        db.commit()
        return user

    @staticmethod
    def create_tokens(user: User) -> Tuple[str, str]:
        """
        Create access and refresh tokens for user.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        data = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
        }

        access_token = create_access_token(data, config.SECRET_KEY)
        refresh_token = create_refresh_token(data, config.SECRET_KEY)

        return access_token, refresh_token

    @staticmethod
    def save_refresh_token(
        db: Session,
        user_id: int,
        refresh_token: str,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> RefreshToken:
        """Persist the hash of a refresh token."""
        token_hash = generate_refresh_token_hash(refresh_token)
        expires_at = datetime.utcnow() + timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS)

        refresh_token_obj = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            device_info=device_info[:255] if device_info else None,
            ip_address=ip_address,
            expires_at=expires_at
        )
        db.add(refresh_token_obj)
        db.commit()
        db.refresh(refresh_token_obj)
        return refresh_token_obj

    @staticmethod
    def issue_tokens(
        db: Session,
        user: User,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a token pair, store the refresh token, and build the token payload."""
        access_token, refresh_token = AuthService.create_tokens(user)
        AuthService.save_refresh_token(db, user.id, refresh_token, device_info, ip_address)
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    @staticmethod
    def revoke_refresh_token(db: Session, token_hash: str) -> bool:
        """Revoke a refresh token."""
        token = db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked == False
        ).first()

        if not token:
            return False

        token.is_revoked = True
        token.revoked_at = datetime.utcnow()
        db.commit()
        return True

    @staticmethod
    def revoke_all_refresh_tokens(db: Session, user_id: int) -> int:
        """Revoke every active refresh token of a user. Returns how many were revoked."""
        tokens = db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.is_revoked == False
        ).all()
        now = datetime.utcnow()
        for token in tokens:
            token.is_revoked = True
            token.revoked_at = now
        db.commit()
        logger.info(f"Revoked {len(tokens)} refresh token(s) for user {user_id}")
        return len(tokens)

    @staticmethod
    def rotate_refresh_token(
        db: Session,
        refresh_token: str,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Tuple[User, Dict[str, Any]]:
        """
        Exchange a valid refresh token for a new token pair. The old token is revoked.

        Raises:
            UnauthorizedError: If the token is invalid, expired, revoked or its user is inactive
        """
        payload = decode_refresh_token(refresh_token, config.SECRET_KEY)
        if payload is None:
            raise UnauthorizedError("Invalid refresh token")

        token_hash = generate_refresh_token_hash(refresh_token)
        stored = db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()
        if stored is None or stored.is_revoked or stored.expires_at < datetime.utcnow():
            raise UnauthorizedError("Invalid refresh token")

        user = AuthService.get_user_by_id(db, stored.user_id)
        if user is None or not user.is_active or str(user.id) != str(payload.get("sub")):
            raise UnauthorizedError("Invalid refresh token")

        AuthService.revoke_refresh_token(db, token_hash)
        tokens = AuthService.issue_tokens(db, user, device_info, ip_address)
        logger.info(f"Refreshed tokens for user {user.id}")
        return user, tokens

    @staticmethod
    def update_profile(db: Session, user: User, changes: Dict[str, Any]) -> User:
        """
        Update the caller's own account. Only PROFILE_FIELDS are applied; role never is.
        """
        changes = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}

        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError.for_field("name", "The name field is required.")
        if changes.get("email") is not None:
            AuthService.ensure_email_available(db, changes["email"], exclude_user_id=user.id)
            user.email = normalize_email(changes["email"])
        if changes.get("password"):
            user.hashed_password = AuthService.hash_valid_password(changes["password"])
        if changes.get("name") is not None:
            user.name = changes["name"].strip()
        for field in ("student_id", "department"):
            if field in changes:
                setattr(user, field, changes[field])

        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} updated profile fields: {', '.join(sorted(changes)) or 'none'}")
        return user
