"""
Authentication dependencies for FastAPI.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database.models import User, UserRole
from auth.security import security, decode_access_token
from core.exceptions import UnauthorizedError, ForbiddenError
from core.logger import logger
import config


def get_db_session():
    """Get database session."""
    if not config.db:
        raise HTTPException(status_code=503, detail="Database not initialized")
    with config.db.get_session() as session:
        yield session


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db_session)
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        Current user

    Raises:
        UnauthorizedError: If the token is missing, invalid or names no user
        ForbiddenError: If the account is inactive
    """
    if credentials is None:
        raise UnauthorizedError("Authentication required")

    payload = decode_access_token(credentials.credentials, config.SECRET_KEY)
    if payload is None:
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = payload.get("sub")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid authentication credentials")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UnauthorizedError("User not found")

    if not user.is_active:
        raise ForbiddenError("User account is inactive")

    return user


def require_role(allowed_roles: list):
    """
    Dependency factory for role-based access control.

    Args:
        allowed_roles: List of allowed roles

    Returns:
        Dependency function
    """
    allowed = {UserRole(role) for role in allowed_roles}

    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed:
            logger.warning(
                f"User {current_user.id} ({current_user.role.value}) denied; requires {', '.join(sorted(r.value for r in allowed))}"
            )
            raise ForbiddenError()
        return current_user

    return role_checker


require_admin = require_role(["admin"])
