"""
Authentication endpoints: registration, login, token refresh, and self-profile.
"""
from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional

from database.models import User, UserRole
from auth.dependencies import get_current_user, get_db_session
from services.auth_service import AuthService
from services.audit_service import AuditService
from services.serializers import user_to_dict
from core.exceptions import UnauthorizedError
from core.responses import success


router = APIRouter(prefix="/api/auth", tags=["authentication"])


# Request Models
class RegisterRequest(BaseModel):
    """Self-registration; always creates a student account."""
    name: str
    email: EmailStr
    password: str
    student_id: Optional[str] = None
    department: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    """Self-profile update. Role is not accepted here."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    student_id: Optional[str] = None
    department: Optional[str] = None


def _client_info(request: Request):
    return request.headers.get("user-agent"), request.client.host if request.client else None


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """Register a new student account and sign it in."""
    user = AuthService.create_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=UserRole.STUDENT,
        student_id=payload.student_id,
        department=payload.department,
    )
    device_info, ip_address = _client_info(request)
    tokens = AuthService.issue_tokens(db, user, device_info, ip_address)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="user_register",
        actor=user,
        resource_type="user",
        resource_id=user.id
    )
    return success("User registered successfully", {"user": user_to_dict(user), **tokens})


@router.post("/login")
async def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """
    Login with email + password.
    Returns JWT tokens and user info.
    """
    user = AuthService.authenticate_user(db, credentials.email, credentials.password)

    if not user:
        AuditService.log_from_request(
            db=db,
            request=request,
            action="login_failed",
            resource_type="user",
            details={"email": credentials.email}
        )
        raise UnauthorizedError("Invalid email or password")

    device_info, ip_address = _client_info(request)
    tokens = AuthService.issue_tokens(db, user, device_info, ip_address)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="login",
        actor=user,
        resource_type="user",
        resource_id=user.id
    )
    return success("Login successful", {**tokens, "user": user_to_dict(user)})


@router.post("/refresh")
async def refresh_token(
    token_data: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """Refresh access token using refresh token. The presented refresh token is revoked."""
    device_info, ip_address = _client_info(request)
    user, tokens = AuthService.rotate_refresh_token(db, token_data.refresh_token, device_info, ip_address)
    return success("Token refreshed successfully", {**tokens, "user": user_to_dict(user)})


@router.post("/logout")
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Logout: revoke every refresh token of the caller."""
    revoked = AuthService.revoke_all_refresh_tokens(db, current_user.id)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="logout",
        actor=current_user,
        resource_type="user",
        resource_id=current_user.id,
        details={"revoked_tokens": revoked}
    )
    return success("Logged out successfully")


@router.get("/me")
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    return success("User retrieved successfully", user_to_dict(current_user))


@router.put("/me")
async def update_current_user(
    payload: ProfileUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Update own profile. Role changes go through the admin user endpoints."""
    changes = payload.model_dump(exclude_unset=True)
    user = AuthService.update_profile(db, current_user, changes)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="profile_update",
        actor=user,
        resource_type="user",
        resource_id=user.id,
        details={"fields": sorted(changes)}
    )
    return success("Profile updated successfully", user_to_dict(user))
