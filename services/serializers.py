"""
Dict builders for API responses.
"""
from datetime import datetime
from typing import Optional, List

from database.models import User, ComplaintCategory, ComplaintStatus, Complaint, ComplaintResponse
from auth.policies import can_view_response, can_see_anonymous_author
from storage.attachments import attachment_urls


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "student_id": user.student_id,
        "department": user.department,
        "is_active": user.is_active,
        "last_login": _iso(user.last_login),
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


def user_summary(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
    }


def category_to_dict(category: Optional[ComplaintCategory]) -> Optional[dict]:
    if category is None:
        return None
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "is_active": category.is_active,
        "created_at": _iso(category.created_at),
        "updated_at": _iso(category.updated_at),
    }


def status_to_dict(complaint_status: Optional[ComplaintStatus]) -> Optional[dict]:
    if complaint_status is None:
        return None
    data = category_to_dict(complaint_status)
    data["color"] = complaint_status.color
    return data


def response_to_dict(response: ComplaintResponse, viewer: User) -> dict:
    """Serialize a thread response. The owner of an anonymous complaint stays hidden here too."""
    complaint = response.complaint
    show_author = response.user_id != complaint.user_id or can_see_anonymous_author(viewer, complaint)
    return {
        "id": response.id,
        "complaint_id": response.complaint_id,
        "user_id": response.user_id if show_author else None,
        "user": user_summary(response.user) if show_author else None,
        "response": response.response,
        "attachments": list(response.attachments or []),
        "attachment_urls": attachment_urls(response.attachments),
        "is_private": response.is_private,
        "created_at": _iso(response.created_at),
        "updated_at": _iso(response.updated_at),
    }


def complaint_to_dict(
    complaint: Complaint,
    viewer: User,
    include_responses: bool = False
) -> dict:
    """
    Serialize a complaint for ``viewer``.

    The author block of an anonymous complaint is withheld from everyone but
    its owner and admins. When ``include_responses`` is set the thread is
    filtered to the responses the viewer may see.
    """
    show_author = can_see_anonymous_author(viewer, complaint)
    data = {
        "id": complaint.id,
        "user_id": complaint.user_id if show_author else None,
        "user": user_summary(complaint.user) if show_author else None,
        "category_id": complaint.category_id,
        "category": category_to_dict(complaint.category),
        "status_id": complaint.status_id,
        "status": status_to_dict(complaint.status),
        "subject": complaint.subject,
        "description": complaint.description,
        "attachments": list(complaint.attachments or []),
        "attachment_urls": attachment_urls(complaint.attachments),
        "is_anonymous": complaint.is_anonymous,
        "is_resolved": complaint.is_resolved,
        "resolved_at": _iso(complaint.resolved_at),
        "created_at": _iso(complaint.created_at),
        "updated_at": _iso(complaint.updated_at),
    }
    if include_responses:
        data["responses"] = [
            response_to_dict(r, viewer) for r in visible_responses(viewer, complaint)
        ]
    return data


def visible_responses(viewer: User, complaint: Complaint) -> List[ComplaintResponse]:
    """Thread responses the viewer may see, in thread order."""
    return [r for r in complaint.responses if can_view_response(viewer, complaint, r)]
