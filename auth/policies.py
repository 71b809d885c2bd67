"""
Role policy for complaints and responses.

Every predicate takes the acting user explicitly and has no side effects;
services turn a ``False`` into ``ForbiddenError``.
"""
import enum
from typing import Dict, FrozenSet, Iterable

from database.models import User, UserRole, Complaint, ComplaintResponse


class Capability(str, enum.Enum):
    VIEW_ALL_COMPLAINTS = "view_all_complaints"
    MANAGE_COMPLAINT_WORKFLOW = "manage_complaint_workflow"
    MANAGE_TAXONOMY = "manage_taxonomy"
    MANAGE_USERS = "manage_users"
    VIEW_REPORTS = "view_reports"
    DELETE_ANY_COMPLAINT = "delete_any_complaint"
    DELETE_ANY_RESPONSE = "delete_any_response"
    POST_PRIVATE_RESPONSE = "post_private_response"


CAPABILITIES: Dict[Capability, FrozenSet[UserRole]] = {
    Capability.VIEW_ALL_COMPLAINTS: frozenset({UserRole.STAFF, UserRole.ADMIN}),
    Capability.MANAGE_COMPLAINT_WORKFLOW: frozenset({UserRole.STAFF, UserRole.ADMIN}),
    Capability.MANAGE_TAXONOMY: frozenset({UserRole.ADMIN}),
    Capability.MANAGE_USERS: frozenset({UserRole.ADMIN}),
    Capability.VIEW_REPORTS: frozenset({UserRole.ADMIN}),
    Capability.DELETE_ANY_COMPLAINT: frozenset({UserRole.ADMIN}),
    Capability.DELETE_ANY_RESPONSE: frozenset({UserRole.ADMIN}),
    Capability.POST_PRIVATE_RESPONSE: frozenset({UserRole.STAFF, UserRole.ADMIN}),
}

# Complaint fields each role may write
STUDENT_COMPLAINT_FIELDS = frozenset({"category_id", "subject", "description", "is_anonymous"})
STAFF_COMPLAINT_FIELDS = STUDENT_COMPLAINT_FIELDS | {"status_id", "is_resolved"}


def _role(user: User) -> UserRole:
    role = user.role
    if isinstance(role, UserRole):
        return role
    return UserRole(role)


def has_role(user: User, *roles: UserRole) -> bool:
    if user is None:
        return False
    return _role(user) in roles


def is_student(user: User) -> bool:
    return has_role(user, UserRole.STUDENT)


def is_admin(user: User) -> bool:
    return has_role(user, UserRole.ADMIN)


def can(user: User, capability: Capability) -> bool:
    """Check whether the user's role holds a capability."""
    if user is None:
        return False
    return _role(user) in CAPABILITIES[Capability(capability)]


def allowed_complaint_fields(actor: User) -> FrozenSet[str]:
    if can(actor, Capability.MANAGE_COMPLAINT_WORKFLOW):
        return STAFF_COMPLAINT_FIELDS
    return STUDENT_COMPLAINT_FIELDS


def owns_complaint(actor: User, complaint: Complaint) -> bool:
    return actor is not None and complaint.user_id == actor.id


def can_view_complaint(actor: User, complaint: Complaint) -> bool:
    return can(actor, Capability.VIEW_ALL_COMPLAINTS) or owns_complaint(actor, complaint)


def can_mutate_complaint(actor: User, complaint: Complaint, fields: Iterable[str] = ()) -> bool:
    """
    Staff and admins may write any allowed field. An owner may edit an
    unresolved complaint as long as no workflow field is being written.
    """
    fields = set(fields)
    if can(actor, Capability.MANAGE_COMPLAINT_WORKFLOW):
        return fields <= STAFF_COMPLAINT_FIELDS
    if not owns_complaint(actor, complaint) or complaint.is_resolved:
        return False
    return fields <= STUDENT_COMPLAINT_FIELDS


def can_delete_complaint(actor: User, complaint: Complaint) -> bool:
    return can(actor, Capability.DELETE_ANY_COMPLAINT) or owns_complaint(actor, complaint)


def can_view_response(actor: User, complaint: Complaint, response: ComplaintResponse) -> bool:
    if can(actor, Capability.VIEW_ALL_COMPLAINTS):
        return True
    return owns_complaint(actor, complaint) and not response.is_private


def can_create_response(actor: User, complaint: Complaint, wants_private: bool = False) -> bool:
    if can(actor, Capability.MANAGE_COMPLAINT_WORKFLOW):
        return True
    return owns_complaint(actor, complaint) and not wants_private


def can_mutate_response(actor: User, response: ComplaintResponse) -> bool:
    return actor is not None and response.user_id == actor.id


def can_delete_response(actor: User, response: ComplaintResponse) -> bool:
    return can(actor, Capability.DELETE_ANY_RESPONSE) or can_mutate_response(actor, response)


def can_see_anonymous_author(actor: User, complaint: Complaint) -> bool:
    """Owner and admins see who filed an anonymous complaint."""
    if not complaint.is_anonymous:
        return True
    return is_admin(actor) or owns_complaint(actor, complaint)
