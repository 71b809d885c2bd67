"""
Admin dashboard and date-windowed reports.
"""
import calendar
from datetime import date, datetime, time
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import User, UserRole, Complaint, ComplaintCategory, ComplaintStatus
from auth.policies import can, Capability
from core.exceptions import ValidationError, ForbiddenError
from core.logger import logger
from core.validators import parse_date
from services.serializers import complaint_to_dict, user_to_dict
import config

REPORT_TYPES = ("complaints", "users", "categories", "statuses")


def subtract_month(day: date) -> date:
    """Same day one calendar month earlier, clamped to the month's last day."""
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def resolution_rate(total: int, resolved: int) -> float:
    if total == 0:
        return 0
    return round(resolved / total * 100, 2)


class ReportService:
    """Read-only aggregate views over complaints and users. Admin only."""

    @staticmethod
    def _require_reports(actor: User) -> None:
        if not can(actor, Capability.VIEW_REPORTS):
            logger.warning(f"User {actor.id} denied report access")
            raise ForbiddenError()

    @staticmethod
    def dashboard(db: Session, actor: User) -> Dict[str, Any]:
        ReportService._require_reports(actor)

        total = db.query(func.count(Complaint.id)).scalar() or 0
        resolved = db.query(func.count(Complaint.id)).filter(Complaint.is_resolved == True).scalar() or 0

        by_category = db.query(
            ComplaintCategory.name, func.count(Complaint.id)
        ).join(Complaint, Complaint.category_id == ComplaintCategory.id).group_by(
            ComplaintCategory.id, ComplaintCategory.name
        ).order_by(ComplaintCategory.name).all()

        by_status = db.query(
            ComplaintStatus.name, ComplaintStatus.color, func.count(Complaint.id)
        ).join(Complaint, Complaint.status_id == ComplaintStatus.id).group_by(
            ComplaintStatus.id, ComplaintStatus.name, ComplaintStatus.color
        ).order_by(ComplaintStatus.name).all()

        by_role = db.query(User.role, func.count(User.id)).group_by(User.role).all()

        recent = db.query(Complaint).order_by(
            Complaint.created_at.desc(), Complaint.id.desc()
        ).limit(config.RECENT_COMPLAINTS_LIMIT).all()

        return {
            "total_complaints": total,
            "resolved_complaints": resolved,
            "pending_complaints": total - resolved,
            "resolution_rate": resolution_rate(total, resolved),
            "complaints_by_category": [{"category": name, "count": count} for name, count in by_category],
            "complaints_by_status": [
                {"status": name, "color": color, "count": count} for name, color, count in by_status
            ],
            "users_by_role": [
                {"role": role.value if isinstance(role, UserRole) else role, "count": count}
                for role, count in by_role
            ],
            "recent_complaints": [complaint_to_dict(c, actor) for c in recent],
        }

    @staticmethod
    def _window(date_from: Optional[str], date_to: Optional[str]) -> Tuple[date, date]:
        errors = {}
        parsed = {}
        for field, raw in (("date_from", date_from), ("date_to", date_to)):
            try:
                parsed[field] = parse_date(raw)
            except ValueError:
                errors[field] = [f"The {field.replace('_', ' ')} is not a valid date."]
        if errors:
            raise ValidationError(errors=errors)

        start, end = parsed["date_from"], parsed["date_to"]
        if start is not None and end is not None and end < start:
            raise ValidationError.for_field(
                "date_to", "The date to must be a date after or equal to date from."
            )
        # Timestamps are stored in UTC
        today = datetime.utcnow().date()
        return start or subtract_month(today), end or today

    @staticmethod
    def report(
        db: Session,
        actor: User,
        report_type: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        category_id: Optional[int] = None,
        status_id: Optional[int] = None,
        role: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build one report over ``[date_from 00:00:00, date_to 23:59:59]``.

        The window defaults to the last month ending today.

        Returns:
            Dict with ``report_type``, ``date_from``, ``date_to`` and ``data``
        """
        ReportService._require_reports(actor)

        errors = {}
        if report_type not in REPORT_TYPES:
            errors["report_type"] = ["The selected report type is invalid."]
        if category_id is not None and db.query(ComplaintCategory.id).filter(
            ComplaintCategory.id == category_id
        ).first() is None:
            errors["category_id"] = ["The selected category id is invalid."]
        if status_id is not None and db.query(ComplaintStatus.id).filter(
            ComplaintStatus.id == status_id
        ).first() is None:
            errors["status_id"] = ["The selected status id is invalid."]
        role_enum = None
        if role:
            try:
                role_enum = UserRole(role)
            except ValueError:
                errors["role"] = ["The selected role is invalid."]
        if errors:
            raise ValidationError(errors=errors)

        start_day, end_day = ReportService._window(date_from, date_to)
        start = datetime.combine(start_day, time.min)
        end = datetime.combine(end_day, time(23, 59, 59))

        if report_type == "complaints":
            query = db.query(Complaint).filter(Complaint.created_at.between(start, end))
            if category_id is not None:
                query = query.filter(Complaint.category_id == category_id)
            if status_id is not None:
                query = query.filter(Complaint.status_id == status_id)
            rows = query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()
            data = [complaint_to_dict(c, actor) for c in rows]

        elif report_type == "users":
            complaint_counts = db.query(
                Complaint.user_id.label("user_id"), func.count(Complaint.id).label("complaints_count")
            ).group_by(Complaint.user_id).subquery()
            query = db.query(User, func.coalesce(complaint_counts.c.complaints_count, 0)).outerjoin(
                complaint_counts, complaint_counts.c.user_id == User.id
            ).filter(User.created_at.between(start, end))
            if role_enum is not None:
                query = query.filter(User.role == role_enum)
            data = []
            for user, count in query.order_by(User.created_at.desc(), User.id.desc()).all():
                row = user_to_dict(user)
                row["complaints_count"] = count
                data.append(row)

        elif report_type == "categories":
            rows = db.query(
                ComplaintCategory.id, ComplaintCategory.name, func.count(Complaint.id)
            ).join(Complaint, Complaint.category_id == ComplaintCategory.id).filter(
                Complaint.created_at.between(start, end)
            ).group_by(ComplaintCategory.id, ComplaintCategory.name).order_by(ComplaintCategory.name).all()
            data = [{"id": cid, "category": name, "count": count} for cid, name, count in rows]

        else:
            rows = db.query(
                ComplaintStatus.id, ComplaintStatus.name, ComplaintStatus.color, func.count(Complaint.id)
            ).join(Complaint, Complaint.status_id == ComplaintStatus.id).filter(
                Complaint.created_at.between(start, end)
            ).group_by(
                ComplaintStatus.id, ComplaintStatus.name, ComplaintStatus.color
            ).order_by(ComplaintStatus.name).all()
            data = [{"id": sid, "status": name, "color": color, "count": count} for sid, name, color, count in rows]

        logger.info(f"User {actor.id} ran {report_type} report for {start_day} to {end_day}: {len(data)} row(s)")
        return {
            "report_type": report_type,
            "date_from": start_day.isoformat(),
            "date_to": end_day.isoformat(),
            "data": data,
        }
