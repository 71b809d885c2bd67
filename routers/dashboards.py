"""
Admin dashboard API.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.models import User
from auth.dependencies import require_admin, get_db_session
from services.report_service import ReportService
from core.responses import success


router = APIRouter(prefix="/api/admin", tags=["dashboards"])


@router.get("/dashboard")
async def admin_dashboard(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Complaint totals, resolution rate, breakdowns by category, status and
    role, and the newest complaints.
    Admin only.
    """
    stats = ReportService.dashboard(db, current_user)
    return success("Dashboard statistics retrieved successfully", stats)
