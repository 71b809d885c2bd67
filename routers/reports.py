"""
Admin report API.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from database.models import User
from auth.dependencies import require_admin, get_db_session
from services.report_service import ReportService
from core.responses import success


router = APIRouter(prefix="/api/admin", tags=["reports"])


@router.get("/reports")
async def generate_report(
    report_type: str = Query(..., description="complaints, users, categories or statuses"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to one month ago"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    category_id: Optional[int] = Query(None),
    status_id: Optional[int] = Query(None),
    role: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Generate a report over a date window.
    Admin only.
    """
    report = ReportService.report(
        db,
        current_user,
        report_type=report_type,
        date_from=date_from,
        date_to=date_to,
        category_id=category_id,
        status_id=status_id,
        role=role,
    )
    data = report.pop("data")
    return success("Report generated successfully", data, **report)
