#!/usr/bin/env python3
"""
Seed the default complaint categories and statuses.

Existing rows (matched by name) are left untouched, so the script can be re-run.
"""
import sys
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.orm import Session

from database.connection import Database
from database.models import ComplaintCategory, ComplaintStatus
from core.logger import logger
import config

DEFAULT_CATEGORIES = [
    ("Academic Issues", "Issues related to courses, exams, grades, and academic policies"),
    ("Administrative Issues", "Issues related to administrative procedures, documentation, and services"),
    ("Facility Issues", "Issues related to campus facilities, classrooms, laboratories, and infrastructure"),
    ("Financial Issues", "Issues related to fees, scholarships, financial aid, and payments"),
    ("Harassment or Discrimination", "Issues related to harassment, discrimination, or unfair treatment"),
    ("IT Services", "Issues related to IT infrastructure, internet, software, and technical support"),
    ("Library Services", "Issues related to library resources, access, and services"),
    ("Hostel/Accommodation", "Issues related to student housing and accommodation facilities"),
    ("Transportation", "Issues related to campus transportation and parking"),
    ("Other", "Any other issues not covered by the above categories"),
]

DEFAULT_STATUSES = [
    ("New", "Complaint has been submitted but not yet reviewed", "#3498db"),
    ("Under Review", "Complaint is being reviewed by the staff", "#f39c12"),
    ("In Progress", "Complaint is being addressed by the staff", "#9b59b6"),
    ("On Hold", "Complaint resolution is temporarily paused", "#e74c3c"),
    ("Resolved", "Complaint has been resolved", "#2ecc71"),
    ("Closed", "Complaint has been closed without resolution", "#7f8c8d"),
    ("Reopened", "Previously resolved complaint has been reopened", "#e67e22"),
]


def seed_taxonomy(db: Session) -> tuple:
    """
    Insert missing default categories and statuses.

    Returns:
        Tuple of (categories_added, statuses_added)
    """
    categories_added = 0
    for name, description in DEFAULT_CATEGORIES:
        if db.query(ComplaintCategory).filter(ComplaintCategory.name == name).first() is None:
            db.add(ComplaintCategory(name=name, description=description, is_active=True))
            categories_added += 1

    statuses_added = 0
    for name, description, color in DEFAULT_STATUSES:
        if db.query(ComplaintStatus).filter(ComplaintStatus.name == name).first() is None:
            db.add(ComplaintStatus(name=name, description=description, color=color, is_active=True))
            statuses_added += 1

    db.commit()
    logger.info(f"Seeded {categories_added} categories and {statuses_added} statuses")
    return categories_added, statuses_added


def main():
    config.db = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )
    config.db.create_tables()

    with config.db.get_session() as db:
        categories_added, statuses_added = seed_taxonomy(db)
    print(f"✓ Added {categories_added} categories and {statuses_added} statuses")


if __name__ == "__main__":
    main()
