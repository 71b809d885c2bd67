"""
Admin dashboard and reports.
"""
from datetime import date, datetime, timedelta

import pytest

from database.models import Complaint
from services.report_service import subtract_month, resolution_rate
from conftest import auth_headers


@pytest.mark.parametrize("day, expected", [
    (date(2024, 3, 31), date(2024, 2, 29)),
    (date(2023, 3, 31), date(2023, 2, 28)),
    (date(2024, 1, 15), date(2023, 12, 15)),
    (date(2024, 7, 31), date(2024, 6, 30)),
])
def test_subtract_month(day, expected):
    assert subtract_month(day) == expected


def test_resolution_rate():
    assert resolution_rate(0, 0) == 0
    assert resolution_rate(3, 1) == 33.33
    assert resolution_rate(4, 4) == 100


def test_dashboard_requires_admin(client, staff):
    response = client.get("/api/admin/dashboard", headers=auth_headers(staff))

    assert response.status_code == 403


def test_dashboard_counts(client, admin, staff, student, other_student, file_complaint):
    file_complaint(student, subject="First")
    file_complaint(student, subject="Second")
    last = file_complaint(other_student, subject="Third")
    client.put(f"/api/complaints/{last['id']}", data={"is_resolved": "true"}, headers=auth_headers(staff))

    response = client.get("/api/admin/dashboard", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_complaints"] == 3
    assert data["resolved_complaints"] == 1
    assert data["pending_complaints"] == 2
    assert data["resolution_rate"] == 33.33
    assert data["complaints_by_category"] == [{"category": "Facility Issues", "count": 3}]
    assert data["complaints_by_status"] == [{"status": "Pending", "color": "#f1c40f", "count": 3}]
    assert {row["role"]: row["count"] for row in data["users_by_role"]} == {"admin": 1, "staff": 1, "student": 2}
    assert [c["subject"] for c in data["recent_complaints"]][0] == "Third"


def test_dashboard_empty(client, admin):
    data = client.get("/api/admin/dashboard", headers=auth_headers(admin)).json()["data"]

    assert data["total_complaints"] == 0
    assert data["resolution_rate"] == 0
    assert data["recent_complaints"] == []


def test_complaints_report_window(client, db, admin, student, statuses, file_complaint):
    kept = file_complaint(student, subject="Recent")
    old = file_complaint(student, subject="Old")
    stale = db.get(Complaint, old["id"])
    stale.created_at = datetime.utcnow() - timedelta(days=60)
    db.commit()

    response = client.get("/api/admin/reports", params={"report_type": "complaints"}, headers=auth_headers(admin))

    assert response.status_code == 200
    body = response.json()
    today = datetime.utcnow().date()
    assert body["report_type"] == "complaints"
    assert body["date_to"] == today.isoformat()
    assert body["date_from"] == subtract_month(today).isoformat()
    assert [c["id"] for c in body["data"]] == [kept["id"]]


def test_complaints_report_status_filter(client, admin, staff, student, statuses, file_complaint):
    complaint = file_complaint(student)
    file_complaint(student)
    client.put(
        f"/api/complaints/{complaint['id']}",
        data={"status_id": str(statuses["In Progress"].id)},
        headers=auth_headers(staff)
    )

    response = client.get(
        "/api/admin/reports",
        params={"report_type": "complaints", "status_id": statuses["In Progress"].id},
        headers=auth_headers(admin)
    )

    assert [c["id"] for c in response.json()["data"]] == [complaint["id"]]


def test_users_report_counts_and_role_filter(client, admin, staff, student, file_complaint):
    file_complaint(student)
    file_complaint(student)

    response = client.get(
        "/api/admin/reports", params={"report_type": "users", "role": "student"}, headers=auth_headers(admin)
    )

    rows = response.json()["data"]
    assert [row["id"] for row in rows] == [student.id]
    assert rows[0]["complaints_count"] == 2

    everyone = client.get("/api/admin/reports", params={"report_type": "users"}, headers=auth_headers(admin))
    counts = {row["id"]: row["complaints_count"] for row in everyone.json()["data"]}
    assert counts[staff.id] == 0


def test_categories_and_statuses_reports(client, admin, student, category, statuses, file_complaint):
    file_complaint(student)

    categories = client.get(
        "/api/admin/reports", params={"report_type": "categories"}, headers=auth_headers(admin)
    ).json()["data"]
    assert categories == [{"id": category.id, "category": "Facility Issues", "count": 1}]

    by_status = client.get(
        "/api/admin/reports", params={"report_type": "statuses"}, headers=auth_headers(admin)
    ).json()["data"]
    assert by_status == [{"id": statuses["Pending"].id, "status": "Pending", "color": "#f1c40f", "count": 1}]


@pytest.mark.parametrize("params, field", [
    ({"report_type": "finance"}, "report_type"),
    ({"report_type": "complaints", "date_from": "2024-13-01"}, "date_from"),
    ({"report_type": "complaints", "date_from": "2024-05-10", "date_to": "2024-05-01"}, "date_to"),
    ({"report_type": "users", "role": "janitor"}, "role"),
    ({"report_type": "complaints", "category_id": 999}, "category_id"),
])
def test_report_validation(client, admin, params, field):
    response = client.get("/api/admin/reports", params=params, headers=auth_headers(admin))

    assert response.status_code == 422
    assert field in response.json()["errors"]


def test_explicit_window_includes_end_day(client, db, admin, student, file_complaint):
    complaint = file_complaint(student)
    row = db.get(Complaint, complaint["id"])
    row.created_at = datetime(2024, 5, 1, 23, 30)
    db.commit()

    response = client.get(
        "/api/admin/reports",
        params={"report_type": "complaints", "date_from": "2024-04-01", "date_to": "2024-05-01"},
        headers=auth_headers(admin)
    )

    assert [c["id"] for c in response.json()["data"]] == [complaint["id"]]
