"""
A complaint from registration through resolution, as the three roles see it.
"""
import asyncio
from unittest import mock

from database.models import ComplaintCategory, ComplaintStatus
from services.email_service import EmailService
from conftest import auth_headers


def test_complaint_lifecycle(client, admin, staff, category, statuses):
    registered = client.post("/api/auth/register", json={
        "name": "Kiran Rao",
        "email": "kiran.rao@campus.edu",
        "password": "kiran-pass-1",
        "student_id": "STU-90001",
    })
    assert registered.status_code == 201
    student_headers = {"Authorization": f"Bearer {registered.json()['data']['access_token']}"}

    filed = client.post(
        "/api/complaints",
        data={
            "category_id": str(category.id),
            "subject": "Hostel water supply",
            "description": "No water on the third floor since Monday.",
            "is_anonymous": "true",
        },
        files=[("attachments", ("tap.jpeg", b"\xff\xd8 jpeg bytes", "image/jpeg"))],
        headers=student_headers
    )
    assert filed.status_code == 201
    complaint_id = filed.json()["data"]["id"]

    triage = client.put(
        f"/api/complaints/{complaint_id}",
        data={"status_id": str(statuses["In Progress"].id)},
        headers=auth_headers(staff)
    )
    assert triage.json()["data"]["status"]["name"] == "In Progress"
    assert triage.json()["data"]["user"] is None

    client.post(
        f"/api/complaints/{complaint_id}/responses",
        data={"response": "Plumber requested", "is_private": "true"},
        headers=auth_headers(staff)
    )
    client.post(
        f"/api/complaints/{complaint_id}/responses",
        data={"response": "A plumber will visit tomorrow."},
        headers=auth_headers(staff)
    )

    thread = client.get(f"/api/complaints/{complaint_id}/responses", headers=student_headers).json()["data"]
    assert [r["response"] for r in thread] == ["A plumber will visit tomorrow."]

    resolved = client.put(
        f"/api/complaints/{complaint_id}",
        data={"status_id": str(statuses["Resolved"].id), "is_resolved": "true"},
        headers=auth_headers(staff)
    ).json()["data"]
    assert resolved["is_resolved"] is True
    assert resolved["resolved_at"]

    locked = client.put(f"/api/complaints/{complaint_id}", data={"subject": "Still dry"}, headers=student_headers)
    assert locked.status_code == 403

    dashboard = client.get("/api/admin/dashboard", headers=auth_headers(admin)).json()["data"]
    assert dashboard["resolution_rate"] == 100
    assert dashboard["recent_complaints"][0]["user"]["email"] == "kiran.rao@campus.edu"


def test_resolution_email_is_queued(client, staff, student, file_complaint):
    complaint = file_complaint(student)
    mail = mock.Mock()
    client.app.state.mail = mail
    try:
        with mock.patch.object(EmailService, "send_resolved_notification", mock.AsyncMock()) as send:
            response = client.put(
                f"/api/complaints/{complaint['id']}", data={"is_resolved": "true"}, headers=auth_headers(staff)
            )
    finally:
        del client.app.state.mail

    assert response.status_code == 200
    send.assert_called_once_with(mail, student.email, complaint["id"], complaint["subject"])


def test_response_email_skips_private_notes(client, staff, student, file_complaint):
    complaint = file_complaint(student)
    client.app.state.mail = mock.Mock()
    try:
        with mock.patch.object(EmailService, "send_response_notification", mock.AsyncMock()) as send:
            client.post(
                f"/api/complaints/{complaint['id']}/responses",
                data={"response": "Internal only", "is_private": "true"},
                headers=auth_headers(staff)
            )
            client.post(
                f"/api/complaints/{complaint['id']}/responses",
                data={"response": "We are on it"},
                headers=auth_headers(staff)
            )
    finally:
        del client.app.state.mail

    assert send.call_count == 1
    assert send.call_args.args[1] == student.email
    assert send.call_args.args[-1] == "We are on it"


def test_send_html_without_mail_client():
    assert asyncio.run(EmailService.send_html(None, "someone@campus.edu", "Subject", "<p>Body</p>")) is False


def test_new_status_is_default_and_admin_resolves(client, db, admin, student):
    category = ComplaintCategory(name="Test", is_active=True)
    new = ComplaintStatus(name="New", color="#3498db")
    resolved_status = ComplaintStatus(name="Resolved", color="#2ecc71")
    db.add_all([category, new, resolved_status])
    db.commit()

    filed = client.post(
        "/api/complaints",
        data={"category_id": str(category.id), "subject": "Lab door", "description": "Lock is jammed"},
        headers=auth_headers(student)
    ).json()["data"]
    assert filed["status"]["name"] == "New"
    assert filed["is_resolved"] is False

    before = client.get("/api/admin/dashboard", headers=auth_headers(admin)).json()["data"]
    resolved = client.put(
        f"/api/complaints/{filed['id']}",
        data={"status_id": str(resolved_status.id), "is_resolved": "true"},
        headers=auth_headers(admin)
    ).json()["data"]
    after = client.get("/api/admin/dashboard", headers=auth_headers(admin)).json()["data"]

    assert resolved["resolved_at"] is not None
    assert before["pending_complaints"] == 1
    assert after["pending_complaints"] == 0
