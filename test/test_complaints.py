"""
Complaint filing, listing, updates, attachments and deletion.
"""
from database.models import Complaint, ComplaintResponse, ComplaintStatus
from conftest import auth_headers


def _pdf(name="evidence.pdf", content=b"%PDF-1.4 test"):
    return ("attachments", (name, content, "application/pdf"))


def test_create_complaint_defaults(client, student, category, statuses):
    response = client.post(
        "/api/complaints",
        data={
            "category_id": str(category.id),
            "subject": "Projector broken",
            "description": "Room 204 projector does not turn on.",
            "is_resolved": "true",
        },
        headers=auth_headers(student)
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user_id"] == student.id
    assert data["status_id"] == statuses["Pending"].id
    assert data["status"]["name"] == "Pending"
    assert data["is_resolved"] is False
    assert data["is_anonymous"] is False
    assert data["resolved_at"] is None
    assert data["attachments"] == []


def test_default_status_falls_back_to_first(client, db, student, category):
    first = ComplaintStatus(name="Open", color="#111111")
    db.add_all([first, ComplaintStatus(name="Closed", color="#222222")])
    db.commit()

    response = client.post(
        "/api/complaints",
        data={"category_id": str(category.id), "subject": "Leak", "description": "Water on floor"},
        headers=auth_headers(student)
    )

    assert response.status_code == 201
    assert response.json()["data"]["status_id"] == first.id


def test_create_without_any_status(client, student, category):
    response = client.post(
        "/api/complaints",
        data={"category_id": str(category.id), "subject": "Leak", "description": "Water on floor"},
        headers=auth_headers(student)
    )

    assert response.status_code == 422
    assert response.json()["errors"]["status_id"] == ["No complaint status is configured."]


def test_create_validation_errors(client, student, statuses):
    response = client.post(
        "/api/complaints",
        data={"category_id": "999", "subject": "x" * 256},
        headers=auth_headers(student)
    )

    assert response.status_code == 422
    errors = response.json()["errors"]
    assert errors["category_id"] == ["The selected category id is invalid."]
    assert errors["description"] == ["The description field is required."]
    assert errors["subject"] == ["The subject may not be greater than 255 characters."]


def test_create_with_attachments(client, student, storage, file_complaint):
    data = file_complaint(
        student,
        files=[_pdf(), ("attachments", ("photo.PNG", b"\x89PNG data", "image/png"))]
    )

    assert len(data["attachments"]) == 2
    assert data["attachments"][0].startswith("complaint_attachments/")
    assert data["attachments"][0].endswith(".pdf")
    assert data["attachments"][1].endswith(".png")
    assert data["attachment_urls"] == [f"/uploads/{ref}" for ref in data["attachments"]]
    assert all(storage.exists(ref) for ref in data["attachments"])


def test_rejected_attachment_stores_nothing(client, student, category, statuses, storage, db):
    response = client.post(
        "/api/complaints",
        data={"category_id": str(category.id), "subject": "Script", "description": "See attached"},
        files=[_pdf(), ("attachments", ("run.exe", b"MZ", "application/octet-stream"))],
        headers=auth_headers(student)
    )

    assert response.status_code == 422
    assert response.json()["errors"]["attachments.1"] == [
        "The attachments.1 must be a file of type: doc, docx, jpeg, jpg, pdf, png."
    ]
    assert db.query(Complaint).count() == 0
    assert not list(storage.root.rglob("*.pdf"))


def test_student_sees_only_own_complaints(client, student, other_student, staff, file_complaint):
    mine = file_complaint(student, subject="Mine")
    file_complaint(other_student, subject="Theirs")

    own = client.get("/api/complaints", headers=auth_headers(student)).json()["data"]
    assert own["total"] == 1
    assert [c["id"] for c in own["data"]] == [mine["id"]]

    everything = client.get("/api/complaints", headers=auth_headers(staff)).json()["data"]
    assert everything["total"] == 2


def test_list_filters_search_and_pagination(client, staff, student, file_complaint):
    file_complaint(student, subject="Wifi drops in library")
    file_complaint(student, subject="Broken chair", description="The wifi is fine, chair is not")
    file_complaint(student, subject="Cafeteria prices")

    found = client.get("/api/complaints", params={"search": "WIFI"}, headers=auth_headers(staff)).json()["data"]
    assert found["total"] == 2

    page = client.get(
        "/api/complaints",
        params={"per_page": 2, "page": 2, "sort_field": "subject", "sort_direction": "asc"},
        headers=auth_headers(staff)
    ).json()["data"]
    assert page["total"] == 3
    assert page["last_page"] == 2
    assert [c["subject"] for c in page["data"]] == ["Wifi drops in library"]


def test_list_rejects_unknown_sort_field(client, staff):
    response = client.get("/api/complaints", params={"sort_field": "password"}, headers=auth_headers(staff))

    assert response.status_code == 422
    assert response.json()["errors"]["sort_field"] == ["The selected sort field is invalid."]


def test_list_rejects_json_sort_field(client, staff):
    response = client.get("/api/complaints", params={"sort_field": "attachments"}, headers=auth_headers(staff))

    assert response.status_code == 422
    assert "sort_field" in response.json()["errors"]


def test_get_other_students_complaint_forbidden(client, student, other_student, file_complaint):
    complaint = file_complaint(other_student)

    response = client.get(f"/api/complaints/{complaint['id']}", headers=auth_headers(student))

    assert response.status_code == 403
    assert response.json()["message"] == "You do not have permission to view this complaint"


def test_get_missing_complaint(client, student):
    response = client.get("/api/complaints/12345", headers=auth_headers(student))

    assert response.status_code == 404
    assert response.json()["message"] == "Complaint not found"


def test_anonymous_author_hidden_from_staff(client, student, staff, admin, file_complaint):
    complaint = file_complaint(student, is_anonymous=True)
    url = f"/api/complaints/{complaint['id']}"

    as_staff = client.get(url, headers=auth_headers(staff)).json()["data"]
    assert as_staff["user_id"] is None
    assert as_staff["user"] is None

    as_admin = client.get(url, headers=auth_headers(admin)).json()["data"]
    assert as_admin["user"]["id"] == student.id

    as_owner = client.get(url, headers=auth_headers(student)).json()["data"]
    assert as_owner["user_id"] == student.id


def test_anonymous_owner_hidden_in_response_thread(client, student, staff, admin, file_complaint):
    complaint = file_complaint(student, is_anonymous=True)
    url = f"/api/complaints/{complaint['id']}"
    created = client.post(f"{url}/responses", data={"response": "Any update?"}, headers=auth_headers(student))
    assert created.json()["data"]["user_id"] == student.id
    client.post(f"{url}/responses", data={"response": "Looking into it"}, headers=auth_headers(staff))

    detail = client.get(url, headers=auth_headers(staff)).json()["data"]
    assert [r["user_id"] for r in detail["responses"]] == [None, staff.id]
    assert detail["responses"][0]["user"] is None

    thread = client.get(f"{url}/responses", headers=auth_headers(staff)).json()["data"]
    assert [r["user_id"] for r in thread] == [None, staff.id]
    single = client.get(f"{url}/responses/{thread[0]['id']}", headers=auth_headers(staff)).json()["data"]
    assert single["user"] is None

    as_admin = client.get(f"{url}/responses", headers=auth_headers(admin)).json()["data"]
    assert as_admin[0]["user"]["id"] == student.id


def test_student_update_ignores_workflow_fields(client, student, statuses, file_complaint):
    complaint = file_complaint(student)

    response = client.put(
        f"/api/complaints/{complaint['id']}",
        data={"subject": "Updated subject", "status_id": str(statuses["Resolved"].id), "is_resolved": "true"},
        headers=auth_headers(student)
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["subject"] == "Updated subject"
    assert data["status_id"] == statuses["Pending"].id
    assert data["is_resolved"] is False


def test_staff_resolves_complaint(client, staff, student, statuses, file_complaint):
    complaint = file_complaint(student)

    response = client.put(
        f"/api/complaints/{complaint['id']}",
        data={"status_id": str(statuses["Resolved"].id), "is_resolved": "true"},
        headers=auth_headers(staff)
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_resolved"] is True
    assert data["status"]["name"] == "Resolved"
    assert data["resolved_at"] is not None


def test_resolved_at_is_kept_when_reopened(client, staff, student, file_complaint):
    complaint = file_complaint(student)
    url = f"/api/complaints/{complaint['id']}"

    resolved = client.put(url, data={"is_resolved": "true"}, headers=auth_headers(staff)).json()["data"]
    reopened = client.put(url, data={"is_resolved": "false"}, headers=auth_headers(staff)).json()["data"]
    again = client.put(url, data={"is_resolved": "true"}, headers=auth_headers(staff)).json()["data"]

    assert reopened["is_resolved"] is False
    assert reopened["resolved_at"] == resolved["resolved_at"]
    assert again["resolved_at"] == resolved["resolved_at"]


def test_student_cannot_update_resolved_complaint(client, staff, student, file_complaint):
    complaint = file_complaint(student)
    url = f"/api/complaints/{complaint['id']}"
    client.put(url, data={"is_resolved": "true"}, headers=auth_headers(staff))

    response = client.put(url, data={"subject": "Reopen please"}, headers=auth_headers(student))

    assert response.status_code == 403
    assert response.json()["message"] == "Cannot update a resolved complaint"


def test_student_cannot_update_others_complaint(client, student, other_student, file_complaint):
    complaint = file_complaint(other_student)

    response = client.put(
        f"/api/complaints/{complaint['id']}", data={"subject": "Mine now"}, headers=auth_headers(student)
    )

    assert response.status_code == 403
    assert response.json()["message"] == "You do not have permission to update this complaint"


def test_update_appends_attachments(client, student, file_complaint):
    complaint = file_complaint(student, files=[_pdf("first.pdf")])

    response = client.put(
        f"/api/complaints/{complaint['id']}",
        data={"description": "More details attached"},
        files=[_pdf("second.pdf")],
        headers=auth_headers(student)
    )

    attachments = response.json()["data"]["attachments"]
    assert len(attachments) == 2
    assert attachments[0] == complaint["attachments"][0]


def test_update_invalid_status(client, staff, student, file_complaint):
    complaint = file_complaint(student)

    response = client.put(
        f"/api/complaints/{complaint['id']}", data={"status_id": "999"}, headers=auth_headers(staff)
    )

    assert response.status_code == 422
    assert response.json()["errors"]["status_id"] == ["The selected status id is invalid."]


def test_owner_deletes_complaint_and_files(client, db, student, staff, storage, file_complaint):
    complaint = file_complaint(student, files=[_pdf()])
    reply = client.post(
        f"/api/complaints/{complaint['id']}/responses",
        data={"response": "See the attached form"},
        files=[_pdf("form.pdf")],
        headers=auth_headers(staff)
    ).json()["data"]
    refs = complaint["attachments"] + reply["attachments"]

    response = client.delete(f"/api/complaints/{complaint['id']}", headers=auth_headers(student))

    assert response.status_code == 200
    assert db.query(Complaint).count() == 0
    assert db.query(ComplaintResponse).count() == 0
    assert not any(storage.exists(ref) for ref in refs)


def test_staff_cannot_delete_complaint(client, staff, student, file_complaint):
    complaint = file_complaint(student)

    response = client.delete(f"/api/complaints/{complaint['id']}", headers=auth_headers(staff))

    assert response.status_code == 403


def test_admin_deletes_with_missing_blob(client, admin, student, storage, file_complaint):
    complaint = file_complaint(student, files=[_pdf()])
    storage.delete(complaint["attachments"][0])

    response = client.delete(f"/api/complaints/{complaint['id']}", headers=auth_headers(admin))

    assert response.status_code == 200
