"""
Admin user management.
"""
from database.models import User, Complaint, ComplaintResponse, UserRole
from conftest import PASSWORD, auth_headers


def test_list_users_requires_admin(client, staff):
    assert client.get("/api/admin/users", headers=auth_headers(staff)).status_code == 403


def test_list_users_role_filter_and_search(client, admin, staff, make_user):
    make_user(UserRole.STUDENT, name="Ravi Kumar", student_id="STU-11111")
    make_user(UserRole.STUDENT, name="Meera Nair", student_id="STU-22222")

    students = client.get("/api/admin/users", params={"role": "student"}, headers=auth_headers(admin))
    assert students.json()["data"]["total"] == 2

    found = client.get("/api/admin/users", params={"search": "22222"}, headers=auth_headers(admin))
    assert [u["name"] for u in found.json()["data"]["data"]] == ["Meera Nair"]

    by_name = client.get(
        "/api/admin/users", params={"sort_field": "name", "sort_direction": "asc"}, headers=auth_headers(admin)
    ).json()["data"]["data"]
    names = [u["name"] for u in by_name]
    assert names == sorted(names)


def test_list_users_invalid_role(client, admin):
    response = client.get("/api/admin/users", params={"role": "janitor"}, headers=auth_headers(admin))

    assert response.status_code == 422
    assert response.json()["errors"]["role"] == ["The selected role is invalid."]


def test_admin_creates_staff(client, admin):
    response = client.post(
        "/api/admin/users",
        json={"name": "Helpdesk", "email": "helpdesk@campus.edu", "password": PASSWORD, "role": "staff"},
        headers=auth_headers(admin)
    )

    assert response.status_code == 201
    assert response.json()["data"]["role"] == "staff"

    login = client.post("/api/auth/login", json={"email": "helpdesk@campus.edu", "password": PASSWORD})
    assert login.status_code == 200


def test_create_user_validation(client, admin, student):
    response = client.post(
        "/api/admin/users",
        json={"name": "Dup", "email": student.email, "password": PASSWORD, "role": "student"},
        headers=auth_headers(admin)
    )

    assert response.status_code == 422
    assert response.json()["errors"]["email"] == ["The email has already been taken."]


def test_get_user(client, admin, student):
    response = client.get(f"/api/admin/users/{student.id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["data"]["email"] == student.email
    assert client.get("/api/admin/users/9999", headers=auth_headers(admin)).status_code == 404


def test_update_user_role_and_deactivate(client, db, admin, student):
    response = client.put(
        f"/api/admin/users/{student.id}",
        json={"role": "staff", "is_active": False},
        headers=auth_headers(admin)
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["role"] == "staff"
    assert data["is_active"] is False
    assert client.get("/api/auth/me", headers=auth_headers(student)).status_code == 403


def test_update_user_password(client, admin, student):
    client.put(f"/api/admin/users/{student.id}", json={"password": "reset-pass-99"}, headers=auth_headers(admin))

    assert client.post(
        "/api/auth/login", json={"email": student.email, "password": "reset-pass-99"}
    ).status_code == 200
    assert client.post(
        "/api/auth/login", json={"email": student.email, "password": PASSWORD}
    ).status_code == 401


def test_admin_cannot_delete_self(client, admin):
    response = client.delete(f"/api/admin/users/{admin.id}", headers=auth_headers(admin))

    assert response.status_code == 422
    assert response.json()["message"] == "You cannot delete your own account"


def test_delete_user_cascades(client, db, admin, staff, student, storage, file_complaint):
    complaint = file_complaint(
        student, files=[("attachments", ("receipt.jpg", b"\xff\xd8 jpeg", "image/jpeg"))]
    )
    staff_reply = client.post(
        f"/api/complaints/{complaint['id']}/responses",
        data={"response": "Received"},
        headers=auth_headers(staff)
    )
    assert staff_reply.status_code == 201
    student_id = student.id

    response = client.delete(f"/api/admin/users/{student_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    db.expire_all()
    assert db.query(User).filter(User.id == student_id).count() == 0
    assert db.query(Complaint).count() == 0
    assert db.query(ComplaintResponse).count() == 0
    assert not storage.exists(complaint["attachments"][0])
