"""HTTP tests for auth, class management and join routes."""

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app import app
from core import database
from core.dependencies import get_user_manager
from models.class_invitation import ClassInvitationModel
from utils.user_manager import UserManager


def fast_user_manager(db: AsyncSession = Depends(database.get_db)) -> UserManager:
    return UserManager(db, rounds=4)


@pytest.fixture
def client(tmp_path, monkeypatch):
    # NullPool: TestClient runs the app on its own event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(
        database,
        "SessionLocal",
        async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False),
    )
    app.dependency_overrides[get_user_manager] = fast_user_manager
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, username, role="student", **extra):
    response = client.post(
        "/api/auth/register",
        json={"username": username, "password": "secret123", "role": role, **extra},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def teacher(client):
    return register(client, "teacher1", role="teacher")


@pytest.fixture
def student(client):
    return register(client, "ada", display_name="Ada Lovelace")


@pytest.fixture
def class_id(client, teacher):
    response = client.post("/api/classes", json={"name": "Biology 101"}, headers=teacher)
    assert response.status_code == 200, response.text
    return response.json()["class_id"]


def issue(client, teacher, class_id, email=None):
    response = client.post(f"/api/classes/{class_id}/invite", json={"email": email}, headers=teacher)
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_login_and_me(client, student):
    response = client.post("/api/auth/login", json={"username": "ada", "password": "secret123"})
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    me = client.get("/api/auth/me", headers=headers).json()
    assert me["username"] == "ada"
    assert me["role"] == "student"

    bad = client.post("/api/auth/login", json={"username": "ada", "password": "wrong-pass"})
    assert bad.status_code == 401


def test_duplicate_registration(client, student):
    response = client.post(
        "/api/auth/register", json={"username": "ada", "password": "secret123"}
    )
    assert response.status_code == 409


def test_join_requires_auth(client):
    response = client.post("/api/classes/join", json={"code": "UK5CRH"})
    assert response.status_code in (401, 403)


def test_students_cannot_create_classes(client, student):
    response = client.post("/api/classes", json={"name": "Nope"}, headers=student)
    assert response.status_code == 403


def test_issue_and_join_with_code(client, teacher, student, class_id):
    invitation = issue(client, teacher, class_id)
    assert invitation["invitation_code"].startswith("UK")
    assert invitation["join_url"].endswith(f"?code={invitation['invitation_code']}")

    response = client.post(
        "/api/classes/join",
        json={"code": invitation["invitation_code"].lower(), "source": "manual"},
        headers=student,
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["class_id"] == class_id
    assert body["class_name"] == "Biology 101"
    assert body["already_member"] is False
    assert body["message"] == "Successfully joined Biology 101"

    again = client.post(
        "/api/classes/join", json={"code": invitation["join_url"]}, headers=student
    ).json()
    assert again["already_member"] is True

    members = client.get(f"/api/classes/{class_id}/members", headers=teacher).json()
    assert [m["name"] for m in members] == ["Ada Lovelace"]

    classes = client.get("/api/classes", headers=student).json()
    assert [c["class_id"] for c in classes] == [class_id]
    assert classes[0]["role_in_class"] == "student"


def test_join_from_link_and_qr(client, teacher, student, class_id):
    invitation = issue(client, teacher, class_id)

    response = client.get(
        "/api/classes/join", params={"code": invitation["invitation_code"]}, headers=student
    )
    assert response.status_code == 200, response.text
    assert response.json()["already_member"] is False

    response = client.post(
        "/api/classes/join/qr", json={"payload": invitation["join_url"]}, headers=student
    )
    assert response.status_code == 200, response.text
    assert response.json()["already_member"] is True


def test_email_invitation_is_accepted(client, teacher, student, class_id):
    invitation = issue(client, teacher, class_id, email="ada@example.com")
    assert invitation["email"] == "ada@example.com"

    response = client.post(
        "/api/classes/join", json={"code": invitation["invitation_code"]}, headers=student
    )
    assert response.status_code == 200, response.text

    invites = client.get(f"/api/classes/{class_id}/invites", headers=teacher).json()["invitations"]
    assert invites[0]["status"] == "accepted"


@pytest.mark.parametrize(
    "code, status_code",
    [
        ("??", 400),
        ("ZZZZ99", 404),
        ("https://app.example/dashboard", 400),
    ],
)
def test_join_error_statuses(client, student, class_id, code, status_code):
    response = client.post("/api/classes/join", json={"code": code}, headers=student)
    assert response.status_code == status_code


def test_deleted_invitation_no_longer_joins(client, teacher, student, class_id):
    invitation = issue(client, teacher, class_id)

    response = client.delete(
        f"/api/classes/{class_id}/invites/{invitation['invitation_id']}", headers=teacher
    )
    assert response.status_code == 200

    response = client.post(
        "/api/classes/join", json={"code": invitation["invitation_code"]}, headers=student
    )
    assert response.status_code == 404


def test_preview_does_not_enroll(client, teacher, student, class_id):
    invitation = issue(client, teacher, class_id)

    response = client.get(
        "/api/classes/join/preview", params={"code": invitation["join_url"]}, headers=student
    )
    assert response.status_code == 200
    assert response.json() == {
        "class_id": class_id,
        "class_name": "Biology 101",
        "strategy": "exact_token",
    }
    assert client.get(f"/api/classes/{class_id}/members", headers=teacher).json() == []


def test_update_invitation_expiry(client, teacher, class_id):
    invitation = issue(client, teacher, class_id)
    url = f"/api/classes/{class_id}/invites/{invitation['invitation_id']}"

    response = client.patch(url, json={"expires_in_days": 90}, headers=teacher)
    assert response.status_code == 200
    assert response.json()["expires_at"] > invitation["expires_at"]

    assert client.patch(url, json={"expires_in_days": 0}, headers=teacher).status_code == 422


def test_invitation_qr_png(client, teacher, class_id):
    invitation = issue(client, teacher, class_id)

    response = client.get(
        f"/api/classes/{class_id}/invites/{invitation['invitation_id']}/qr", headers=teacher
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")


def test_other_teacher_cannot_manage_class(client, class_id):
    other = register(client, "teacher2", role="teacher")
    response = client.post(f"/api/classes/{class_id}/invite", json={}, headers=other)
    assert response.status_code == 403


def test_leave_class(client, teacher, student, class_id):
    invitation = issue(client, teacher, class_id)
    client.post("/api/classes/join", json={"code": invitation["invitation_code"]}, headers=student)

    response = client.delete(f"/api/classes/{class_id}/leave", headers=student)
    assert response.status_code == 200
    assert client.get("/api/classes", headers=student).json() == []


def test_join_expired_code_is_gone(client, teacher, student, class_id):
    invitation = issue(client, teacher, class_id)

    async def expire(invitation_id):
        async with database.SessionLocal() as db:
            model = await db.get(ClassInvitationModel, invitation_id)
            model.expires_at = "2000-01-01T00:00:00+00:00"
            await db.commit()

    client.portal.call(expire, invitation["invitation_id"])

    response = client.post(
        "/api/classes/join", json={"code": invitation["invitation_code"]}, headers=student
    )
    assert response.status_code == 410

    listed = client.get(f"/api/classes/{class_id}/invites", headers=teacher).json()
    assert listed["invitations"][0]["status"] == "expired"
