import pytest

from app.doctrack import create_app
from app.doctrack.auth import LoginRateLimiter
from app.doctrack.models import Base
from app.doctrack.store import app_store


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORE_BACKEND", "sql")
    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _register(client, username="nurse1", password="pw"):
    return client.post(
        "/api/register",
        json={
            "username": username,
            "password": password,
            "name": "Nora Nurse",
            "email": f"{username}@example.com",
            "department": "Nursing",
        },
    )


def test_register_logs_in_and_hides_password(client):
    r = _register(client)
    assert r.status_code == 201
    assert r.json["username"] == "nurse1"
    assert r.json["role"] == "user"
    assert "password" not in r.json and "passwordHash" not in r.json

    r = client.get("/api/user")
    assert r.status_code == 200
    assert r.json["name"] == "Nora Nurse"


def test_register_missing_fields(client):
    r = client.post("/api/register", json={"username": "x"})
    assert r.status_code == 400
    assert r.json["message"] == "Missing required fields"


def test_register_duplicate_username(client):
    assert _register(client).status_code == 201
    r = _register(client)
    assert r.status_code == 400
    assert r.json["message"] == "Username already exists"


def test_login_logout_cycle(app, client):
    assert _register(client).status_code == 201
    assert client.post("/api/logout").status_code == 200
    assert client.get("/api/user").status_code == 401

    r = client.post("/api/login", json={"username": "nurse1", "password": "wrong"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid username or password"

    r = client.post("/api/login", json={"username": "nurse1", "password": "pw"})
    assert r.status_code == 200
    assert r.json["email"] == "nurse1@example.com"
    assert client.get("/api/user").status_code == 200

    r = client.post("/api/logout")
    assert r.json == {"message": "Logged out successfully"}
    assert client.get("/api/user").status_code == 401

    with app_store(app) as store:
        actions = [e.action for e in store.list_audit_events()]
    assert actions == ["auth.register", "auth.logout", "auth.login_failed", "auth.login", "auth.logout"]


def test_logout_requires_login(client):
    assert client.post("/api/logout").status_code == 401


def test_login_rate_limited_after_five_attempts(client):
    assert _register(client).status_code == 201
    client.post("/api/logout")
    for _ in range(5):
        r = client.post("/api/login", json={"username": "nurse1", "password": "nope"})
        assert r.status_code == 401
    r = client.post("/api/login", json={"username": "nurse1", "password": "pw"})
    assert r.status_code == 429


def test_csrf_required_for_authenticated_mutations(client):
    r = _register(client)
    token = r.headers["X-CSRF-Token"]

    r = client.post("/api/departments", json={"name": "Oncology"})
    assert r.status_code == 400
    assert r.json["message"] == "CSRF token missing or invalid."

    r = client.post("/api/departments", json={"name": "Oncology"}, headers={"X-CSRF-Token": token})
    assert r.status_code == 201


def test_register_ignores_requested_role(client):
    r = client.post(
        "/api/register",
        json={"username": "mallory", "password": "pw", "name": "M", "email": "m@example.com", "role": "admin"},
    )
    assert r.status_code == 201
    assert r.json["role"] == "user"


def test_rate_limiter_drops_idle_ips():
    limiter = LoginRateLimiter(limit=2, window_seconds=300)
    assert limiter.is_limited("10.0.0.9") is False
    assert "10.0.0.9" not in limiter._attempts

    limiter.record("10.0.0.1")
    limiter.record("10.0.0.1")
    assert limiter.is_limited("10.0.0.1") is True

    expired = LoginRateLimiter(limit=2, window_seconds=0)
    expired.record("10.0.0.2")
    assert expired.is_limited("10.0.0.2") is False
    assert expired._attempts == {}
