import pytest

from app.doctrack import create_app
from app.doctrack.models import Base
from app.doctrack.modules.departments.service import seed_default_departments
from app.doctrack.store import app_store


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORE_BACKEND", "sql")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "ENFORCE_WORKFLOW"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    with app_store(app) as store:
        seed_default_departments(store)

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_api_probe(client):
    r = client.get("/api/test")
    assert r.status_code == 200
    assert r.json == {"message": "API is working!"}


def test_departments_are_public_and_seeded(client):
    r = client.get("/api/departments")
    assert r.status_code == 200
    names = [d["name"] for d in r.json]
    assert names[:3] == ["Reception", "Cardiology", "Laboratory"]
    assert len(names) == 7


def test_protected_endpoints_require_login(client):
    for path in ("/api/documents", "/api/documents/recent", "/api/documents/1", "/api/analytics/dashboard", "/api/user"):
        r = client.get(path)
        assert r.status_code == 401, path
        assert r.json["message"] == "Not authenticated"

    r = client.post("/api/documents", json={"title": "x", "currentDepartmentId": 1})
    assert r.status_code == 401


def test_unknown_route_is_json_404(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert "message" in r.json


def test_memory_backend_seeds_at_boot(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    app = create_app()

    r = app.test_client().get("/api/departments")
    assert r.status_code == 200
    assert len(r.json) == 7


def test_production_rejects_sqlite(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "a-strong-secret")
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("STORE_BACKEND", "sql")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()
