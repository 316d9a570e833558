import random
import re
from datetime import datetime

import pytest
from werkzeug.security import generate_password_hash

from app.doctrack import create_app
from app.doctrack.errors import NotFound, ValidationFailed
from app.doctrack.models import Base, User
from app.doctrack.modules.departments.service import seed_default_departments
from app.doctrack.modules.document_types.models import DocumentType
from app.doctrack.modules.documents.service import (
    create_document,
    document_id_prefix,
    generate_document_id,
    get_history,
    route_or_update,
)
from app.doctrack.schemas import DocumentCreate, DocumentUpdate
from app.doctrack.store import app_store

LABORATORY = 3
RADIOLOGY = 5


@pytest.fixture(params=["sql", "memory"])
def store(request, tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORE_BACKEND", request.param)
    app = create_app()
    if request.param == "sql":
        Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with app_store(app) as st:
        seed_default_departments(st)
        yield st


@pytest.fixture()
def user(store):
    with store.transaction():
        return store.create_user(
            User(username="tech", password_hash=generate_password_hash("pw"), name="Lab Tech", email="tech@example.com")
        )


@pytest.fixture()
def lab_type(store):
    with store.transaction():
        return store.create_document_type(DocumentType(name="Laboratory", workflow={}, strict_mode=False))


def _create(store, user, doc_type, **kw):
    payload = DocumentCreate(
        title=kw.pop("title", "Lab Result"),
        document_type_id=doc_type.id if doc_type else None,
        current_department_id=kw.pop("current_department_id", LABORATORY),
        **kw,
    )
    return create_document(store, payload, user)


def test_document_id_prefix():
    assert document_id_prefix("Laboratory") == "LAB"
    assert document_id_prefix("x-ray report") == "XRA"
    assert document_id_prefix("CT") == "DOC"
    assert document_id_prefix(None) == "DOC"


def test_generate_document_id_shape():
    doc_id = generate_document_id("Prescription", now=datetime(2026, 3, 1), rng=random.Random(7))
    assert re.fullmatch(r"PRE-2026-\d{4}", doc_id)
    n = int(doc_id.rsplit("-", 1)[1])
    assert 1000 <= n <= 9999


def test_create_writes_document_and_initial_history(store, user, lab_type):
    doc = _create(store, user, lab_type)

    assert re.fullmatch(r"LAB-\d{4}-\d{4}", doc.document_id)
    assert doc.status == "pending"
    assert doc.current_department_id == LABORATORY
    assert doc.created_by == user.id

    history = store.list_history(doc.id)
    assert len(history) == 1
    first = history[0]
    assert first.from_department_id is None
    assert first.to_department_id == LABORATORY
    assert first.status_change == "pending"
    assert first.notes == "Document created"
    assert first.changed_by == user.id


def test_create_without_type_uses_default_prefix(store, user):
    doc = _create(store, user, None)
    assert doc.document_id.startswith("DOC-")
    assert doc.document_type_id is None


def test_create_rejects_unknown_department_or_type(store, user, lab_type):
    with pytest.raises(NotFound):
        _create(store, user, lab_type, current_department_id=999)
    with pytest.raises(NotFound):
        create_document(store, DocumentCreate(title="x", document_type_id=999, current_department_id=1), user)
    assert store.list_documents() == []


def test_route_appends_history(store, user, lab_type):
    doc = _create(store, user, lab_type)

    doc = route_or_update(
        store, doc.id, DocumentUpdate(current_department_id=RADIOLOGY, status="approved", notes="ok"), user
    )
    assert doc.current_department_id == RADIOLOGY
    assert doc.status == "approved"

    history = get_history(store, doc.id)
    assert len(history) == 2
    latest = history[0]
    assert latest.from_department_id == LABORATORY
    assert latest.to_department_id == RADIOLOGY
    assert latest.from_status == "pending"
    assert latest.status_change == "approved"
    assert latest.notes == "ok"


def test_status_only_change_keeps_department_and_default_note(store, user, lab_type):
    doc = _create(store, user, lab_type)
    route_or_update(store, doc.id, DocumentUpdate(status="in_progress"), user)

    latest = store.list_history(doc.id)[0]
    assert latest.from_department_id == LABORATORY
    assert latest.to_department_id == LABORATORY
    assert latest.status_change == "in_progress"
    assert latest.notes == "Document updated"


def test_noop_and_field_edits_do_not_add_history(store, user, lab_type):
    doc = _create(store, user, lab_type)

    route_or_update(store, doc.id, DocumentUpdate(current_department_id=LABORATORY, status="pending"), user)
    doc = route_or_update(store, doc.id, DocumentUpdate(title="Lab Result (amended)", content="Hb 13.5"), user)

    assert doc.title == "Lab Result (amended)"
    assert doc.content == "Hb 13.5"
    assert len(store.list_history(doc.id)) == 1


def test_statuses_move_freely(store, user, lab_type):
    doc = _create(store, user, lab_type)
    for status in ("completed", "pending", "rejected", "in_progress"):
        doc = route_or_update(store, doc.id, DocumentUpdate(status=status), user)
        assert doc.status == status
    assert len(store.list_history(doc.id)) == 5


def test_route_missing_document_or_department(store, user, lab_type):
    with pytest.raises(NotFound):
        route_or_update(store, 12345, DocumentUpdate(status="approved"), user)
    with pytest.raises(NotFound):
        get_history(store, 12345)

    doc = _create(store, user, lab_type)
    with pytest.raises(NotFound):
        route_or_update(store, doc.id, DocumentUpdate(current_department_id=999), user)
    assert store.get_document(doc.id).current_department_id == LABORATORY
    assert len(store.list_history(doc.id)) == 1


def test_failed_update_rolls_back_history(store, user, lab_type, monkeypatch):
    doc = _create(store, user, lab_type)

    def boom(*_a, **_kw):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "update_document", boom)
    with pytest.raises(RuntimeError):
        route_or_update(store, doc.id, DocumentUpdate(current_department_id=RADIOLOGY), user)

    assert len(store.list_history(doc.id)) == 1
    assert store.get_document(doc.id).current_department_id == LABORATORY


def test_list_filters_and_recent(store, user, lab_type):
    a = _create(store, user, lab_type, title="A")
    b = _create(store, user, lab_type, title="B", current_department_id=RADIOLOGY)
    route_or_update(store, b.id, DocumentUpdate(status="completed"), user)

    assert [d.id for d in store.list_documents(status="completed")] == [b.id]
    assert [d.id for d in store.list_documents(department_id=LABORATORY)] == [a.id]
    assert len(store.list_documents(created_by=user.id)) == 2
    assert len(store.recent_documents(1)) == 1


def test_document_ids_are_unique(store, user, lab_type, monkeypatch):
    first = _create(store, user, lab_type)
    seq = iter([first.document_id, first.document_id, "LAB-2026-4242"])
    monkeypatch.setattr(
        "app.doctrack.modules.documents.service.generate_document_id", lambda *_a, **_kw: next(seq)
    )
    second = _create(store, user, lab_type)
    assert second.document_id == "LAB-2026-4242"


def test_document_id_allocation_gives_up(store, user, lab_type, monkeypatch):
    first = _create(store, user, lab_type)
    monkeypatch.setattr(
        "app.doctrack.modules.documents.service.generate_document_id", lambda *_a, **_kw: first.document_id
    )
    with pytest.raises(ValidationFailed):
        _create(store, user, lab_type)
    assert len(store.list_documents()) == 1
