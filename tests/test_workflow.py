import pytest
from werkzeug.security import generate_password_hash

from app.doctrack import create_app
from app.doctrack.errors import TransitionRejected
from app.doctrack.models import User
from app.doctrack.modules.document_types.models import DocumentType
from app.doctrack.modules.document_types.service import allowed_next_departments, check_workflow_route
from app.doctrack.modules.documents.service import create_document, route_or_update
from app.doctrack.schemas import DocumentCreate, DocumentUpdate
from app.doctrack.store import app_store

RECEPTION, LABORATORY, RADIOLOGY, ADMINISTRATION = 1, 3, 5, 7

WORKFLOW = {
    "steps": [
        {"departmentId": RECEPTION, "name": "Intake", "order": 1, "isOptional": False},
        {"departmentId": LABORATORY, "name": "Lab work", "order": 2, "isOptional": True},
        {"departmentId": ADMINISTRATION, "name": "Sign-off", "order": 3, "isOptional": False},
    ],
    "allowSkip": False,
}


@pytest.mark.parametrize(
    "from_id,expected",
    [
        (None, [RECEPTION]),
        (RECEPTION, [LABORATORY, ADMINISTRATION]),
        (LABORATORY, [ADMINISTRATION]),
        (ADMINISTRATION, []),
        (RADIOLOGY, [RECEPTION]),
    ],
)
def test_allowed_next_departments(from_id, expected):
    assert allowed_next_departments(WORKFLOW, from_id) == expected


def test_allowed_next_departments_unrestricted_and_skip():
    assert allowed_next_departments({}, RECEPTION) is None
    assert allowed_next_departments({"steps": []}, None) is None

    skippy = {**WORKFLOW, "steps": [dict(s, isOptional=False) for s in WORKFLOW["steps"]], "allowSkip": True}
    assert allowed_next_departments(skippy, None) == [RECEPTION, LABORATORY, ADMINISTRATION]
    assert allowed_next_departments(skippy, RECEPTION) == [LABORATORY, ADMINISTRATION]


def test_check_workflow_route_respects_strict_mode():
    lenient = DocumentType(name="Referral", workflow=WORKFLOW, strict_mode=False)
    check_workflow_route(lenient, RECEPTION, RADIOLOGY)
    check_workflow_route(None, RECEPTION, RADIOLOGY)

    strict = DocumentType(name="Referral", workflow=WORKFLOW, strict_mode=True)
    with pytest.raises(TransitionRejected) as exc:
        check_workflow_route(strict, RECEPTION, RADIOLOGY)
    assert exc.value.status_code == 409
    assert exc.value.errors == [{"allowedDepartmentIds": [LABORATORY, ADMINISTRATION]}]


@pytest.fixture()
def store(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    app = create_app()
    with app_store(app) as st:
        yield st


def test_enforced_workflow_routing(store):
    with store.transaction():
        user = store.create_user(User(username="u", password_hash=generate_password_hash("pw"), name="U", email="u@x"))
        dt = store.create_document_type(DocumentType(name="Referral", workflow=WORKFLOW, strict_mode=True))

    with pytest.raises(TransitionRejected):
        create_document(
            store, DocumentCreate(title="r", document_type_id=dt.id, current_department_id=LABORATORY), user,
            enforce_workflow=True,
        )
    assert store.list_documents() == []

    doc = create_document(
        store, DocumentCreate(title="r", document_type_id=dt.id, current_department_id=RECEPTION), user,
        enforce_workflow=True,
    )
    # Lab is optional, so Reception may go straight to Administration.
    doc = route_or_update(store, doc.id, DocumentUpdate(current_department_id=ADMINISTRATION), user, enforce_workflow=True)
    assert doc.current_department_id == ADMINISTRATION

    with pytest.raises(TransitionRejected):
        route_or_update(store, doc.id, DocumentUpdate(current_department_id=RECEPTION), user, enforce_workflow=True)

    doc = route_or_update(store, doc.id, DocumentUpdate(status="completed"), user, enforce_workflow=True)
    assert doc.status == "completed"
    assert len(store.list_history(doc.id)) == 3

    # Without enforcement every move is allowed.
    doc = route_or_update(store, doc.id, DocumentUpdate(current_department_id=RECEPTION), user)
    assert doc.current_department_id == RECEPTION
