from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

from app.doctrack.audit import record_event
from app.doctrack.errors import NotFound, UploadRejected, UploadTooLarge
from app.doctrack.modules.documents.models import Document, DocumentHistory
from app.doctrack.modules.documents.service import create_document, get_history, route_or_update
from app.doctrack.rbac import current_user, require_login
from app.doctrack.schemas import (
    DepartmentOut,
    DocumentCreate,
    DocumentOut,
    DocumentQuery,
    DocumentTypeOut,
    DocumentUpdate,
    HistoryOut,
    RecentQuery,
    UserOut,
    dump,
    load_json,
    load_mapping,
)
from app.doctrack.storage import storage_from_config, upload_key
from app.doctrack.store import Store, current_store

bp = Blueprint("documents", __name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class _Lookup:
    """Per-request memo of department/type/user lookups used to enrich responses."""

    def __init__(self, store: Store) -> None:
        self.store = store
        self._departments: dict[int, Any] = {}
        self._types: dict[int, Any] = {}
        self._users: dict[int, Any] = {}

    def department(self, pk: int | None):
        if pk is None:
            return None
        if pk not in self._departments:
            self._departments[pk] = self.store.get_department(pk)
        return self._departments[pk]

    def document_type(self, pk: int | None):
        if pk is None:
            return None
        if pk not in self._types:
            self._types[pk] = self.store.get_document_type(pk)
        return self._types[pk]

    def user(self, pk: int | None):
        if pk is None:
            return None
        if pk not in self._users:
            self._users[pk] = self.store.get_user(pk)
        return self._users[pk]


def _enforce_workflow() -> bool:
    return bool(current_app.config.get("ENFORCE_WORKFLOW"))


def _summary(doc: Document, lookup: _Lookup) -> dict[str, Any]:
    out = dump(DocumentOut, doc)
    dept = lookup.department(doc.current_department_id)
    dt = lookup.document_type(doc.document_type_id)
    out["departmentName"] = dept.name if dept else "Unassigned"
    out["documentTypeName"] = dt.name if dt else "Unknown"
    return out


def _detail(doc: Document, lookup: _Lookup) -> dict[str, Any]:
    out = dump(DocumentOut, doc)
    dept = lookup.department(doc.current_department_id)
    dt = lookup.document_type(doc.document_type_id)
    creator = lookup.user(doc.created_by)
    out["department"] = dump(DepartmentOut, dept) if dept else None
    out["documentType"] = dump(DocumentTypeOut, dt) if dt else None
    # UserOut carries no password hash.
    out["creator"] = dump(UserOut, creator) if creator else None
    return out


def _history_entry(entry: DocumentHistory, lookup: _Lookup) -> dict[str, Any]:
    out = dump(HistoryOut, entry)
    from_dept = lookup.department(entry.from_department_id)
    to_dept = lookup.department(entry.to_department_id)
    changed_by = lookup.user(entry.changed_by)
    out["fromDepartmentName"] = from_dept.name if from_dept else "None"
    out["toDepartmentName"] = to_dept.name if to_dept else "None"
    out["changedByName"] = changed_by.name if changed_by else "Unknown"
    return out


@bp.get("")
@require_login
def list_documents():
    # Blank parameters (?status=&department=) mean "no filter".
    args = {k: v for k, v in request.args.items() if v.strip()}
    q = load_mapping(DocumentQuery, args, message="Invalid query parameters")
    docs = current_store().list_documents(status=q.status, department_id=q.department, created_by=q.created_by)
    return jsonify([dump(DocumentOut, d) for d in docs])


@bp.get("/recent")
@require_login
def recent_documents():
    q = load_mapping(RecentQuery, request.args.to_dict(), message="Invalid query parameters")
    store = current_store()
    lookup = _Lookup(store)
    return jsonify([_summary(d, lookup) for d in store.recent_documents(q.limit)])


@bp.get("/<int:document_pk>")
@require_login
def document_detail(document_pk: int):
    store = current_store()
    doc = store.get_document(document_pk)
    if not doc:
        raise NotFound("Document not found")
    return jsonify(_detail(doc, _Lookup(store)))


@bp.post("")
@require_login
def create():
    payload = load_json(DocumentCreate, message="Invalid document data")
    doc = create_document(current_store(), payload, current_user(), enforce_workflow=_enforce_workflow())
    return jsonify(dump(DocumentOut, doc)), 201


@bp.put("/<int:document_pk>")
@require_login
def update(document_pk: int):
    patch = load_json(DocumentUpdate, message="Invalid document data")
    doc = route_or_update(current_store(), document_pk, patch, current_user(), enforce_workflow=_enforce_workflow())
    return jsonify(dump(DocumentOut, doc))


@bp.post("/upload")
@require_login
def upload_file():
    f = request.files.get("file")
    if not f or not f.filename:
        raise UploadRejected("No file uploaded")
    data = f.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise UploadTooLarge()

    key = upload_key(f.filename)
    content_type = (f.mimetype or "application/octet-stream").strip()
    file_path = storage_from_config(current_app.config).put_bytes(key, data, content_type=content_type)

    store = current_store()
    with store.transaction():
        record_event(
            store,
            actor=current_user(),
            action="document.upload",
            entity_type="Upload",
            entity_id=key,
            metadata={"filename": f.filename, "size_bytes": len(data), "content_type": content_type},
        )
    current_app.logger.info("Stored upload %s (%d bytes)", key, len(data))
    return jsonify({"filePath": file_path}), 201


@bp.get("/<int:document_pk>/history")
@require_login
def document_history(document_pk: int):
    store = current_store()
    lookup = _Lookup(store)
    return jsonify([_history_entry(h, lookup) for h in get_history(store, document_pk)])
