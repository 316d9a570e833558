from __future__ import annotations

from flask import Blueprint, jsonify

from app.doctrack.errors import NotFound
from app.doctrack.modules.document_types.service import create_document_type
from app.doctrack.rbac import current_user, require_login
from app.doctrack.schemas import DocumentTypeCreate, DocumentTypeOut, dump, load_json
from app.doctrack.store import current_store

bp = Blueprint("document_types", __name__)


@bp.get("")
def list_document_types():
    return jsonify([dump(DocumentTypeOut, dt) for dt in current_store().list_document_types()])


@bp.get("/<int:type_id>")
def get_document_type(type_id: int):
    dt = current_store().get_document_type(type_id)
    if not dt:
        raise NotFound("Document type not found")
    return jsonify(dump(DocumentTypeOut, dt))


@bp.post("")
@require_login
def create():
    payload = load_json(DocumentTypeCreate, message="Invalid document type data")
    store = current_store()
    with store.transaction():
        dt = create_document_type(store, payload, current_user())
    return jsonify(dump(DocumentTypeOut, dt)), 201
