from __future__ import annotations

from flask import Blueprint, jsonify

from app.doctrack.errors import NotFound
from app.doctrack.modules.departments.service import create_department
from app.doctrack.rbac import current_user, require_login
from app.doctrack.schemas import DepartmentCreate, DepartmentOut, dump, load_json
from app.doctrack.store import current_store

bp = Blueprint("departments", __name__)


@bp.get("")
def list_departments():
    return jsonify([dump(DepartmentOut, d) for d in current_store().list_departments()])


@bp.get("/<int:department_id>")
def get_department(department_id: int):
    d = current_store().get_department(department_id)
    if not d:
        raise NotFound("Department not found")
    return jsonify(dump(DepartmentOut, d))


@bp.post("")
@require_login
def create():
    payload = load_json(DepartmentCreate, message="Invalid department data")
    store = current_store()
    with store.transaction():
        d = create_department(store, payload, current_user())
    return jsonify(dump(DepartmentOut, d)), 201
