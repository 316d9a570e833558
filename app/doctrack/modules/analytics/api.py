from __future__ import annotations

from flask import Blueprint, jsonify

from app.doctrack.modules.analytics.service import dashboard_stats, documents_by_department, processing_time_by_type
from app.doctrack.rbac import require_login
from app.doctrack.store import current_store

bp = Blueprint("analytics", __name__)


@bp.get("/dashboard")
@require_login
def dashboard():
    return jsonify(dashboard_stats(current_store()))


@bp.get("/departments")
@require_login
def departments():
    return jsonify(documents_by_department(current_store()))


@bp.get("/processing-time")
@require_login
def processing_time():
    return jsonify(processing_time_by_type(current_store()))
