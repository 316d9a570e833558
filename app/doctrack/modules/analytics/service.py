from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.doctrack.constants import ACTIVE_STATUS, COMPLETED_STATUS, PENDING_APPROVAL_STATUS

if TYPE_CHECKING:
    from app.doctrack.modules.documents.models import Document
    from app.doctrack.store.base import Store


def _completion_times(store: "Store") -> dict[int, datetime]:
    """First time each document reached "completed", from the history ledger."""
    out: dict[int, datetime] = {}
    for entry in store.list_history_by_status(COMPLETED_STATUS):
        out.setdefault(entry.document_id, entry.changed_at)
    return out


def _processing_hours(doc: "Document", completed_at: datetime | None) -> float:
    finished = completed_at or doc.updated_at or doc.created_at
    return max((finished - doc.created_at).total_seconds(), 0.0) / 3600.0


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def dashboard_stats(store: "Store") -> dict[str, Any]:
    docs = store.list_documents()
    completed = [d for d in docs if d.status == COMPLETED_STATUS]
    completion = _completion_times(store) if completed else {}
    avg_hours = _mean([_processing_hours(d, completion.get(d.id)) for d in completed])
    return {
        "totalDocuments": len(docs),
        "activeDocuments": sum(1 for d in docs if d.status == ACTIVE_STATUS),
        "avgProcessingTime": f"{avg_hours:.1f} hrs",
        "pendingApprovals": sum(1 for d in docs if d.status == PENDING_APPROVAL_STATUS),
    }


def documents_by_department(store: "Store") -> list[dict[str, Any]]:
    counts: dict[int, int] = {}
    for d in store.list_documents():
        if d.current_department_id is not None:
            counts[d.current_department_id] = counts.get(d.current_department_id, 0) + 1
    return [
        {"departmentId": dept.id, "departmentName": dept.name, "count": counts.get(dept.id, 0)}
        for dept in store.list_departments()
    ]


def processing_time_by_type(store: "Store") -> list[dict[str, Any]]:
    completed = store.list_documents(status=COMPLETED_STATUS)
    completion = _completion_times(store) if completed else {}
    hours_by_type: dict[int, list[float]] = {}
    for d in completed:
        if d.document_type_id is None:
            continue
        hours_by_type.setdefault(d.document_type_id, []).append(_processing_hours(d, completion.get(d.id)))
    return [
        {
            "documentTypeId": dt.id,
            "documentTypeName": dt.name,
            "avgProcessingTime": round(_mean(hours_by_type.get(dt.id, [])), 1),
        }
        for dt in store.list_document_types()
    ]
