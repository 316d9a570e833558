"""
Document lifecycle: creation, routing between departments, status changes.

Each mutating operation runs in one store transaction so the document row and its
history row are written together or not at all. Status moves are unrestricted: any
status may follow any other. Department moves are unrestricted unless workflow
enforcement is switched on, in which case strict-mode document types only allow the
next step(s) of their workflow.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import TYPE_CHECKING

from app.doctrack.constants import CREATED_NOTE, DEFAULT_ID_PREFIX, UPDATED_NOTE
from app.doctrack.errors import NotFound, ValidationFailed
from app.doctrack.modules.document_types.service import check_workflow_route
from app.doctrack.modules.documents.models import Document, DocumentHistory

if TYPE_CHECKING:
    from app.doctrack.models import User
    from app.doctrack.modules.document_types.models import DocumentType
    from app.doctrack.schemas import DocumentCreate, DocumentUpdate
    from app.doctrack.store.base import Store

logger = logging.getLogger(__name__)

_ID_ATTEMPTS = 5
_EDITABLE_FIELDS = ("title", "content", "file_path")


def document_id_prefix(type_name: str | None) -> str:
    """First three ASCII letters of the type name, uppercased; "DOC" when there are fewer."""
    letters = [ch for ch in (type_name or "") if ch.isascii() and ch.isalpha()]
    if len(letters) < 3:
        return DEFAULT_ID_PREFIX
    return "".join(letters[:3]).upper()


def generate_document_id(type_name: str | None, *, now: datetime | None = None, rng: random.Random | None = None) -> str:
    now = now or datetime.utcnow()
    rng = rng or random
    return f"{document_id_prefix(type_name)}-{now.year:04d}-{rng.randint(1000, 9999)}"


def _unused_document_id(store: "Store", type_name: str | None, now: datetime) -> str:
    for _ in range(_ID_ATTEMPTS):
        candidate = generate_document_id(type_name, now=now)
        if store.get_document_by_document_id(candidate) is None:
            return candidate
    raise ValidationFailed("Could not allocate a unique document id; retry the request")


def _get_type(store: "Store", type_id: int | None) -> "DocumentType | None":
    if type_id is None:
        return None
    doc_type = store.get_document_type(type_id)
    if not doc_type:
        raise NotFound("Document type not found")
    return doc_type


def create_document(
    store: "Store",
    payload: "DocumentCreate",
    user: "User | None",
    *,
    enforce_workflow: bool = False,
) -> Document:
    now = datetime.utcnow()
    with store.transaction():
        department = store.get_department(payload.current_department_id)
        if not department:
            raise NotFound("Department not found")
        doc_type = _get_type(store, payload.document_type_id)
        if enforce_workflow:
            check_workflow_route(doc_type, None, department.id)

        doc = store.create_document(
            Document(
                document_id=_unused_document_id(store, doc_type.name if doc_type else None, now),
                title=payload.title,
                content=payload.content,
                file_path=payload.file_path,
                document_type_id=doc_type.id if doc_type else None,
                current_department_id=department.id,
                status=payload.status,
                created_at=now,
                updated_at=now,
                created_by=user.id if user else None,
            )
        )
        store.add_history(
            DocumentHistory(
                document_id=doc.id,
                from_department_id=None,
                to_department_id=department.id,
                from_status=None,
                status_change=doc.status,
                notes=CREATED_NOTE,
                changed_by=user.id if user else None,
                changed_at=now,
            )
        )
    logger.info("Created document %s (id=%s) in department %s", doc.document_id, doc.id, department.id)
    return doc


def route_or_update(
    store: "Store",
    document_pk: int,
    patch: "DocumentUpdate",
    user: "User | None",
    *,
    enforce_workflow: bool = False,
) -> Document:
    """
    Apply a partial update. A history row is appended only when the department or
    the status actually changes; other edits only touch the document row.
    """
    now = datetime.utcnow()
    with store.transaction():
        doc = store.get_document(document_pk, for_update=True)
        if not doc:
            raise NotFound("Document not found")

        from_department_id = doc.current_department_id
        from_status = doc.status
        to_department_id = patch.current_department_id if patch.current_department_id is not None else from_department_id
        to_status = patch.status or from_status
        department_changed = to_department_id != from_department_id
        status_changed = to_status != from_status

        if department_changed:
            if not store.get_department(to_department_id):
                raise NotFound("Department not found")
            if enforce_workflow:
                doc_type = store.get_document_type(doc.document_type_id) if doc.document_type_id else None
                check_workflow_route(doc_type, from_department_id, to_department_id)

        if department_changed or status_changed:
            store.add_history(
                DocumentHistory(
                    document_id=doc.id,
                    from_department_id=from_department_id,
                    to_department_id=to_department_id,
                    from_status=from_status,
                    status_change=to_status,
                    notes=patch.notes or UPDATED_NOTE,
                    changed_by=user.id if user else None,
                    changed_at=now,
                )
            )

        changes: dict[str, object] = {
            "current_department_id": to_department_id,
            "status": to_status,
            "updated_at": now,
        }
        for field in _EDITABLE_FIELDS:
            if field not in patch.model_fields_set:
                continue
            value = getattr(patch, field)
            if field == "title" and value is None:
                continue
            changes[field] = value
        store.update_document(doc, changes)

    if department_changed or status_changed:
        logger.info(
            "Routed document %s: department %s -> %s, status %s -> %s",
            doc.document_id,
            from_department_id,
            to_department_id,
            from_status,
            to_status,
        )
    return doc


def get_history(store: "Store", document_pk: int) -> list[DocumentHistory]:
    if not store.get_document(document_pk):
        raise NotFound("Document not found")
    return store.list_history(document_pk)
