from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.doctrack.audit import record_event
from app.doctrack.errors import NotFound, TransitionRejected, ValidationFailed
from app.doctrack.modules.document_types.models import DocumentType

if TYPE_CHECKING:
    from app.doctrack.models import User
    from app.doctrack.schemas import DocumentTypeCreate
    from app.doctrack.store.base import Store


def create_document_type(store: "Store", payload: "DocumentTypeCreate", user: "User") -> DocumentType:
    """Create a document type. Caller owns the transaction."""
    name = payload.name.strip()
    if not name:
        raise ValidationFailed("Invalid document type data", errors=[{"loc": ["name"], "msg": "Name is required"}])
    if store.get_document_type_by_name(name):
        raise ValidationFailed("Document type already exists")

    for step in payload.workflow.steps:
        if not store.get_department(step.department_id):
            raise NotFound(f"Workflow step department {step.department_id} not found")

    dt = store.create_document_type(
        DocumentType(
            name=name,
            description=(payload.description or "").strip() or None,
            workflow=payload.workflow.model_dump(by_alias=True),
            strict_mode=payload.strict_mode,
            created_by=user.id,
        )
    )
    record_event(
        store,
        actor=user,
        action="document_type.create",
        entity_type="DocumentType",
        entity_id=str(dt.id),
        metadata={"name": dt.name, "steps": len(payload.workflow.steps), "strict_mode": dt.strict_mode},
    )
    return dt


def allowed_next_departments(workflow: dict[str, Any], from_department_id: int | None) -> list[int] | None:
    """
    Departments a document may move to next under `workflow`.

    None means unrestricted (no steps configured). A document outside the step list
    (or not yet placed) starts from the first step. Optional steps may be skipped;
    `allowSkip` opens every later step.
    """
    steps = sorted(workflow.get("steps") or [], key=lambda st: st.get("order", 0))
    if not steps:
        return None
    ids = [st["departmentId"] for st in steps]
    start = ids.index(from_department_id) + 1 if from_department_id in ids else 0
    remaining = steps[start:]
    if workflow.get("allowSkip"):
        return [st["departmentId"] for st in remaining]

    allowed: list[int] = []
    for st in remaining:
        allowed.append(st["departmentId"])
        if not st.get("isOptional"):
            break
    return allowed


def check_workflow_route(doc_type: DocumentType | None, from_department_id: int | None, to_department_id: int) -> None:
    if doc_type is None or not doc_type.strict_mode:
        return
    allowed = allowed_next_departments(doc_type.workflow or {}, from_department_id)
    if allowed is None or to_department_id in allowed:
        return
    raise TransitionRejected(
        f"Department {to_department_id} is not a permitted next step in the {doc_type.name} workflow",
        errors=[{"allowedDepartmentIds": allowed}],
    )
