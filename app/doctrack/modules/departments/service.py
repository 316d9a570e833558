from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.doctrack.audit import record_event
from app.doctrack.constants import DEFAULT_DEPARTMENTS
from app.doctrack.errors import ValidationFailed
from app.doctrack.modules.departments.models import Department

if TYPE_CHECKING:
    from app.doctrack.models import User
    from app.doctrack.schemas import DepartmentCreate
    from app.doctrack.store.base import Store

logger = logging.getLogger(__name__)


def create_department(store: "Store", payload: "DepartmentCreate", user: "User") -> Department:
    """Create a department. Caller owns the transaction."""
    name = payload.name.strip()
    if not name:
        raise ValidationFailed("Invalid department data", errors=[{"loc": ["name"], "msg": "Name is required"}])
    if store.get_department_by_name(name):
        raise ValidationFailed("Department already exists")

    d = store.create_department(Department(name=name, description=(payload.description or "").strip() or None))
    record_event(
        store,
        actor=user,
        action="department.create",
        entity_type="Department",
        entity_id=str(d.id),
        metadata={"name": d.name},
    )
    return d


def seed_default_departments(store: "Store") -> int:
    """Insert the default departments when none exist. Returns how many were created."""
    with store.transaction():
        if store.list_departments():
            return 0
        for name, description in DEFAULT_DEPARTMENTS:
            store.create_department(Department(name=name, description=description))
    logger.info("Seeded %d default departments", len(DEFAULT_DEPARTMENTS))
    return len(DEFAULT_DEPARTMENTS)
