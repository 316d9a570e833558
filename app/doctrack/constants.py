"""
Central constants for the DocTrack application.
"""
from __future__ import annotations

DOCUMENT_STATUSES = ("pending", "in_progress", "approved", "completed", "rejected")
DEFAULT_STATUS = "pending"

# Dashboard definitions
ACTIVE_STATUS = "in_progress"
PENDING_APPROVAL_STATUS = "pending"
COMPLETED_STATUS = "completed"

DEFAULT_ID_PREFIX = "DOC"

CREATED_NOTE = "Document created"
UPDATED_NOTE = "Document updated"

# Seeded on first boot when the departments table is empty.
DEFAULT_DEPARTMENTS = (
    ("Reception", "Document registration and initial processing"),
    ("Cardiology", "Medical review and processing for cardiac patients"),
    ("Laboratory", "Lab tests and results processing"),
    ("Pharmacy", "Medication orders and dispensing"),
    ("Radiology", "Imaging studies and reports"),
    ("Nursing", "Patient care coordination"),
    ("Administration", "Final approval and document archiving"),
)
