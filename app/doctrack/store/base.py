from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.doctrack.models import AuditEvent, User
    from app.doctrack.modules.departments.models import Department
    from app.doctrack.modules.document_types.models import DocumentType
    from app.doctrack.modules.documents.models import Document, DocumentHistory


class StoreError(RuntimeError):
    pass


class Store:
    """
    Persistence contract shared by the SQL and in-memory backends.

    Entities are the ORM classes from app.doctrack.models; the memory backend keeps
    transient instances of them. Writes are only visible to other requests once the
    enclosing transaction() block exits without an exception.
    """

    def transaction(self) -> AbstractContextManager[None]:
        raise NotImplementedError

    # Users
    def get_user(self, user_id: int) -> "User | None":
        raise NotImplementedError

    def get_user_by_username(self, username: str) -> "User | None":
        raise NotImplementedError

    def create_user(self, user: "User") -> "User":
        raise NotImplementedError

    # Departments
    def get_department(self, department_id: int) -> "Department | None":
        raise NotImplementedError

    def get_department_by_name(self, name: str) -> "Department | None":
        raise NotImplementedError

    def list_departments(self) -> list["Department"]:
        raise NotImplementedError

    def create_department(self, department: "Department") -> "Department":
        raise NotImplementedError

    # Document types
    def get_document_type(self, type_id: int) -> "DocumentType | None":
        raise NotImplementedError

    def get_document_type_by_name(self, name: str) -> "DocumentType | None":
        raise NotImplementedError

    def list_document_types(self) -> list["DocumentType"]:
        raise NotImplementedError

    def create_document_type(self, document_type: "DocumentType") -> "DocumentType":
        raise NotImplementedError

    # Documents
    def get_document(self, document_id: int, *, for_update: bool = False) -> "Document | None":
        raise NotImplementedError

    def get_document_by_document_id(self, external_id: str) -> "Document | None":
        raise NotImplementedError

    def list_documents(
        self,
        *,
        status: str | None = None,
        department_id: int | None = None,
        created_by: int | None = None,
    ) -> list["Document"]:
        raise NotImplementedError

    def recent_documents(self, limit: int) -> list["Document"]:
        raise NotImplementedError

    def create_document(self, document: "Document") -> "Document":
        raise NotImplementedError

    def update_document(self, document: "Document", changes: dict[str, Any]) -> "Document":
        raise NotImplementedError

    # History (append-only)
    def list_history(self, document_id: int) -> list["DocumentHistory"]:
        """Entries for one document, newest first."""
        raise NotImplementedError

    def list_history_by_status(self, status: str) -> list["DocumentHistory"]:
        """Entries across all documents whose resulting status is `status`, oldest first."""
        raise NotImplementedError

    def add_history(self, entry: "DocumentHistory") -> "DocumentHistory":
        raise NotImplementedError

    # Audit trail (append-only)
    def add_audit_event(self, event: "AuditEvent") -> "AuditEvent":
        raise NotImplementedError

    def list_audit_events(self) -> list["AuditEvent"]:
        raise NotImplementedError
