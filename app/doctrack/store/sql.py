from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.orm import Session

from app.doctrack.models import AuditEvent, User
from app.doctrack.modules.departments.models import Department
from app.doctrack.modules.document_types.models import DocumentType
from app.doctrack.modules.documents.models import Document, DocumentHistory
from app.doctrack.store.base import Store


class SqlStore(Store):
    """Store backed by a SQLAlchemy session (request-scoped in the app)."""

    def __init__(self, s: Session) -> None:
        self.s = s

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        try:
            yield
            self.s.commit()
        except Exception:
            self.s.rollback()
            raise

    def _add(self, obj):
        self.s.add(obj)
        self.s.flush()
        return obj

    def get_user(self, user_id: int) -> User | None:
        return self.s.get(User, user_id)

    def get_user_by_username(self, username: str) -> User | None:
        return self.s.query(User).filter(User.username == username).one_or_none()

    def create_user(self, user: User) -> User:
        return self._add(user)

    def get_department(self, department_id: int) -> Department | None:
        return self.s.get(Department, department_id)

    def get_department_by_name(self, name: str) -> Department | None:
        return self.s.query(Department).filter(Department.name == name).one_or_none()

    def list_departments(self) -> list[Department]:
        return self.s.query(Department).order_by(Department.id.asc()).all()

    def create_department(self, department: Department) -> Department:
        return self._add(department)

    def get_document_type(self, type_id: int) -> DocumentType | None:
        return self.s.get(DocumentType, type_id)

    def get_document_type_by_name(self, name: str) -> DocumentType | None:
        return self.s.query(DocumentType).filter(DocumentType.name == name).one_or_none()

    def list_document_types(self) -> list[DocumentType]:
        return self.s.query(DocumentType).order_by(DocumentType.id.asc()).all()

    def create_document_type(self, document_type: DocumentType) -> DocumentType:
        return self._add(document_type)

    def get_document(self, document_id: int, *, for_update: bool = False) -> Document | None:
        if not for_update:
            return self.s.get(Document, document_id)
        # Row lock on Postgres; SQLite ignores FOR UPDATE and serializes writers itself.
        return (
            self.s.query(Document)
            .filter(Document.id == document_id)
            .populate_existing()
            .with_for_update()
            .one_or_none()
        )

    def get_document_by_document_id(self, external_id: str) -> Document | None:
        return self.s.query(Document).filter(Document.document_id == external_id).one_or_none()

    def list_documents(
        self,
        *,
        status: str | None = None,
        department_id: int | None = None,
        created_by: int | None = None,
    ) -> list[Document]:
        q = self.s.query(Document)
        if status is not None:
            q = q.filter(Document.status == status)
        if department_id is not None:
            q = q.filter(Document.current_department_id == department_id)
        if created_by is not None:
            q = q.filter(Document.created_by == created_by)
        return q.order_by(Document.id.asc()).all()

    def recent_documents(self, limit: int) -> list[Document]:
        return (
            self.s.query(Document)
            .order_by(Document.created_at.desc(), Document.id.desc())
            .limit(limit)
            .all()
        )

    def create_document(self, document: Document) -> Document:
        return self._add(document)

    def update_document(self, document: Document, changes: dict[str, Any]) -> Document:
        for key, value in changes.items():
            setattr(document, key, value)
        self.s.flush()
        return document

    def list_history(self, document_id: int) -> list[DocumentHistory]:
        return (
            self.s.query(DocumentHistory)
            .filter(DocumentHistory.document_id == document_id)
            .order_by(DocumentHistory.changed_at.desc(), DocumentHistory.id.desc())
            .all()
        )

    def list_history_by_status(self, status: str) -> list[DocumentHistory]:
        return (
            self.s.query(DocumentHistory)
            .filter(DocumentHistory.status_change == status)
            .order_by(DocumentHistory.changed_at.asc(), DocumentHistory.id.asc())
            .all()
        )

    def add_history(self, entry: DocumentHistory) -> DocumentHistory:
        return self._add(entry)

    def add_audit_event(self, event: AuditEvent) -> AuditEvent:
        self.s.add(event)
        return event

    def list_audit_events(self) -> list[AuditEvent]:
        return self.s.query(AuditEvent).order_by(AuditEvent.id.asc()).all()
