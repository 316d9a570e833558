from __future__ import annotations

import threading
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any

from app.doctrack.models import AuditEvent, User
from app.doctrack.modules.departments.models import Department
from app.doctrack.modules.document_types.models import DocumentType
from app.doctrack.modules.documents.models import Document, DocumentHistory
from app.doctrack.store.base import Store, StoreError


def _apply_column_defaults(obj: Any) -> None:
    # Transient instances never hit a flush, so column defaults have to be applied by hand.
    for col in obj.__table__.columns:
        if col.default is None or getattr(obj, col.key) is not None:
            continue
        if col.default.is_callable:
            setattr(obj, col.key, col.default.arg(None))
        elif col.default.is_scalar:
            setattr(obj, col.key, col.default.arg)


class _Table:
    def __init__(self, unique: tuple[str, ...] = ()) -> None:
        self.rows: dict[int, Any] = {}
        self.next_id = 1
        self.unique = unique


class MemoryStore(Store):
    """
    Process-wide in-memory store.

    A re-entrant lock serializes transactions, and an undo log restores rows and
    attribute values when a transaction block raises.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._undo: list[Callable[[], None]] = []
        self._tables: dict[type, _Table] = {
            User: _Table(unique=("username",)),
            Department: _Table(unique=("name",)),
            DocumentType: _Table(unique=("name",)),
            Document: _Table(unique=("document_id",)),
            DocumentHistory: _Table(),
            AuditEvent: _Table(),
        }

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        with self._lock:
            outermost = self._depth == 0
            self._depth += 1
            try:
                yield
            except Exception:
                if outermost:
                    for undo in reversed(self._undo):
                        undo()
                raise
            finally:
                self._depth -= 1
                if outermost:
                    self._undo.clear()

    def _log_undo(self, fn: Callable[[], None]) -> None:
        if self._depth:
            self._undo.append(fn)

    def _insert(self, obj: Any) -> Any:
        with self._lock:
            table = self._tables[type(obj)]
            for field in table.unique:
                value = getattr(obj, field)
                if any(getattr(row, field) == value for row in table.rows.values()):
                    raise StoreError(f"Duplicate {type(obj).__name__}.{field}: {value!r}")
            _apply_column_defaults(obj)
            obj.id = table.next_id
            table.next_id += 1
            table.rows[obj.id] = obj

            def _remove(row_id: int = obj.id) -> None:
                table.rows.pop(row_id, None)

            self._log_undo(_remove)
            return obj

    # Reads hold the lock as well; _insert may resize a row dict from another thread.
    def _get(self, model: type, pk: int) -> Any:
        with self._lock:
            return self._tables[model].rows.get(pk)

    def _rows(self, model: type) -> list[Any]:
        with self._lock:
            return sorted(self._tables[model].rows.values(), key=lambda r: r.id)

    def _find(self, model: type, field: str, value: Any) -> Any:
        with self._lock:
            for row in self._tables[model].rows.values():
                if getattr(row, field) == value:
                    return row
        return None

    def get_user(self, user_id: int) -> User | None:
        return self._get(User, user_id)

    def get_user_by_username(self, username: str) -> User | None:
        return self._find(User, "username", username)

    def create_user(self, user: User) -> User:
        return self._insert(user)

    def get_department(self, department_id: int) -> Department | None:
        return self._get(Department, department_id)

    def get_department_by_name(self, name: str) -> Department | None:
        return self._find(Department, "name", name)

    def list_departments(self) -> list[Department]:
        return self._rows(Department)

    def create_department(self, department: Department) -> Department:
        return self._insert(department)

    def get_document_type(self, type_id: int) -> DocumentType | None:
        return self._get(DocumentType, type_id)

    def get_document_type_by_name(self, name: str) -> DocumentType | None:
        return self._find(DocumentType, "name", name)

    def list_document_types(self) -> list[DocumentType]:
        return self._rows(DocumentType)

    def create_document_type(self, document_type: DocumentType) -> DocumentType:
        return self._insert(document_type)

    def get_document(self, document_id: int, *, for_update: bool = False) -> Document | None:
        # for_update needs nothing extra: transaction() already holds the store lock.
        return self._get(Document, document_id)

    def get_document_by_document_id(self, external_id: str) -> Document | None:
        return self._find(Document, "document_id", external_id)

    def list_documents(
        self,
        *,
        status: str | None = None,
        department_id: int | None = None,
        created_by: int | None = None,
    ) -> list[Document]:
        docs = self._rows(Document)
        if status is not None:
            docs = [d for d in docs if d.status == status]
        if department_id is not None:
            docs = [d for d in docs if d.current_department_id == department_id]
        if created_by is not None:
            docs = [d for d in docs if d.created_by == created_by]
        return docs

    def recent_documents(self, limit: int) -> list[Document]:
        docs = sorted(self._rows(Document), key=lambda d: (d.created_at, d.id), reverse=True)
        return docs[:limit]

    def create_document(self, document: Document) -> Document:
        return self._insert(document)

    def update_document(self, document: Document, changes: dict[str, Any]) -> Document:
        with self._lock:
            previous = {key: getattr(document, key) for key in changes}

            def _restore() -> None:
                for key, value in previous.items():
                    setattr(document, key, value)

            for key, value in changes.items():
                setattr(document, key, value)
            self._log_undo(_restore)
            return document

    def list_history(self, document_id: int) -> list[DocumentHistory]:
        entries = [h for h in self._rows(DocumentHistory) if h.document_id == document_id]
        return sorted(entries, key=lambda h: (h.changed_at, h.id), reverse=True)

    def list_history_by_status(self, status: str) -> list[DocumentHistory]:
        entries = [h for h in self._rows(DocumentHistory) if h.status_change == status]
        return sorted(entries, key=lambda h: (h.changed_at, h.id))

    def add_history(self, entry: DocumentHistory) -> DocumentHistory:
        return self._insert(entry)

    def add_audit_event(self, event: AuditEvent) -> AuditEvent:
        return self._insert(event)

    def list_audit_events(self) -> list[AuditEvent]:
        return self._rows(AuditEvent)
