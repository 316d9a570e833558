import threading

import pytest

from app.doctrack.models import User
from app.doctrack.modules.departments.models import Department
from app.doctrack.store import MemoryStore, StoreError


def test_insert_assigns_ids_and_column_defaults():
    store = MemoryStore()
    with store.transaction():
        u = store.create_user(User(username="a", password_hash="x", name="A", email="a@x"))
    assert u.id == 1
    assert u.role == "user"
    assert u.is_active is True
    assert u.created_at is not None


def test_unique_fields_are_enforced():
    store = MemoryStore()
    store.create_department(Department(name="Pharmacy"))
    with pytest.raises(StoreError):
        store.create_department(Department(name="Pharmacy"))


def test_transaction_undoes_inserts_and_updates():
    store = MemoryStore()
    with store.transaction():
        d = store.create_department(Department(name="Radiology"))

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.create_department(Department(name="Oncology"))
            with store.transaction():
                store.create_department(Department(name="Nursing"))
            raise RuntimeError("abort")

    assert [x.name for x in store.list_departments()] == ["Radiology"]
    assert store.get_department(d.id) is d


def test_reads_hold_up_under_concurrent_inserts():
    store = MemoryStore()
    errors = []

    def writer(prefix):
        for i in range(300):
            store.create_department(Department(name=f"{prefix}-{i}"))

    def reader():
        try:
            for _ in range(300):
                store.get_department_by_name("Nowhere")
                store.list_departments()
        except Exception as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(p,)) for p in ("a", "b")]
    threads += [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store.list_departments()) == 600
