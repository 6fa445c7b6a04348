from pathlib import Path
from types import SimpleNamespace

import pytest

from src.dispatch.models.domain import BatchStatus, Order, OrderStatus
from src.dispatch.persistence.database import SupabaseBatchStore, SupabaseOrderStore
from src.dispatch.persistence.filesystem import FileStorage
from src.dispatch.persistence.memory import InMemoryBatchStore, InMemoryOrderStore
from src.dispatch.persistence.stores import BatchNotFound, OrderNotFound, PersistenceFailure


class FakeQuery:
    """Minimal stand-in for the postgrest query builder used by the stores."""

    def __init__(self, table: "FakeTable") -> None:
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.limit_to = None

    def select(self, _columns):
        self.action = "select"
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column):
        return self

    def limit(self, count):
        self.limit_to = count
        return self

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    def execute(self):
        if self.table.fail:
            raise RuntimeError("connection reset")
        rows = self.table.rows
        if self.action == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            rows.extend(dict(row) for row in new_rows)
            return SimpleNamespace(data=[dict(row) for row in new_rows])
        matched = [row for row in rows if self._matches(row)]
        if self.action == "update":
            for row in matched:
                row.update(self.payload)
        elif self.action == "delete":
            self.table.rows = [row for row in rows if not self._matches(row)]
        if self.limit_to is not None:
            matched = matched[: self.limit_to]
        return SimpleNamespace(data=[dict(row) for row in matched])


class FakeTable:
    def __init__(self) -> None:
        self.rows = []
        self.fail = False


class FakeClient:
    def __init__(self) -> None:
        self.tables = {}

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, FakeTable()))


def _order(oid: str, status: OrderStatus = OrderStatus.PENDING) -> Order:
    return Order(order_id=oid, postal_code="400001", weight=1.5, status=status)


def test_file_storage_creates_run_directory(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory(prefix="batches_test")

    assert run_dir.exists()
    assert run_dir.is_dir()
    assert run_dir.parent == tmp_path / "outputs"
    assert run_dir.name.startswith("batches_test_")


def test_file_storage_writes_json_and_csv(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory()

    summary_path = run_dir / "summary.json"
    batches_path = run_dir / "batches.csv"

    storage.write_json(summary_path, {"hello": "world"})
    storage.write_csv(batches_path, "a,b\n1,2\n")

    assert summary_path.read_text(encoding="utf-8") == '{\n  "hello": "world"\n}'
    assert batches_path.read_text(encoding="utf-8") == "a,b\n1,2\n"


def test_memory_mark_assigned_is_all_or_nothing() -> None:
    store = InMemoryOrderStore([_order("A"), _order("B", OrderStatus.ASSIGNED)])

    with pytest.raises(PersistenceFailure):
        store.mark_assigned(["A", "B"])

    assert [order.order_id for order in store.list_pending()] == ["A"]


def test_memory_rejects_duplicate_orders() -> None:
    store = InMemoryOrderStore([_order("A")])
    with pytest.raises(PersistenceFailure):
        store.add([_order("A")])


def test_memory_list_pending_returns_copies() -> None:
    store = InMemoryOrderStore([_order("A")])

    pending = store.list_pending()
    pending[0].status = OrderStatus.DELIVERED

    assert store.list(OrderStatus.PENDING)[0].order_id == "A"


def test_memory_batch_membership_is_immutable() -> None:
    store = InMemoryBatchStore()
    batch = store.create(["A", "B"], 3.0)

    batch.order_ids = ("A",)
    with pytest.raises(PersistenceFailure):
        store.save(batch)
    with pytest.raises(BatchNotFound):
        store.get("missing")
    with pytest.raises(PersistenceFailure):
        store.create([], 0.0)


def test_supabase_order_store_round_trip() -> None:
    client = FakeClient()
    store = SupabaseOrderStore(client)
    store.add([_order("A"), _order("B"), _order("C", OrderStatus.DELIVERED)])

    pending = store.list_pending()
    assert [order.order_id for order in pending] == ["A", "B"]
    assert pending[0].weight == 1.5

    store.mark_assigned(["A", "B"])
    assert store.list_pending() == []
    assert [order.status for order in store.get_many(["B", "A"])] == [OrderStatus.ASSIGNED] * 2


def test_supabase_mark_assigned_reverts_partial_claim() -> None:
    client = FakeClient()
    store = SupabaseOrderStore(client)
    store.add([_order("A"), _order("B", OrderStatus.ASSIGNED)])

    with pytest.raises(PersistenceFailure, match="B"):
        store.mark_assigned(["A", "B"])

    assert [order.order_id for order in store.list_pending()] == ["A"]


def test_supabase_errors_become_persistence_failures() -> None:
    client = FakeClient()
    store = SupabaseOrderStore(client)
    client.table("orders").table.fail = True

    with pytest.raises(PersistenceFailure):
        store.list_pending()


def test_supabase_batch_store_lifecycle() -> None:
    store = SupabaseBatchStore(FakeClient())

    batch = store.create(["A", "B"], 3.0)
    assert store.get(batch.batch_id).order_ids == ("A", "B")

    batch.assigned_driver_id = "driver-1"
    batch.status = BatchStatus.IN_PROGRESS
    saved = store.save(batch)
    assert saved.status == BatchStatus.IN_PROGRESS
    assert saved.order_ids == ("A", "B")

    store.delete([batch.batch_id])
    assert store.list() == []
    with pytest.raises(BatchNotFound):
        store.get(batch.batch_id)


def test_memory_add_rejects_existing_id_without_partial_insert() -> None:
    store = InMemoryOrderStore([_order("X")])

    with pytest.raises(PersistenceFailure):
        store.add([_order("NEW1"), _order("X")])

    assert [order.order_id for order in store.list()] == ["X"]


def test_memory_add_rejects_repeated_id_in_one_call() -> None:
    store = InMemoryOrderStore()

    with pytest.raises(PersistenceFailure):
        store.add([_order("D"), _order("D")])

    assert store.list() == []


def test_memory_unknown_orders_raise_order_not_found() -> None:
    store = InMemoryOrderStore([_order("A")])

    with pytest.raises(OrderNotFound) as exc_info:
        store.get_many(["A", "missing"])
    assert exc_info.value.order_ids == ["missing"]
    with pytest.raises(OrderNotFound):
        store.mark_delivered(["missing"])


def test_memory_mark_delivered_requires_assigned() -> None:
    store = InMemoryOrderStore([_order("A"), _order("B", OrderStatus.ASSIGNED)])

    with pytest.raises(PersistenceFailure):
        store.mark_delivered(["A", "B"])
    store.mark_delivered(["B"])

    assert [order.status for order in store.get_many(["A", "B"])] == [OrderStatus.PENDING, OrderStatus.DELIVERED]


def test_memory_batch_list_filters_by_driver() -> None:
    store = InMemoryBatchStore()
    mine = store.create(["A"], 1.0)
    store.create(["B"], 1.0)
    mine.assigned_driver_id = "driver-1"
    store.save(mine)

    assert [batch.batch_id for batch in store.list(driver_id="driver-1")] == [mine.batch_id]
    assert store.list(driver_id="driver-2") == []
    assert len(store.list()) == 2


def test_supabase_add_rejects_repeated_id_before_insert() -> None:
    client = FakeClient()
    store = SupabaseOrderStore(client)

    with pytest.raises(PersistenceFailure):
        store.add([_order("D"), _order("D")])

    assert client.tables.get("orders") is None or client.tables["orders"].rows == []


def test_supabase_get_many_reports_missing_ids() -> None:
    store = SupabaseOrderStore(FakeClient())
    store.add([_order("A")])

    with pytest.raises(OrderNotFound) as exc_info:
        store.get_many(["A", "B"])
    assert exc_info.value.order_ids == ["B"]


def test_supabase_mark_delivered_reverts_partial_update() -> None:
    store = SupabaseOrderStore(FakeClient())
    store.add([_order("A", OrderStatus.ASSIGNED), _order("B")])

    with pytest.raises(PersistenceFailure, match="B"):
        store.mark_delivered(["A", "B"])
    assert [order.status for order in store.get_many(["A", "B"])] == [OrderStatus.ASSIGNED, OrderStatus.PENDING]

    store.mark_delivered(["A"])
    assert store.list(OrderStatus.DELIVERED)[0].order_id == "A"


def test_supabase_batch_list_filters_by_driver() -> None:
    store = SupabaseBatchStore(FakeClient())
    mine = store.create(["A"], 1.0)
    store.create(["B"], 2.0)
    mine.assigned_driver_id = "driver-1"
    store.save(mine)

    assert [batch.batch_id for batch in store.list(driver_id="driver-1")] == [mine.batch_id]
    assert len(store.list()) == 2
