from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.dispatch.api import dependencies
from src.dispatch.main import create_app
from src.dispatch.models.domain import GeoPoint
from src.dispatch.persistence.memory import InMemoryBatchStore, InMemoryOrderStore
from src.dispatch.services.geocoding import GeocodeResolver, MockGeocoder

KNOWN = {
    "400001": GeoPoint(18.9388, 72.8354),
    "400050": GeoPoint(19.0596, 72.8295),
    "110001": GeoPoint(28.6328, 77.2197),
}


@pytest.fixture
def stores():
    return InMemoryOrderStore(), InMemoryBatchStore()


@pytest.fixture
def geocoder():
    return MockGeocoder(known=KNOWN, failing={"999999"})


@pytest.fixture
def api_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, stores, geocoder) -> TestClient:
    app = create_app()
    order_store, batch_store = stores
    resolver = GeocodeResolver(geocoder)
    app.dependency_overrides[dependencies.get_order_store] = lambda: order_store
    app.dependency_overrides[dependencies.get_batch_store] = lambda: batch_store
    app.dependency_overrides[dependencies.get_geocode_resolver] = lambda: resolver

    # ensure run outputs go to tmpdir
    from src.dispatch.api.routes import batches as batches_route
    from src.dispatch.persistence.filesystem import FileStorage

    monkeypatch.setattr(batches_route, "FileStorage", lambda: FileStorage(root=tmp_path))

    return TestClient(app)


def _post_orders(client: TestClient, *items) -> list[dict]:
    response = client.post("/api/orders", json={"orders": list(items)})
    assert response.status_code == 201
    return response.json()


def test_health(api_client: TestClient):
    assert api_client.get("/api/health").json() == {"status": "ok"}


def test_create_and_list_orders(api_client: TestClient):
    created = _post_orders(
        api_client,
        {"order_id": "O1", "postal_code": " 400001 ", "weight": 2.5, "address": "Fort"},
        {"postal_code": "110001", "weight": 1.0},
    )

    assert created[0]["postal_code"] == "400001"
    assert created[0]["status"] == "PENDING"
    assert created[1]["order_id"]

    listed = api_client.get("/api/orders", params={"status": "PENDING"}).json()
    assert {order["order_id"] for order in listed} == {"O1", created[1]["order_id"]}


def test_duplicate_order_conflicts(api_client: TestClient):
    _post_orders(api_client, {"order_id": "O1", "postal_code": "400001", "weight": 1.0})

    response = api_client.post(
        "/api/orders", json={"orders": [{"order_id": "O1", "postal_code": "400001", "weight": 1.0}]}
    )
    assert response.status_code == 409


def test_invalid_order_rejected(api_client: TestClient):
    response = api_client.post("/api/orders", json={"orders": [{"postal_code": "400001", "weight": 0}]})
    assert response.status_code == 422


def test_generate_batches_endpoint(api_client: TestClient, tmp_path: Path):
    _post_orders(
        api_client,
        *[{"order_id": f"M{i}", "postal_code": "400001", "weight": 5.0} for i in range(6)],
        {"order_id": "D1", "postal_code": "110001", "weight": 1.0},
    )

    response = api_client.post("/api/batches/generate", json={"requested_by": "ops"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Batches generated"
    assigned = sorted(oid for batch in payload["batches"] for oid in batch["order_ids"])
    assert assigned == ["D1", "M0", "M1", "M2", "M3", "M4", "M5"]
    assert all(batch["total_weight"] <= 25.0 for batch in payload["batches"])
    assert payload["metadata"]["pending_count"] == 7

    output_dir = Path(payload["metadata"]["output_dir"])
    assert output_dir.parent == tmp_path / "outputs"
    assert (output_dir / "summary.json").exists()
    assert (output_dir / "batches.csv").exists()

    assert api_client.get("/api/orders", params={"status": "PENDING"}).json() == []
    again = api_client.post("/api/batches/generate").json()
    assert again["message"] == "No pending orders"
    assert again["batches"] == []


def test_generate_reports_geocode_failure(api_client: TestClient, stores):
    _post_orders(
        api_client,
        {"order_id": "A", "postal_code": "400001", "weight": 1.0},
        {"order_id": "B", "postal_code": "999999", "weight": 1.0},
    )

    response = api_client.post("/api/batches/generate", json={"persist": False})

    assert response.status_code == 422
    assert response.json()["detail"]["postal_code"] == "999999"
    _, batch_store = stores
    assert batch_store.list() == []
    assert len(api_client.get("/api/orders", params={"status": "PENDING"}).json()) == 2


def test_generate_respects_request_caps(api_client: TestClient):
    _post_orders(api_client, *[{"postal_code": "400050", "weight": 1.0} for _ in range(5)])

    response = api_client.post(
        "/api/batches/generate", json={"max_orders_per_batch": 2, "persist": False}
    )

    assert response.status_code == 200
    assert sorted(batch["order_count"] for batch in response.json()["batches"]) == [1, 2, 2]


def test_batch_management_endpoints(api_client: TestClient, stores):
    _post_orders(
        api_client,
        {"order_id": "A", "postal_code": "400001", "weight": 1.0},
        {"order_id": "B", "postal_code": "400050", "weight": 1.0},
    )
    batch = api_client.post("/api/batches/generate", json={"persist": False}).json()["batches"][0]
    batch_id = batch["batch_id"]

    assert api_client.get(f"/api/batches/{batch_id}").json()["order_ids"] == batch["order_ids"]
    assert api_client.get("/api/batches/unknown").status_code == 404

    assigned = api_client.patch(f"/api/batches/{batch_id}/assign", json={"driver_id": "driver-9"})
    assert assigned.status_code == 200
    assert assigned.json()["status"] == "IN_PROGRESS"

    order_store, _ = stores
    order_store.mark_delivered(["A", "B"])
    refreshed = api_client.post(f"/api/batches/{batch_id}/refresh-status").json()
    assert refreshed["status"] == "COMPLETED"

    stats = api_client.get("/api/batches/stats").json()
    assert stats["total"] == 1
    assert stats["counts"]["COMPLETED"] == 1

    assert api_client.patch(f"/api/batches/{batch_id}/assign", json={"driver_id": "driver-2"}).status_code == 400


def test_batches_map(api_client: TestClient):
    _post_orders(
        api_client,
        {"order_id": "A", "postal_code": "400001", "weight": 1.0},
        {"order_id": "B", "postal_code": "110001", "weight": 1.0},
    )
    api_client.post("/api/batches/generate", json={"persist": False})

    collection = api_client.get("/api/batches/map").json()

    assert collection["type"] == "FeatureCollection"
    kinds = sorted(feature["properties"]["kind"] for feature in collection["features"])
    assert kinds.count("order") == 2


def test_duplicate_ids_in_one_request_store_nothing(api_client: TestClient):
    response = api_client.post(
        "/api/orders",
        json={
            "orders": [
                {"order_id": "NEW1", "postal_code": "400001", "weight": 1.0},
                {"order_id": "NEW1", "postal_code": "110001", "weight": 2.0},
            ]
        },
    )

    assert response.status_code == 409
    assert api_client.get("/api/orders").json() == []


def test_batch_details_embed_orders(api_client: TestClient):
    _post_orders(
        api_client,
        {"order_id": "A", "postal_code": "400001", "weight": 1.0, "address": "Fort"},
        {"order_id": "B", "postal_code": "400050", "weight": 2.0},
    )
    batch_id = api_client.post("/api/batches/generate", json={"persist": False}).json()["batches"][0]["batch_id"]

    response = api_client.get(f"/api/batches/{batch_id}/details")

    assert response.status_code == 200
    details = response.json()
    assert details["batch_id"] == batch_id
    assert [order["order_id"] for order in details["orders"]] == details["order_ids"]
    assert {order["status"] for order in details["orders"]} == {"ASSIGNED"}
    assert api_client.get("/api/batches/unknown/details").status_code == 404


def test_assigned_batches_for_driver(api_client: TestClient):
    _post_orders(
        api_client,
        {"order_id": "A", "postal_code": "400001", "weight": 1.0},
        {"order_id": "B", "postal_code": "110001", "weight": 1.0},
    )
    batches = api_client.post(
        "/api/batches/generate", json={"max_orders_per_batch": 1, "persist": False}
    ).json()["batches"]
    assert len(batches) == 2
    api_client.patch(f"/api/batches/{batches[0]['batch_id']}/assign", json={"driver_id": "driver-1"})
    api_client.patch(f"/api/batches/{batches[1]['batch_id']}/assign", json={"driver_id": "driver-2"})

    mine = api_client.get("/api/batches/assigned", params={"driver_id": "driver-1"}).json()

    assert [batch["batch_id"] for batch in mine] == [batches[0]["batch_id"]]
    assert mine[0]["assigned_driver_id"] == "driver-1"
    assert [order["order_id"] for order in mine[0]["orders"]] == batches[0]["order_ids"]
    assert api_client.get("/api/batches/assigned", params={"driver_id": "nobody"}).json() == []
    assert api_client.get("/api/batches/assigned").status_code == 422


def test_mark_delivered_completes_batch(api_client: TestClient):
    _post_orders(
        api_client,
        {"order_id": "A", "postal_code": "400001", "weight": 1.0},
        {"order_id": "B", "postal_code": "400050", "weight": 1.0},
        {"order_id": "C", "postal_code": "110001", "weight": 1.0},
    )
    assert api_client.post("/api/orders/C/mark-delivered").status_code == 400
    batch_id = api_client.post("/api/batches/generate", json={"persist": False}).json()["batches"][0]["batch_id"]

    first = api_client.post("/api/orders/A/mark-delivered").json()
    assert first["order"]["status"] == "DELIVERED"
    assert first["batch_id"] == batch_id
    assert first["batch_completed"] is False

    api_client.post("/api/orders/C/mark-delivered")
    last = api_client.post("/api/orders/B/mark-delivered").json()
    assert last["batch_completed"] is True
    assert api_client.get(f"/api/batches/{batch_id}").json()["status"] == "COMPLETED"

    assert api_client.post("/api/orders/A/mark-delivered").status_code == 400
    assert api_client.post("/api/orders/missing/mark-delivered").status_code == 404
