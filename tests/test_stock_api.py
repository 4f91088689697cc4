from stockledger.core.errors import ResourceBusyError
from stockledger.services import stock_service
from tests.factories import create_product


def _seed_product(session_local, **kwargs) -> str:
    with session_local() as db:
        return create_product(db, **kwargs).id


def _receive(client, product_id, location_code, quantity, **extra):
    return client.post(
        "/stock/batches",
        json={
            "product_id": product_id,
            "location_code": location_code,
            "quantity": quantity,
            "actor": "clerk-01",
            **extra,
        },
    )


def test_health_and_locations(test_context):
    client, _ = test_context

    assert client.get("/health").json() == {"ok": True}
    response = client.get("/locations")
    assert response.status_code == 200
    assert [row["code"] for row in response.json()] == ["ONLINE", "SHELF", "WAREHOUSE"]
    assert response.headers.get("X-Request-ID")


def test_receive_deduct_and_summary_flow(test_context):
    client, session_local = test_context
    product_id = _seed_product(session_local)

    received = _receive(client, product_id, "warehouse", 80, unit_sell_price=4.5)
    assert received.status_code == 201
    assert received.json()["quantity_received"] == 80
    assert received.json()["unit_sell_price"] == 4.5

    deducted = client.post(
        "/stock/deductions",
        json={"product_id": product_id, "quantity": 5, "actor": "cashier-02"},
    )
    assert deducted.status_code == 200
    body = deducted.json()
    assert [item["movement_type"] for item in body["items"]] == ["SALE_DEDUCTION", "WAREHOUSE_TO_DISPLAY"]

    summary = client.get(f"/stock/{product_id}/summary").json()
    assert summary["total_quantity"] == 75
    assert summary["per_location"]["SHELF"] == 75
    assert summary["per_location"]["WAREHOUSE"] == 0

    movements = client.get("/stock/movements", params={"product_id": product_id, "limit": 2}).json()
    assert movements["pagination"]["total"] == 3
    assert movements["pagination"]["has_next"] is True


def test_insufficient_stock_uses_error_envelope(test_context):
    client, session_local = test_context
    product_id = _seed_product(session_local)
    _receive(client, product_id, "SHELF", 3)

    response = client.post(
        "/stock/deductions",
        json={"product_id": product_id, "quantity": 4, "actor": "cashier-02"},
        headers={"X-Request-ID": "req-123"},
    )

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert error["request_id"] == "req-123"
    assert error["path"] == "/stock/deductions"
    assert error["details"]["available"] == 3
    assert error["details"]["requested"] == 4


def test_same_location_transfer_is_bad_request(test_context):
    client, session_local = test_context
    product_id = _seed_product(session_local)

    response = client.post(
        "/stock/transfers",
        json={
            "product_id": product_id,
            "from_location_code": "SHELF",
            "to_location_code": "SHELF",
            "quantity": 1,
            "actor": "clerk-01",
        },
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_transfer"


def test_unknown_product_is_not_found(test_context):
    client, _ = test_context

    response = client.get("/stock/missing/summary")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


def test_request_validation_uses_error_envelope(test_context):
    client, _ = test_context

    response = client.post("/stock/deductions", json={"product_id": "p", "quantity": -1, "actor": "x"})

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "validation_error"
    assert error["details"][0]["field"] == "quantity"


def test_lock_contention_maps_to_retryable_503(test_context, monkeypatch):
    client, session_local = test_context
    product_id = _seed_product(session_local)

    def busy(*args, **kwargs):
        raise ResourceBusyError(retry_after_seconds=2)

    monkeypatch.setattr(stock_service, "deduct", busy)
    response = client.post(
        "/stock/deductions",
        json={"product_id": product_id, "quantity": 1, "actor": "cashier-02"},
    )

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "2"
    assert response.json()["error"]["code"] == "resource_busy"


def test_alerts_listing_and_reorder_status(test_context):
    client, session_local = test_context
    product_id = _seed_product(session_local)
    _receive(client, product_id, "WAREHOUSE", 30)

    status = client.get(f"/stock/{product_id}/reorder-status").json()
    assert status["alert_warranted"] is True
    assert status["threshold"] == 50
    assert status["alert_kind"] == "SHELF_RESTOCK"

    alerts = client.get("/alerts").json()
    assert alerts["pagination"]["total"] == 1
    assert alerts["items"][0]["product_id"] == product_id
    assert alerts["items"][0]["observed_quantity"] == 30


def test_create_location_rejects_duplicate_code(test_context):
    client, _ = test_context

    created = client.post("/locations", json={"code": "kiosk", "name": "Mall Kiosk", "kind": "DISPLAY", "default_capacity": 30})
    assert created.status_code == 201
    assert created.json()["code"] == "KIOSK"

    duplicate = client.post("/locations", json={"code": "KIOSK", "name": "Again", "kind": "DISPLAY"})
    assert duplicate.status_code == 400


def test_batches_listing_and_threshold_only_limits_update(test_context):
    client, session_local = test_context
    product_id = _seed_product(session_local)
    _receive(client, product_id, "SHELF", 10, batch_code="LOT-A", acquisition_date="2026-10-01")
    _receive(client, product_id, "WAREHOUSE", 50, batch_code="LOT-B", acquisition_date="2026-10-05")

    batches = client.get(f"/stock/{product_id}/batches")
    assert batches.status_code == 200
    assert [row["batch_code"] for row in batches.json()] == ["LOT-A", "LOT-B"]

    first = client.put(
        "/stock/limits",
        json={"product_id": product_id, "location_code": "SHELF", "min_threshold": 4, "capacity": 20},
    )
    assert first.json()["capacity"] == 20
    second = client.put(
        "/stock/limits",
        json={"product_id": product_id, "location_code": "shelf", "min_threshold": 6},
    )
    assert second.status_code == 200
    assert second.json() == {"product_id": product_id, "location_code": "SHELF", "min_threshold": 6, "capacity": 20}
