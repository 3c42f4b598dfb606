from datetime import timedelta
from uuid import uuid4

import pytest

from lab_inventory.core.config import get_settings
from lab_inventory.utils.datetime_utils import utc_today

API = get_settings().api_v1_prefix + "/inventory"


def _create_item(client, **fields):
    body = {"name": "Glucose Reagent", "kind": "Reagent", "unit": "ml"}
    body.update(fields)
    response = client.post(f"{API}/items", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _add_batch(client, item_id, quantity, expires_in=None, **fields):
    body = {"quantity": quantity, **fields}
    if expires_in is not None:
        body["expiry_date"] = (utc_today() + timedelta(days=expires_in)).isoformat()
    response = client.post(f"{API}/items/{item_id}/batches", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_item_and_conflict(client):
    item = _create_item(client, min_stock=3)

    assert item["kind"] == "REAGENT"
    assert item["min_stock"] == 3
    assert item["stock"] == 0
    assert item["is_active"] is True

    response = client.post(
        f"{API}/items", json={"name": "glucose reagent", "kind": "REAGENT"}
    )
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"
    assert response.json()["data"]["field"] == "name"


@pytest.mark.parametrize(
    "body",
    [
        {"name": "", "kind": "REAGENT"},
        {"name": "Saline", "kind": "Medicine"},
        {"name": "Saline", "kind": "REAGENT", "min_stock": -4},
    ],
)
def test_create_item_validation_errors(client, body):
    response = client.post(f"{API}/items", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_update_and_deactivate_item(client):
    item = _create_item(client)

    response = client.put(f"{API}/items/{item['id']}", json={"min_stock": 12})
    assert response.status_code == 200
    assert response.json()["min_stock"] == 12
    assert response.json()["unit"] == "ml"

    response = client.delete(f"{API}/items/{item['id']}")
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = client.put(f"{API}/items/{uuid4()}", json={"min_stock": 1})
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_list_items_with_stock_and_filters(client):
    reagent = _create_item(client, name="Albumin Reagent")
    _create_item(client, name="Centrifuge Tubes", kind="Equipment")
    retired = _create_item(client, name="Retired Reagent")
    client.delete(f"{API}/items/{retired['id']}")
    soon = _add_batch(client, reagent["id"], 4, expires_in=3)
    _add_batch(client, reagent["id"], 6)

    items = client.get(f"{API}/items").json()
    assert [i["name"] for i in items] == ["Albumin Reagent", "Centrifuge Tubes"]
    assert items[0]["stock"] == 10
    assert items[0]["next_expiry"] == soon["expiry_date"]
    assert items[1]["stock"] == 0
    assert items[1]["next_expiry"] is None

    reagents = client.get(f"{API}/items", params={"type": "reagent", "active": "all"}).json()
    assert [i["name"] for i in reagents] == ["Albumin Reagent", "Retired Reagent"]

    searched = client.get(f"{API}/items", params={"search": "tube"}).json()
    assert [i["name"] for i in searched] == ["Centrifuge Tubes"]

    response = client.get(f"{API}/items", params={"type": "Medicine"})
    assert response.status_code == 400


def test_batches_endpoint_orders_by_expiry(client):
    item = _create_item(client)
    undated = _add_batch(client, item["id"], 2, lot_no="L-3")
    late = _add_batch(client, item["id"], 5, expires_in=10, lot_no="L-2")
    early = _add_batch(client, item["id"], 3, expires_in=5, lot_no="L-1")

    batches = client.get(f"{API}/items/{item['id']}/batches").json()

    assert [b["id"] for b in batches] == [early["id"], late["id"], undated["id"]]
    assert batches[0]["remaining_quantity"] == 3
    assert batches[0]["quantity"] == 3


def test_add_batch_validation(client):
    item = _create_item(client)

    response = client.post(f"{API}/items/{item['id']}/batches", json={"quantity": 0})
    assert response.status_code == 400

    response = client.post(
        f"{API}/items/{item['id']}/batches", json={"quantity": 1.0005}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = client.post(f"{API}/items/{uuid4()}/batches", json={"quantity": 5})
    assert response.status_code == 404


def test_consume_endpoint(client):
    item = _create_item(client)
    b3 = _add_batch(client, item["id"], 2)
    b2 = _add_batch(client, item["id"], 5, expires_in=10)
    b1 = _add_batch(client, item["id"], 3, expires_in=5)

    response = client.post(f"{API}/consume", json={"itemId": item["id"], "quantity": 6})
    assert response.status_code == 200
    report = response.json()
    assert report["used"] == 6
    assert report["partial"] is False
    assert report["details"] == [
        {"batch_id": b1["id"], "quantity_taken": 3},
        {"batch_id": b2["id"], "quantity_taken": 3},
    ]

    response = client.post(
        f"{API}/consume",
        json={"item_id": item["id"], "quantity": 10, "batch_id": b3["id"]},
    )
    report = response.json()
    assert report["used"] == 4
    assert report["partial"] is True
    assert [d["batch_id"] for d in report["details"]] == [b3["id"], b2["id"]]

    stock = client.get(f"{API}/items/{item['id']}/stock").json()
    assert stock == {"item_id": item["id"], "stock": 0, "next_expiry": None}


@pytest.mark.parametrize("quantity", [0, -1, "many"])
def test_consume_rejects_bad_quantity(client, quantity):
    item = _create_item(client)
    _add_batch(client, item["id"], 5)

    response = client.post(f"{API}/consume", json={"itemId": item["id"], "quantity": quantity})

    assert response.status_code == 400
    assert response.json()["data"]["field"] == "quantity"
    assert client.get(f"{API}/items/{item['id']}/stock").json()["stock"] == 5


def test_consume_unknown_or_inactive_item(client):
    response = client.post(f"{API}/consume", json={"itemId": str(uuid4()), "quantity": 1})
    assert response.status_code == 404

    item = _create_item(client)
    _add_batch(client, item["id"], 5)
    client.delete(f"{API}/items/{item['id']}")
    response = client.post(f"{API}/consume", json={"itemId": item["id"], "quantity": 1})
    assert response.status_code == 404


def test_low_stock_endpoint(client):
    scarce = _create_item(client, name="Scarce")
    plenty = _create_item(client, name="Plenty")
    _add_batch(client, scarce["id"], 8)
    _add_batch(client, plenty["id"], 12)

    items = client.get(f"{API}/low-stock", params={"threshold": 10}).json()
    assert [(i["id"], i["stock"]) for i in items] == [(scarce["id"], 8)]

    response = client.get(f"{API}/low-stock", params={"threshold": -1})
    assert response.status_code == 400


def test_expiring_soon_endpoint(client):
    item = _create_item(client)
    soon = _add_batch(client, item["id"], 4, expires_in=5)
    _add_batch(client, item["id"], 4, expires_in=30)

    batches = client.get(f"{API}/expiring-soon", params={"days": 7}).json()
    assert [b["id"] for b in batches] == [soon["id"]]
    assert batches[0]["item"]["name"] == "Glucose Reagent"
    assert batches[0]["item"]["kind"] == "REAGENT"

    default_window = client.get(f"{API}/expiring-soon").json()
    assert len(default_window) == 2

    response = client.get(f"{API}/expiring-soon", params={"days": -3})
    assert response.status_code == 400
