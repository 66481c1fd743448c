import pytest

from models import Order


@pytest.fixture
def stocked(make_product):
    return {
        "p1": make_product("P1", "10.00", stock=5),
        "p2": make_product("P2", "20.00", stock=0),
    }


def place(client, headers, *lines, address="221B Baker Street"):
    return client.post(
        "/api/orders",
        json={
            "items": [{"productId": product_id, "quantity": quantity} for product_id, quantity in lines],
            "shippingAddress": address,
        },
        headers=headers
    )


def test_orders_require_authentication(client, stocked):
    assert client.get("/api/orders").status_code == 401
    assert client.get("/api/orders", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get("/api/orders", headers={"Authorization": "Token abc"}).status_code == 401
    assert place(client, {}, (stocked["p1"].id, 1)).status_code == 401


def test_place_and_cancel_round_trip(client, stocked, shopper_headers, stock_of):
    p1 = stocked["p1"]

    response = place(client, shopper_headers, (p1.id, 3))

    assert response.status_code == 201
    order = response.json()
    assert response.headers["location"] == f"/api/orders/{order['id']}"
    assert order["status"] == "Pending"
    assert order["totalAmount"] == 30.0
    assert order["items"] == [
        {"productId": p1.id, "productName": "P1", "quantity": 3, "unitPrice": 10.0, "totalPrice": 30.0}
    ]
    assert stock_of(p1.id) == 2

    cancel = client.post(f"/api/orders/{order['id']}/cancel", headers=shopper_headers)

    assert cancel.status_code == 200
    assert cancel.json() == {"message": "Order cancelled successfully"}
    assert stock_of(p1.id) == 5
    assert client.get(f"/api/orders/{order['id']}", headers=shopper_headers).json()["status"] == "Cancelled"


def test_insufficient_stock_is_400_and_atomic(client, db, stocked, shopper_headers, stock_of):
    response = place(client, shopper_headers, (stocked["p1"].id, 3), (stocked["p2"].id, 1))

    assert response.status_code == 400
    assert response.json() == {"message": "Insufficient stock for 'P2'"}
    assert stock_of(stocked["p1"].id) == 5
    assert db.query(Order).count() == 0


def test_unknown_product_is_404(client, stocked, shopper_headers):
    response = place(client, shopper_headers, (424242, 1))

    assert response.status_code == 404


def test_invalid_order_reports_fields(client, stocked, shopper_headers):
    response = place(client, shopper_headers, (stocked["p1"].id, 0), address="")

    assert response.status_code == 400
    assert set(response.json()["errors"]) == {"items[0].quantity", "shippingAddress"}


def test_orders_are_private(client, stocked, shopper_headers, other_headers):
    order_id = place(client, shopper_headers, (stocked["p1"].id, 1)).json()["id"]

    assert client.get(f"/api/orders/{order_id}", headers=other_headers).status_code == 404
    assert client.post(f"/api/orders/{order_id}/cancel", headers=other_headers).status_code == 404
    assert client.get("/api/orders", headers=other_headers).json() == []


def test_list_newest_first(client, stocked, shopper_headers):
    first = place(client, shopper_headers, (stocked["p1"].id, 1)).json()["id"]
    second = place(client, shopper_headers, (stocked["p1"].id, 1)).json()["id"]

    orders = client.get("/api/orders", headers=shopper_headers).json()

    assert [o["id"] for o in orders] == [second, first]


def test_status_updates_are_admin_only(client, stocked, shopper_headers, admin_headers):
    order_id = place(client, shopper_headers, (stocked["p1"].id, 1)).json()["id"]
    url = f"/api/orders/{order_id}/status"

    assert client.patch(url, json={"status": "Processing"}, headers=shopper_headers).status_code == 403

    response = client.patch(url, json={"status": "Processing"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "Processing"

    assert client.patch(url, json={"status": "Delivered"}, headers=admin_headers).status_code == 400
    assert client.patch(url, json={"status": "Teleported"}, headers=admin_headers).status_code == 400


def test_shipped_order_cannot_be_cancelled(client, stocked, shopper_headers, admin_headers, stock_of):
    order_id = place(client, shopper_headers, (stocked["p1"].id, 2)).json()["id"]
    for step in ("Processing", "Shipped"):
        client.patch(f"/api/orders/{order_id}/status", json={"status": step}, headers=admin_headers)

    response = client.post(f"/api/orders/{order_id}/cancel", headers=shopper_headers)

    assert response.status_code == 400
    assert response.json() == {"message": "Only pending or processing orders can be cancelled"}
    assert stock_of(stocked["p1"].id) == 3


def test_out_of_range_product_id_in_order_is_400(client, db, stocked, shopper_headers):
    response = place(client, shopper_headers, (2**63, 1))

    assert response.status_code == 400
    assert "items.0.productId" in response.json()["errors"]
    assert db.query(Order).count() == 0


def test_out_of_range_order_id_is_400(client, shopper_headers):
    response = client.get(f"/api/orders/{2**63}", headers=shopper_headers)

    assert response.status_code == 400
    assert "order_id" in response.json()["errors"]
