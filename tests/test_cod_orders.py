import pytest


def order_body(product_id, **overrides):
    body = {
        "user_id": "u1",
        "product_id": product_id,
        "user_name": "Asha",
        "product_name": "Mixer Grinder",
        "product_total_price": 1000,
        "user_address": "12 MG Road, Pune",
        "user_location": {"lat": 18.52, "lng": 73.85},
    }
    body.update(overrides)
    return body


def test_order_at_minimum_is_accepted(client, make_product, notifications):
    product = make_product()

    response = client.post("/cod-orders/create", json=order_body(product.id))

    assert response.status_code == 200
    order = response.json()["cod_order"]
    assert order["status"] == "pending"
    assert order["quantity"] == 1
    assert order["user_location"] == {"lat": 18.52, "lng": 73.85}
    assert notifications.events == [("cod_order.created", order["id"])]


def test_order_below_minimum_is_rejected(client, make_product, notifications):
    product = make_product()

    response = client.post("/cod-orders/create", json=order_body(product.id, product_total_price=999))

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "COD is only available for orders above ₹1000"}
    assert notifications.events == []


@pytest.mark.parametrize("missing", ["user_id", "product_id", "user_name", "product_name", "user_address"])
def test_required_fields(client, make_product, missing):
    product = make_product()
    body = order_body(product.id)
    del body[missing]

    response = client.post("/cod-orders/create", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields"


def test_unknown_product_is_not_found(client):
    assert client.post("/cod-orders/create", json=order_body(4242)).status_code == 404


def test_list_orders_newest_first_with_pagination(client, make_product):
    product = make_product(name="Mixer Grinder")
    ids = [
        client.post("/cod-orders/create", json=order_body(product.id, product_total_price=1000 + i)).json()["cod_order"]["id"]
        for i in range(3)
    ]

    body = client.get("/cod-orders/all", params={"page": 1, "limit": 2}).json()

    assert [o["id"] for o in body["cod_orders"]] == [ids[2], ids[1]]
    assert body["cod_orders"][0]["product"]["name"] == "Mixer Grinder"
    assert body["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}


def test_update_status(client, make_product, notifications):
    product = make_product()
    order_id = client.post("/cod-orders/create", json=order_body(product.id)).json()["cod_order"]["id"]

    response = client.put(f"/cod-orders/status/{order_id}", json={"status": "shipped"})

    assert response.status_code == 200
    assert response.json()["cod_order"]["status"] == "shipped"
    assert notifications.events[-1] == ("cod_order.status_changed", order_id, "shipped")

    assert client.put(f"/cod-orders/status/{order_id}", json={"status": "lost"}).status_code == 400
    assert client.put("/cod-orders/status/999", json={"status": "shipped"}).status_code == 404


def test_user_orders(client, make_product):
    product = make_product()
    client.post("/cod-orders/create", json=order_body(product.id, user_id="u1"))
    client.post("/cod-orders/create", json=order_body(product.id, user_id="u2"))

    orders = client.get("/cod-orders/user/u1").json()["cod_orders"]

    assert [o["user_id"] for o in orders] == ["u1"]
