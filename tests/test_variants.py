from models import Product


def add_variant(client, product_id, **body):
    return client.post(f"/variants/product/{product_id}", json=body)


def test_add_and_list_variants_by_price(client, make_product):
    product = make_product()

    assert add_variant(client, product.id, variant_name="1kg", variant_price=120).status_code == 201
    assert add_variant(client, product.id, variant_name="500g", variant_price=65).status_code == 201

    variants = client.get(f"/variants/product/{product.id}").json()["variants"]
    assert [v["variant_name"] for v in variants] == ["500g", "1kg"]


def test_add_variant_validation(client, make_product):
    product = make_product()

    missing = add_variant(client, product.id, variant_name="1kg")
    assert missing.status_code == 400
    assert missing.json()["error"] == "variant_name and variant_price are required"

    unknown = add_variant(client, 9999, variant_name="1kg", variant_price=10)
    assert unknown.status_code == 404


def test_variant_update_never_touches_product_pricing(client, db, make_product):
    product = make_product(price=200.0, old_price=250.0, discount=20)
    product_id = product.id
    variant_id = add_variant(client, product_id, variant_name="1kg", variant_price=120).json()["variant"]["id"]

    response = client.put(f"/variants/{variant_id}", json={
        "variant_price": 110,
        "price": 1,
        "old_price": 2,
        "discount": 3,
        "product_id": 9999,
    })

    assert response.status_code == 200
    variant = response.json()["variant"]
    assert variant["variant_price"] == 110
    assert variant["product_id"] == product_id
    db.expire_all()
    stored = db.get(Product, product_id)
    assert (stored.price, stored.old_price, stored.discount) == (200.0, 250.0, 20)


def test_variant_update_rejects_unknown_fields(client, make_product):
    product = make_product()
    variant_id = add_variant(client, product.id, variant_name="1kg", variant_price=120).json()["variant"]["id"]

    response = client.put(f"/variants/{variant_id}", json={"colour": "red"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_update_and_delete_missing_variant(client):
    assert client.put("/variants/999", json={"variant_price": 1}).status_code == 404
    assert client.delete("/variants/999").json() == {"success": False, "error": "Variant not found"}


def test_delete_variant(client, make_product):
    product = make_product()
    variant_id = add_variant(client, product.id, variant_name="1kg", variant_price=120).json()["variant"]["id"]

    assert client.delete(f"/variants/{variant_id}").status_code == 200
    assert client.get(f"/variants/product/{product.id}").json()["variants"] == []


def test_products_with_variants(client, make_product):
    product = make_product(name="Rice")
    add_variant(client, product.id, variant_name="1kg", variant_price=120)

    products = client.get("/variants/products").json()["products"]

    assert products[0]["name"] == "Rice"
    assert [v["variant_name"] for v in products[0]["product_variants"]] == ["1kg"]
