from models import Category


def test_quick_picks_ranks_sellers_then_backfills_newest(client, make_product, record_sales):
    products = [make_product(name=f"P{i}") for i in range(1, 8)]
    ids = [p.id for p in products]
    # P2 outsells P5; P7 is the newest product
    record_sales((ids[4], 3), (ids[1], 2))
    record_sales((ids[1], 4))

    response = client.get("/products/quick-picks", params={"limit": 5})

    assert response.status_code == 200
    picked = [p["id"] for p in response.json()["products"]]
    assert picked == [ids[1], ids[4], ids[6], ids[5], ids[3]]
    assert len(set(picked)) == 5


def test_quick_picks_skips_inactive_best_sellers(client, make_product, record_sales):
    retired = make_product(active=False)
    live = make_product()
    retired_id, live_id = retired.id, live.id
    record_sales((retired_id, 10), (live_id, 1))

    picked = [p["id"] for p in client.get("/products/quick-picks", params={"limit": 3}).json()["products"]]

    assert picked == [live_id]


def test_quick_picks_breaks_sales_ties_by_product_id(client, make_product, record_sales):
    first, second = make_product(), make_product()
    first_id, second_id = first.id, second.id
    record_sales((second_id, 2), (first_id, 2))

    picked = [p["id"] for p in client.get("/products/quick-picks", params={"limit": 2}).json()["products"]]

    assert picked == [first_id, second_id]


def test_product_display_defaults(client, make_product):
    product = make_product(name="Speaker")

    response = client.get(f"/products/{product.id}")

    assert response.status_code == 200
    data = response.json()["product"]
    assert data["rating"] == 4.0
    assert data["review_count"] == 0
    assert data["discount"] == 0
    assert data["category_info"] is None


def test_missing_or_inactive_product_is_not_found(client, make_product):
    inactive = make_product(active=False)

    assert client.get(f"/products/{inactive.id}").status_code == 404
    response = client.get("/products/9999")
    assert response.json() == {"success": False, "error": "Product not found"}


def test_all_products_excludes_inactive(client, make_product):
    make_product(name="Visible")
    make_product(name="Hidden", active=False)

    names = [p["name"] for p in client.get("/products/allproducts").json()["products"]]

    assert names == ["Visible"]


def test_filter_products(client, make_product):
    make_product(name="Basmati Rice", price=650.0, category="Groceries", featured=True)
    make_product(name="Toor Dal", price=190.0, category="Groceries")
    make_product(name="Speaker", price=1500.0, category="Electronics", featured=True)

    body = client.get("/products/filter", params={"category": "Groceries", "minPrice": 100, "maxPrice": 500}).json()
    assert [p["name"] for p in body["products"]] == ["Toor Dal"]
    assert body["pagination"] == {"total": 1, "page": 1, "limit": 20, "totalPages": 1}

    featured = client.get("/products/filter", params={"featured": "true", "limit": 1, "page": 2}).json()
    assert [p["name"] for p in featured["products"]] == ["Speaker"]
    assert featured["pagination"]["totalPages"] == 2

    searched = client.get("/products/filter", params={"search": "rice"}).json()
    assert [p["name"] for p in searched["products"]] == ["Basmati Rice"]


def test_categories_fall_back_to_product_categories(client, db, make_product):
    make_product(category="Groceries")
    make_product(category="Electronics")

    names = [c["name"] for c in client.get("/products/categories").json()["categories"]]
    assert names == ["Electronics", "Groceries"]

    db.add(Category(name="Home", active=True))
    db.commit()
    names = [c["name"] for c in client.get("/products/categories").json()["categories"]]
    assert names == ["Home"]


def test_listing_by_category_subcategory_and_group(client, make_product):
    make_product(name="A", category="Groceries", subcategory_id=3, group_id=7)
    make_product(name="B", category="Electronics", subcategory_id=4, group_id=7)

    assert [p["name"] for p in client.get("/products/category/Groceries").json()["products"]] == ["A"]
    assert [p["name"] for p in client.get("/products/subcategory/4").json()["products"]] == ["B"]
    assert [p["name"] for p in client.get("/products/group/7").json()["products"]] == ["A", "B"]


def test_featured_products(client, make_product):
    make_product(name="Star", featured=True)
    make_product(name="Plain")

    assert [p["name"] for p in client.get("/products/featured").json()["products"]] == ["Star"]
