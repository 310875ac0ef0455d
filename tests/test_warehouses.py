import pytest

from models import DeliveryZone, ProductWarehouseStock, WarehouseZone


@pytest.fixture
def zones(db):
    delhi = DeliveryZone(name="DelhiZone")
    mumbai = DeliveryZone(name="MumbaiZone")
    chennai = DeliveryZone(name="ChennaiZone")
    db.add_all([delhi, mumbai, chennai])
    db.commit()
    return [delhi.id, mumbai.id, chennai.id]


def create(client, **body):
    return client.post("/warehouse", json=body)


def test_create_central_warehouse(client):
    response = create(client, name="Central Hub", type="central", pincode="110001")

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["hierarchy_level"] == 0
    assert data["location"] == "110001"
    assert data["pincode"] == "110001"
    assert data["zones"] == []


def test_create_zonal_warehouse_with_parent_and_zones(client, zones):
    central_id = create(client, name="Central Hub", type="central").json()["data"]["id"]

    response = create(client, name="Delhi WH", type="zonal", zone_ids=zones[:2], parent_warehouse_id=central_id)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["hierarchy_level"] == 1
    assert data["parent_warehouse_id"] == central_id
    assert sorted(z["id"] for z in data["zones"]) == sorted(zones[:2])


@pytest.mark.parametrize("body, error", [
    ({"type": "central"}, "Name and valid type (central/zonal) are required"),
    ({"name": "X", "type": "regional"}, "Name and valid type (central/zonal) are required"),
    ({"name": "X", "type": "zonal", "zone_ids": []}, "Zonal warehouses must be mapped to at least one zone"),
    ({"name": "X", "type": "zonal"}, "Zonal warehouses must be mapped to at least one zone"),
    ({"name": "X", "type": "zonal", "zone_ids": [9999]}, "Unknown zone ids: 9999"),
])
def test_create_validation(client, body, error):
    response = create(client, **body)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": error}


def test_zonal_parent_must_be_central(client, zones):
    zonal_id = create(client, name="Delhi WH", type="zonal", zone_ids=[zones[0]]).json()["data"]["id"]

    response = create(client, name="Sub WH", type="zonal", zone_ids=[zones[1]], parent_warehouse_id=zonal_id)

    assert response.status_code == 400
    assert response.json()["error"] == "Zonal warehouses can only be children of central warehouses"


def test_central_warehouse_cannot_have_parent(client):
    central_id = create(client, name="Central Hub", type="central").json()["data"]["id"]

    response = create(client, name="Second Hub", type="central", parent_warehouse_id=central_id)

    assert response.status_code == 400


def test_missing_parent_is_rejected(client, zones):
    response = create(client, name="Delhi WH", type="zonal", zone_ids=[zones[0]], parent_warehouse_id=4242)

    assert response.status_code == 400
    assert response.json()["error"] == "Parent warehouse not found"


def test_update_checks_existing_parent_against_new_type(client, zones):
    central_id = create(client, name="Central Hub", type="central").json()["data"]["id"]
    zonal_id = create(client, name="Delhi WH", type="zonal", zone_ids=[zones[0]]).json()["data"]["id"]
    child_id = create(
        client, name="Child", type="zonal", zone_ids=[zones[1]], parent_warehouse_id=central_id
    ).json()["data"]["id"]

    # Re-parenting the child onto a zonal warehouse is rejected
    response = client.put(f"/warehouse/{child_id}", json={
        "name": "Child", "type": "zonal", "zone_ids": [zones[1]], "parent_warehouse_id": zonal_id
    })
    assert response.status_code == 400

    # The central parent cannot become zonal while it has children
    response = client.put(f"/warehouse/{central_id}", json={
        "name": "Central Hub", "type": "zonal", "zone_ids": [zones[0]]
    })
    assert response.status_code == 400


def test_update_syncs_zone_mappings(client, db, zones):
    warehouse_id = create(client, name="Delhi WH", type="zonal", zone_ids=zones[:2]).json()["data"]["id"]

    response = client.put(f"/warehouse/{warehouse_id}", json={
        "name": "Delhi WH", "type": "zonal", "zone_ids": [zones[1], zones[2]], "contact_person": "Asha"
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert sorted(z["id"] for z in data["zones"]) == sorted(zones[1:])
    assert data["contact_person"] == "Asha"
    mapped = {link.zone_id for link in db.query(WarehouseZone).filter(WarehouseZone.warehouse_id == warehouse_id)}
    assert mapped == set(zones[1:])


def test_update_missing_warehouse_is_not_found(client):
    response = client.put("/warehouse/999", json={"name": "X", "type": "central"})

    assert response.status_code == 404


def test_list_filters_by_type(client, zones):
    create(client, name="Central Hub", type="central")
    create(client, name="Delhi WH", type="zonal", zone_ids=[zones[0]])

    everything = client.get("/warehouse").json()["data"]
    zonal = client.get("/warehouse", params={"type": "zonal"}).json()["data"]

    assert len(everything) == 2
    assert [w["name"] for w in zonal] == ["Delhi WH"]
    assert zonal[0]["zones"][0]["name"] == "DelhiZone"


def test_hierarchy_groups_by_level(client, zones):
    central_id = create(client, name="Central Hub", type="central").json()["data"]["id"]
    create(client, name="Delhi WH", type="zonal", zone_ids=[zones[0]], parent_warehouse_id=central_id)

    body = client.get("/warehouse/hierarchy").json()

    assert body["levels"] == [0, 1]
    assert [w["name"] for w in body["data"]] == ["Central Hub", "Delhi WH"]
    assert body["grouped"]["1"][0]["parent_name"] == "Central Hub"

    children = client.get(f"/warehouse/{central_id}/children").json()["data"]
    assert [w["name"] for w in children] == ["Delhi WH"]


def test_delete_rules(client, make_product, zones):
    central_id = create(client, name="Central Hub", type="central").json()["data"]["id"]
    zonal_id = create(
        client, name="Delhi WH", type="zonal", zone_ids=[zones[0]], parent_warehouse_id=central_id
    ).json()["data"]["id"]
    product = make_product()
    client.post(f"/warehouse/{zonal_id}/products", json={"product_id": product.id, "stock_quantity": 5})

    assert client.delete(f"/warehouse/{central_id}").json()["error"] == "Cannot delete warehouse with child warehouses"
    assert client.delete(f"/warehouse/{zonal_id}").json()["error"] == (
        "Cannot delete warehouse with existing stock records"
    )

    client.delete(f"/warehouse/{zonal_id}/products/{product.id}")
    assert client.delete(f"/warehouse/{zonal_id}").status_code == 200
    assert client.get(f"/warehouse/{zonal_id}").status_code == 404
    assert client.delete(f"/warehouse/{central_id}").status_code == 200


def test_warehouse_product_stock(client, db, make_product):
    warehouse_id = create(client, name="Central Hub", type="central").json()["data"]["id"]
    product = make_product(name="Mixer Grinder")

    added = client.post(f"/warehouse/{warehouse_id}/products", json={"product_id": product.id, "stock_quantity": 8})
    assert added.status_code == 201
    assert added.json()["data"]["minimum_threshold"] == 10
    assert added.json()["data"]["is_low_stock"] is True

    duplicate = client.post(f"/warehouse/{warehouse_id}/products", json={"product_id": product.id, "stock_quantity": 1})
    assert duplicate.status_code == 400

    stock = db.query(ProductWarehouseStock).one()
    stock.reserved_quantity = 3
    db.commit()

    too_low = client.put(f"/warehouse/{warehouse_id}/products/{product.id}", json={"stock_quantity": 2})
    assert too_low.status_code == 400
    assert too_low.json()["error"] == "Stock quantity cannot be lower than reserved quantity (3)"

    updated = client.put(f"/warehouse/{warehouse_id}/products/{product.id}", json={"stock_quantity": 20})
    assert updated.status_code == 200
    assert updated.json()["data"]["available_quantity"] == 17
    assert updated.json()["data"]["is_low_stock"] is False

    listing = client.get(f"/warehouse/{warehouse_id}/products").json()
    assert listing["warehouse"]["name"] == "Central Hub"
    assert listing["data"][0]["product_name"] == "Mixer Grinder"

    assert client.delete(f"/warehouse/{warehouse_id}/products/{product.id}").status_code == 200
    assert client.delete(f"/warehouse/{warehouse_id}/products/{product.id}").status_code == 404


def test_warehouse_product_requires_fields(client):
    warehouse_id = create(client, name="Central Hub", type="central").json()["data"]["id"]

    response = client.post(f"/warehouse/{warehouse_id}/products", json={"stock_quantity": 3})

    assert response.status_code == 400
    assert response.json()["error"] == "Product ID and stock quantity are required"


def test_demoting_to_central_drops_zone_mappings(client, db, zones):
    warehouse_id = create(client, name="Delhi WH", type="zonal", zone_ids=[zones[0]]).json()["data"]["id"]

    response = client.put(f"/warehouse/{warehouse_id}", json={"name": "Delhi WH", "type": "central"})

    assert response.status_code == 200
    assert response.json()["data"]["zones"] == []
    assert db.query(WarehouseZone).filter(WarehouseZone.warehouse_id == warehouse_id).count() == 0
    assert client.delete(f"/zones/{zones[0]}").status_code == 200
