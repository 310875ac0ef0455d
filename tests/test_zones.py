from starlette.datastructures import UploadFile

from config import CSV_MAX_UPLOAD_BYTES
from models import DeliveryZone, Warehouse, WarehouseZone, ZonePincode


def upload(client, content, filename="zones.csv", content_type="text/csv"):
    return client.post("/zones/upload", files={"csv_file": (filename, content, content_type)})


def test_upload_creates_zones_and_reports_row_errors(client, db):
    content = (
        b"zone_name,pincode,city,state\n"
        b"DelhiZone,110001,New Delhi,Delhi\n"
        b"DelhiZone,12345,Bad,Row\n"
        b"MumbaiZone,400001,Fort,Maharashtra\n"
    )

    response = upload(client, content)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["summary"]["zones_created"] == 2
    assert body["summary"]["pincodes_inserted"] == 2
    assert body["summary"]["error_rows"] == 1
    assert body["errors"][0]["row"] == 3
    assert body["errors"][0]["error"].startswith("Invalid pincode format")
    assert {z.name for z in db.query(DeliveryZone).all()} == {"DelhiZone", "MumbaiZone"}


def test_upload_into_existing_zone_skips_known_pincodes(client, db):
    upload(client, b"zone_name,pincode\nDelhiZone,110001\n")

    response = upload(client, b"zone_name,pincode\nDelhiZone,110001\nDelhiZone,110002\n")

    summary = response.json()["summary"]
    assert summary["zones_created"] == 0
    assert summary["zones_updated"] == 1
    assert summary["pincodes_inserted"] == 1
    assert summary["duplicates_skipped"] == 1
    assert db.query(ZonePincode).count() == 2


def test_upload_skips_reserved_zone_names(client, db):
    response = upload(client, b"zone_name,pincode\nadmin,110001\nDelhiZone,110002\n")

    body = response.json()
    assert response.status_code == 200
    assert body["zone_errors"] == ["Reserved zone name not allowed: admin"]
    assert [z.name for z in db.query(DeliveryZone).all()] == ["DelhiZone"]


def test_upload_with_no_valid_rows_is_rejected(client, db):
    response = upload(client, b"zone_name,pincode\nDelhiZone,12345\n")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["details"][0]["row"] == 2
    assert db.query(DeliveryZone).count() == 0


def test_upload_rejects_non_csv_file(client):
    response = upload(client, b"hello", filename="notes.txt", content_type="text/plain")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid file type. Only CSV files are allowed."


def test_upload_rejects_empty_file(client):
    response = upload(client, b"")

    assert response.status_code == 400
    assert response.json()["error"] == "File is empty."


def test_sample_csv_download(client):
    response = client.get("/zones/sample-csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    assert response.text.startswith("zone_name,pincode,city,state")


def test_zone_crud(client):
    created = client.post("/zones", json={
        "name": "PuneZone",
        "description": "Pune city",
        "pincodes": [{"pincode": "411001", "city": "Pune", "state": "Maharashtra"}],
    })
    assert created.status_code == 201
    zone_id = created.json()["data"]["id"]
    assert created.json()["data"]["pincodes"][0]["pincode"] == "411001"

    updated = client.put(f"/zones/{zone_id}", json={"description": "Pune metro", "is_active": False})
    assert updated.status_code == 200
    assert updated.json()["data"]["description"] == "Pune metro"
    assert updated.json()["data"]["is_active"] is False

    listed = client.get("/zones").json()["data"]
    assert [z["name"] for z in listed] == ["PuneZone"]
    assert listed[0]["pincode_count"] == 1

    assert client.delete(f"/zones/{zone_id}").status_code == 200
    assert client.get(f"/zones/{zone_id}").status_code == 404


def test_create_zone_validates_name_and_pincodes(client):
    assert client.post("/zones", json={"name": "Admin"}).json()["error"] == "Reserved zone name not allowed: Admin"
    assert client.post("/zones", json={}).json()["error"] == "Zone name is required"

    response = client.post("/zones", json={"name": "GoaZone", "pincodes": [{"pincode": "4030"}]})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid pincode format: 4030. Should be 6 digits."

    client.post("/zones", json={"name": "GoaZone"})
    assert client.post("/zones", json={"name": "GoaZone"}).json()["error"] == "Zone with this name already exists"


def test_zone_mapped_to_warehouse_cannot_be_deleted(client, db):
    zone = DeliveryZone(name="DelhiZone")
    db.add(zone)
    db.flush()
    warehouse = Warehouse(name="Delhi WH", type="zonal", hierarchy_level=1)
    warehouse.zone_links = [WarehouseZone(zone_id=zone.id)]
    db.add(warehouse)
    db.commit()

    response = client.delete(f"/zones/{zone.id}")

    assert response.status_code == 400
    assert response.json()["error"] == "Cannot delete zone mapped to warehouses"


def test_validate_pincode(client, db):
    zone = DeliveryZone(name="DelhiZone")
    zone.pincodes = [ZonePincode(pincode="110001", city="New Delhi", state="Delhi")]
    db.add(zone)
    db.flush()
    warehouse = Warehouse(name="Delhi WH", type="zonal", hierarchy_level=1)
    warehouse.zone_links = [WarehouseZone(zone_id=zone.id)]
    db.add(warehouse)
    db.commit()

    served = client.post("/zones/validate-pincode", json={"pincode": "110001"}).json()["data"]
    assert served["is_deliverable"] is True
    assert served["zones"][0]["name"] == "DelhiZone"
    assert served["warehouses"][0]["name"] == "Delhi WH"

    unserved = client.post("/zones/validate-pincode", json={"pincode": "999999"}).json()["data"]
    assert unserved["is_deliverable"] is False
    assert unserved["warehouses"] == []

    invalid = client.post("/zones/validate-pincode", json={"pincode": "12ab56"})
    assert invalid.status_code == 400


def test_statistics(client):
    upload(client, b"zone_name,pincode\nDelhiZone,110001\nDelhiZone,110002\nMumbaiZone,400001\n")

    stats = client.get("/zones/statistics").json()["data"]

    assert stats["total_zones"] == 2
    assert stats["total_pincodes"] == 3
    assert stats["zones_with_warehouses"] == 0
    assert {z["name"]: z["pincode_count"] for z in stats["zones"]} == {"DelhiZone": 2, "MumbaiZone": 1}


def test_upload_over_size_cap_is_rejected_without_reading_it_all(client, monkeypatch):
    sizes = []
    original_read = UploadFile.read

    async def recording_read(self, size=-1):
        sizes.append(size)
        return await original_read(self, size)

    monkeypatch.setattr(UploadFile, "read", recording_read)

    response = upload(client, b"a" * (CSV_MAX_UPLOAD_BYTES + 1))

    assert response.status_code == 400
    assert response.json()["error"] == "File too large. Maximum size allowed is 10MB."
    assert sizes == [CSV_MAX_UPLOAD_BYTES + 1]
