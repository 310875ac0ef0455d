"""Delivery zones API router."""
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional

from config import CSV_MAX_UPLOAD_BYTES
from csv_parser import generate_sample_csv
from database import get_db
from dependencies import get_zone_service
from schemas import PincodeCheckRequest, ZoneCreate, ZoneUpdate
from services.zone_service import ZoneService

router = APIRouter(prefix="/zones", tags=["zones"])


@router.post("/upload")
async def upload_zone_pincodes(
    csv_file: UploadFile = File(...),
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    """
    Import zones and pincodes from a CSV file.

    Columns: ``zone_name``, ``pincode`` (required), ``city``, ``state``.
    Invalid rows are reported with their 1-based line number and skipped.
    """
    # One byte past the cap is enough to reject an oversize file
    content = await csv_file.read(CSV_MAX_UPLOAD_BYTES + 1)
    result = zone_service.import_csv(db, csv_file.filename, csv_file.content_type, content)
    summary = result["summary"]
    return {
        "success": True,
        "message": (
            f"Imported {summary['pincodes_inserted']} pincodes into "
            f"{summary['zones_processed']} zones"
        ),
        **result
    }


@router.get("/sample-csv")
async def download_sample_csv():
    return Response(
        content=generate_sample_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="zone_pincodes_sample.csv"'}
    )


@router.get("/statistics")
async def get_zone_statistics(
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    return {"success": True, "data": zone_service.get_statistics(db)}


@router.post("/validate-pincode")
async def validate_pincode(
    request: PincodeCheckRequest,
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    """Check whether a pincode can be delivered to, and from which warehouses."""
    return {"success": True, "data": zone_service.validate_pincode(db, request.pincode)}


@router.get("")
async def list_zones(
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    return {"success": True, "data": zone_service.list_zones(db, is_active=is_active)}


@router.post("", status_code=201)
async def create_zone(
    request: ZoneCreate,
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    zone = zone_service.create_zone(db, request)
    return {"success": True, "data": zone, "message": "Zone created successfully"}


@router.get("/{zone_id}")
async def get_zone(
    zone_id: int,
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    return {"success": True, "data": zone_service.get_zone(db, zone_id)}


@router.put("/{zone_id}")
async def update_zone(
    zone_id: int,
    request: ZoneUpdate,
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    zone = zone_service.update_zone(db, zone_id, request)
    return {"success": True, "data": zone, "message": "Zone updated successfully"}


@router.delete("/{zone_id}")
async def delete_zone(
    zone_id: int,
    db: Session = Depends(get_db),
    zone_service: ZoneService = Depends(get_zone_service)
):
    zone_service.delete_zone(db, zone_id)
    return {"success": True, "message": "Zone deleted successfully"}
