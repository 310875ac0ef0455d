"""Delivery zones, their pincodes and the CSV import that fills them."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from opentelemetry import trace

from csv_parser import (
    CSVParseError,
    group_by_zones,
    is_valid_pincode,
    parse_csv,
    validate_file,
    validate_zone_name,
    validate_zone_names,
)
from errors import NotFoundError, ValidationError
from models import DeliveryZone, Warehouse, WarehouseZone, ZonePincode
from monitoring import csv_rows_counter
from schemas import ZoneCreate, ZoneUpdate

logger = logging.getLogger(__name__)


def zone_record(zone: DeliveryZone, include_pincodes: bool = False) -> Dict[str, Any]:
    data = {
        "id": zone.id,
        "name": zone.name,
        "description": zone.description,
        "is_active": zone.is_active,
        "created_at": zone.created_at,
        "updated_at": zone.updated_at,
        "pincode_count": len(zone.pincodes),
    }
    if include_pincodes:
        data["pincodes"] = [
            {"id": p.id, "pincode": p.pincode, "city": p.city, "state": p.state, "is_active": p.is_active}
            for p in zone.pincodes
        ]
    return data


class ZoneService:
    """Service for delivery zones and pincode imports."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def _get(self, db: Session, zone_id: int) -> DeliveryZone:
        zone = (
            db.query(DeliveryZone)
            .options(selectinload(DeliveryZone.pincodes))
            .filter(DeliveryZone.id == zone_id)
            .first()
        )
        if not zone:
            raise NotFoundError("Zone not found")
        return zone

    def _check_name(self, db: Session, name: Optional[str], zone_id: Optional[int] = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Zone name is required")
        problem = validate_zone_name(name)
        if problem:
            raise ValidationError(problem)

        query = db.query(DeliveryZone.id).filter(DeliveryZone.name == name)
        if zone_id is not None:
            query = query.filter(DeliveryZone.id != zone_id)
        if query.first():
            raise ValidationError("Zone with this name already exists")
        return name

    def import_csv(
        self,
        db: Session,
        filename: Optional[str],
        content_type: Optional[str],
        content: bytes
    ) -> Dict[str, Any]:
        """
        Import zones and pincodes from an uploaded CSV.

        Invalid rows and invalid zone names are reported and skipped; the
        rest is written in one transaction. Zones are matched by name and
        created when missing. Pincodes already in a zone are skipped.

        Returns:
            ``summary`` counts, per-row ``errors`` and ``zone_errors``

        Raises:
            ValidationError: If the file is rejected, unreadable or has no usable rows
        """
        file_errors = validate_file(filename, content_type, len(content))
        if file_errors:
            raise ValidationError(file_errors[0], details=file_errors)

        try:
            result = parse_csv(content)
        except CSVParseError as e:
            raise ValidationError(str(e)) from e

        csv_rows_counter.add(result.valid_rows, {"outcome": "valid"})
        csv_rows_counter.add(result.error_rows, {"outcome": "invalid"})

        if not result.data:
            raise ValidationError("No valid rows found in CSV", details=result.errors)

        groups = group_by_zones(result.data)
        name_check = validate_zone_names(groups.keys())
        if not name_check["valid_zones"]:
            raise ValidationError("No valid zone names found in CSV", details=name_check["errors"])

        zones_created = 0
        zones_updated = 0
        pincodes_inserted = 0
        duplicates_skipped = 0

        with self.tracer.start_as_current_span("db.query.import_zone_pincodes") as db_span:
            db_span.set_attribute("db.operation", "INSERT")
            db_span.set_attribute("db.table", "zone_pincodes")
            db_span.set_attribute("zones.count", len(name_check["valid_zones"]))

            try:
                for zone_name in name_check["valid_zones"]:
                    zone = db.query(DeliveryZone).filter(DeliveryZone.name == zone_name).first()
                    if zone is None:
                        zone = DeliveryZone(name=zone_name, description=f"Imported from {filename}", is_active=True)
                        db.add(zone)
                        db.flush()
                        zones_created += 1
                        existing = set()
                    else:
                        zones_updated += 1
                        existing = {
                            pincode for (pincode,) in
                            db.query(ZonePincode.pincode).filter(ZonePincode.zone_id == zone.id).all()
                        }

                    for entry in groups[zone_name]:
                        if entry["pincode"] in existing:
                            duplicates_skipped += 1
                            continue
                        existing.add(entry["pincode"])
                        db.add(ZonePincode(
                            zone_id=zone.id,
                            pincode=entry["pincode"],
                            city=entry["city"],
                            state=entry["state"],
                            is_active=True,
                        ))
                        pincodes_inserted += 1

                db.commit()
            except Exception:
                db.rollback()
                raise

            db_span.set_attribute("db.rows_affected", pincodes_inserted)

        summary = {
            "total_rows": result.total_rows,
            "valid_rows": result.valid_rows,
            "error_rows": result.error_rows,
            "zones_processed": len(name_check["valid_zones"]),
            "zones_created": zones_created,
            "zones_updated": zones_updated,
            "pincodes_inserted": pincodes_inserted,
            "duplicates_skipped": duplicates_skipped,
        }
        logger.info("Imported zone pincodes from CSV", extra={"file_name": filename, **summary})

        return {
            "summary": summary,
            "errors": result.errors,
            "zone_errors": name_check["errors"],
        }

    def list_zones(self, db: Session, is_active: Optional[bool] = None) -> List[Dict[str, Any]]:
        query = db.query(DeliveryZone).options(selectinload(DeliveryZone.pincodes))
        if is_active is not None:
            query = query.filter(DeliveryZone.is_active.is_(is_active))
        return [zone_record(z) for z in query.order_by(DeliveryZone.name).all()]

    def get_zone(self, db: Session, zone_id: int) -> Dict[str, Any]:
        zone = self._get(db, zone_id)
        data = zone_record(zone, include_pincodes=True)
        warehouses = (
            db.query(Warehouse)
            .join(WarehouseZone, WarehouseZone.warehouse_id == Warehouse.id)
            .filter(WarehouseZone.zone_id == zone_id, WarehouseZone.is_active.is_(True))
            .order_by(Warehouse.name)
            .all()
        )
        data["warehouses"] = [{"id": w.id, "name": w.name, "type": w.type} for w in warehouses]
        return data

    def create_zone(self, db: Session, request: ZoneCreate) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: On a bad or duplicate name, or a malformed pincode
        """
        name = self._check_name(db, request.name)

        pincodes = {}
        for entry in request.pincodes:
            pincode = entry.pincode.strip()
            if not is_valid_pincode(pincode):
                raise ValidationError(f"Invalid pincode format: {pincode}. Should be 6 digits.")
            pincodes.setdefault(pincode, entry)

        zone = DeliveryZone(name=name, description=request.description, is_active=True)
        zone.pincodes = [
            ZonePincode(pincode=pincode, city=entry.city, state=entry.state, is_active=True)
            for pincode, entry in pincodes.items()
        ]
        try:
            db.add(zone)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Created delivery zone", extra={"zone_id": zone.id, "pincodes": len(pincodes)})
        return self.get_zone(db, zone.id)

    def update_zone(self, db: Session, zone_id: int, request: ZoneUpdate) -> Dict[str, Any]:
        zone = self._get(db, zone_id)

        if request.name is not None:
            zone.name = self._check_name(db, request.name, zone_id=zone_id)
        if request.description is not None:
            zone.description = request.description
        if request.is_active is not None:
            zone.is_active = request.is_active
        zone.updated_at = datetime.utcnow()

        db.commit()
        return self.get_zone(db, zone_id)

    def delete_zone(self, db: Session, zone_id: int) -> None:
        """
        Delete a zone with its pincodes.

        Raises:
            NotFoundError: If the zone does not exist
            ValidationError: If a warehouse is still mapped to it
        """
        zone = self._get(db, zone_id)

        mapped = db.query(WarehouseZone.id).filter(WarehouseZone.zone_id == zone_id).first()
        if mapped:
            raise ValidationError("Cannot delete zone mapped to warehouses")

        try:
            db.delete(zone)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Deleted delivery zone", extra={"zone_id": zone_id})

    def get_statistics(self, db: Session) -> Dict[str, Any]:
        total_zones = db.query(func.count(DeliveryZone.id)).scalar() or 0
        active_zones = db.query(func.count(DeliveryZone.id)).filter(DeliveryZone.is_active.is_(True)).scalar() or 0
        total_pincodes = db.query(func.count(ZonePincode.id)).scalar() or 0
        unique_pincodes = db.query(func.count(func.distinct(ZonePincode.pincode))).scalar() or 0
        mapped_zones = db.query(func.count(func.distinct(WarehouseZone.zone_id))).filter(
            WarehouseZone.is_active.is_(True)
        ).scalar() or 0

        pincode_counts = dict(
            db.query(ZonePincode.zone_id, func.count(ZonePincode.id)).group_by(ZonePincode.zone_id).all()
        )
        zones = db.query(DeliveryZone).order_by(DeliveryZone.name).all()

        return {
            "total_zones": total_zones,
            "active_zones": active_zones,
            "total_pincodes": total_pincodes,
            "unique_pincodes": unique_pincodes,
            "zones_with_warehouses": mapped_zones,
            "zones": [
                {"id": z.id, "name": z.name, "is_active": z.is_active, "pincode_count": pincode_counts.get(z.id, 0)}
                for z in zones
            ],
        }

    def validate_pincode(self, db: Session, pincode: Optional[str]) -> Dict[str, Any]:
        """
        Check whether a pincode is served by an active zone.

        Returns:
            ``is_deliverable`` plus the zones and warehouses that serve the pincode

        Raises:
            ValidationError: If the pincode is not 6 digits
        """
        pincode = (pincode or "").strip()
        if not is_valid_pincode(pincode):
            raise ValidationError("Invalid pincode format. Should be 6 digits.")

        with self.tracer.start_as_current_span("db.query.validate_pincode") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "zone_pincodes")

            matches = (
                db.query(ZonePincode, DeliveryZone)
                .join(DeliveryZone, DeliveryZone.id == ZonePincode.zone_id)
                .filter(
                    ZonePincode.pincode == pincode,
                    ZonePincode.is_active.is_(True),
                    DeliveryZone.is_active.is_(True)
                )
                .order_by(DeliveryZone.name)
                .all()
            )
            zone_ids = [zone.id for _, zone in matches]

            warehouses = []
            if zone_ids:
                warehouses = (
                    db.query(Warehouse)
                    .join(WarehouseZone, WarehouseZone.warehouse_id == Warehouse.id)
                    .filter(
                        WarehouseZone.zone_id.in_(zone_ids),
                        WarehouseZone.is_active.is_(True),
                        Warehouse.is_active.is_(True)
                    )
                    .distinct()
                    .order_by(Warehouse.name)
                    .all()
                )

            db_span.set_attribute("db.rows_returned", len(matches))

        return {
            "pincode": pincode,
            "is_deliverable": bool(matches),
            "zones": [
                {"id": zone.id, "name": zone.name, "city": entry.city, "state": entry.state}
                for entry, zone in matches
            ],
            "warehouses": [{"id": w.id, "name": w.name, "type": w.type} for w in warehouses],
        }
