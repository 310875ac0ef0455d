"""Parsing and validation of zone/pincode CSV uploads."""
import csv
import io
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from config import CSV_MAX_UPLOAD_BYTES

REQUIRED_COLUMNS = ("zone_name", "pincode")
ALLOWED_MIME_TYPES = ("text/csv", "application/csv", "application/vnd.ms-excel")
RESERVED_ZONE_NAMES = ("nationwide", "all", "global", "admin", "system")
MAX_ZONE_NAME_LENGTH = 100

PINCODE_PATTERN = re.compile(r"[0-9]{6}")
ZONE_NAME_PATTERN = re.compile(r"[a-zA-Z0-9\s\-_]+")

SAMPLE_ROWS = [
    ["zone_name", "pincode", "city", "state"],
    ["DelhiZone", "110001", "New Delhi", "Delhi"],
    ["DelhiZone", "110002", "Delhi Cantt", "Delhi"],
    ["DelhiZone", "122001", "Gurgaon", "Haryana"],
    ["MumbaiZone", "400001", "Fort Mumbai", "Maharashtra"],
    ["MumbaiZone", "400002", "Kalbadevi", "Maharashtra"],
    ["ChennaiZone", "600001", "Chennai GPO", "Tamil Nadu"],
    ["BangaloreZone", "560001", "Bangalore GPO", "Karnataka"],
]


class CSVParseError(ValueError):
    """The upload could not be read as CSV at all."""


@dataclass
class CSVParseResult:
    """Rows that passed validation, plus one error entry per rejected row."""

    data: List[Dict[str, Optional[str]]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.data) + len(self.errors)

    @property
    def valid_rows(self) -> int:
        return len(self.data)

    @property
    def error_rows(self) -> int:
        return len(self.errors)


def is_valid_pincode(pincode: str) -> bool:
    return PINCODE_PATTERN.fullmatch(pincode or "") is not None


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_csv(content: bytes, required_columns: Sequence[str] = REQUIRED_COLUMNS) -> CSVParseResult:
    """
    Parse a zone/pincode CSV and validate it row by row.

    Invalid rows are collected in ``errors`` instead of aborting the parse.
    Row numbers are 1-based and count the header line, so the first data
    row is row 2.

    Args:
        content: Raw upload bytes (UTF-8, optional BOM)
        required_columns: Columns that must be present and non-blank

    Returns:
        Parse result with cleaned rows and per-row errors

    Raises:
        CSVParseError: If the bytes cannot be decoded or read as CSV
    """
    try:
        text = content.decode("utf-8-sig")
        reader = csv.DictReader(io.StringIO(text), skipinitialspace=True)
        if reader.fieldnames:
            reader.fieldnames = [_clean(name) for name in reader.fieldnames]
        rows = list(reader)
    except (UnicodeDecodeError, csv.Error) as e:
        raise CSVParseError(f"CSV parsing failed: {e}") from e

    result = CSVParseResult()
    for index, raw in enumerate(rows):
        row_number = index + 2
        row = {key: _clean(value) for key, value in raw.items() if key is not None}

        if not any(row.values()):
            continue

        missing = [column for column in required_columns if not row.get(column)]
        if missing:
            result.errors.append({
                "row": row_number,
                "error": f"Missing required columns: {', '.join(missing)}",
                "data": row,
            })
            continue

        pincode = row["pincode"]
        if not is_valid_pincode(pincode):
            result.errors.append({
                "row": row_number,
                "error": f"Invalid pincode format: {pincode}. Should be 6 digits.",
                "data": row,
            })
            continue

        result.data.append({
            "zone_name": row["zone_name"],
            "pincode": pincode,
            "city": row.get("city") or None,
            "state": row.get("state") or None,
        })

    return result


def validate_zone_name(zone_name: str) -> Optional[str]:
    """Return the reason a zone name is rejected, or None if it is acceptable."""
    if len(zone_name) > MAX_ZONE_NAME_LENGTH:
        return f"Zone name too long: {zone_name[:50]}..."
    if not ZONE_NAME_PATTERN.fullmatch(zone_name):
        return f"Invalid characters in zone name: {zone_name}"
    if zone_name.lower() in RESERVED_ZONE_NAMES:
        return f"Reserved zone name not allowed: {zone_name}"
    return None


def validate_zone_names(zone_names: Iterable[str]) -> Dict[str, Any]:
    valid_zones = []
    errors = []
    for zone_name in zone_names:
        error = validate_zone_name(zone_name)
        if error:
            errors.append(error)
        else:
            valid_zones.append(zone_name)

    return {
        "valid_zones": valid_zones,
        "errors": errors,
        "is_valid": not errors,
    }


def group_by_zones(rows: Iterable[Dict[str, Optional[str]]]) -> Dict[str, List[Dict[str, Optional[str]]]]:
    """Group parsed rows by zone name, keeping first-seen order."""
    groups: Dict[str, List[Dict[str, Optional[str]]]] = {}
    for row in rows:
        groups.setdefault(row["zone_name"], []).append({
            "pincode": row["pincode"],
            "city": row["city"],
            "state": row["state"],
        })
    return groups


def validate_file(filename: Optional[str], content_type: Optional[str], size: int) -> List[str]:
    """
    Check an uploaded file before parsing it.

    Returns:
        List of problems; empty when the file is acceptable
    """
    if filename is None:
        return ["No file uploaded"]

    errors = []
    has_valid_mime = content_type in ALLOWED_MIME_TYPES
    has_valid_extension = filename.lower().endswith(".csv")
    if not has_valid_mime and not has_valid_extension:
        errors.append("Invalid file type. Only CSV files are allowed.")

    if size > CSV_MAX_UPLOAD_BYTES:
        errors.append(f"File too large. Maximum size allowed is {CSV_MAX_UPLOAD_BYTES // (1024 * 1024)}MB.")

    if size == 0:
        errors.append("File is empty.")

    return errors


def generate_sample_csv() -> str:
    return "\n".join(",".join(row) for row in SAMPLE_ROWS)
