import pytest

from csv_parser import (
    CSVParseError,
    generate_sample_csv,
    group_by_zones,
    parse_csv,
    validate_file,
    validate_zone_names,
)


def test_valid_rows_are_kept_and_grouped_by_zone():
    content = (
        b"zone_name,pincode,city,state\n"
        b"DelhiZone,110001,New Delhi,Delhi\n"
        b"DelhiZone,110002,,\n"
        b"MumbaiZone,400001,Fort,Maharashtra\n"
    )

    result = parse_csv(content)

    assert result.errors == []
    assert result.valid_rows == 3
    groups = group_by_zones(result.data)
    assert list(groups) == ["DelhiZone", "MumbaiZone"]
    assert groups["DelhiZone"] == [
        {"pincode": "110001", "city": "New Delhi", "state": "Delhi"},
        {"pincode": "110002", "city": None, "state": None},
    ]


def test_five_digit_pincode_is_rejected_with_row_number():
    content = b"zone_name,pincode\nDelhiZone,110001\nDelhiZone,12345\n"

    result = parse_csv(content)

    assert [row["pincode"] for row in result.data] == ["110001"]
    assert result.errors == [{
        "row": 3,
        "error": "Invalid pincode format: 12345. Should be 6 digits.",
        "data": {"zone_name": "DelhiZone", "pincode": "12345"},
    }]
    assert (result.total_rows, result.valid_rows, result.error_rows) == (2, 1, 1)


def test_missing_required_value_is_reported():
    result = parse_csv(b"zone_name,pincode\n,110001\n")

    assert result.data == []
    assert result.errors[0]["row"] == 2
    assert result.errors[0]["error"] == "Missing required columns: zone_name"


def test_cells_and_headers_are_trimmed_and_blank_lines_skipped():
    content = b"\xef\xbb\xbf zone_name , pincode \n  DelhiZone ,  110001 \n\n , \n"

    result = parse_csv(content)

    assert result.errors == []
    assert result.data == [{"zone_name": "DelhiZone", "pincode": "110001", "city": None, "state": None}]


def test_undecodable_content_raises():
    with pytest.raises(CSVParseError, match="CSV parsing failed"):
        parse_csv(b"\xff\xfe\x00zone")


@pytest.mark.parametrize("name", ["admin", "ADMIN", "Nationwide", "all", "Global", "system"])
def test_reserved_zone_names_are_rejected(name):
    check = validate_zone_names([name])

    assert check["is_valid"] is False
    assert check["valid_zones"] == []
    assert "Reserved" in check["errors"][0]


def test_zone_name_length_limit():
    check = validate_zone_names(["a" * 100, "b" * 101])

    assert check["valid_zones"] == ["a" * 100]
    assert check["errors"][0].startswith("Zone name too long")


def test_zone_name_characters():
    check = validate_zone_names(["North-East_Zone 2", "Zone@Delhi"])

    assert check["valid_zones"] == ["North-East_Zone 2"]
    assert check["errors"] == ["Invalid characters in zone name: Zone@Delhi"]


def test_file_validation():
    assert validate_file("zones.csv", "text/csv", 10) == []
    assert validate_file("zones.txt", "application/vnd.ms-excel", 10) == []
    assert validate_file("zones.CSV", "application/octet-stream", 10) == []
    assert validate_file("zones.txt", "text/plain", 10) == ["Invalid file type. Only CSV files are allowed."]
    assert validate_file("zones.csv", "text/csv", 0) == ["File is empty."]
    assert validate_file("zones.csv", "text/csv", 10 * 1024 * 1024 + 1)[0].startswith("File too large")
    assert validate_file(None, None, 0) == ["No file uploaded"]


def test_sample_csv_parses_cleanly():
    result = parse_csv(generate_sample_csv().encode())

    assert result.errors == []
    assert result.valid_rows == 7
