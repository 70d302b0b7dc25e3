from utils.locations import LocationParts, build_location_string, location_key, parse_location_string


def test_parse_full_location_string():
    parts = parse_location_string("A-01-02-03-04")

    assert parts == LocationParts(area="A", row="01", bay="02", level="03", pos="04")
    assert parts.is_complete()


def test_parse_partial_location_leaves_missing_parts_empty():
    parts = parse_location_string("Dock")

    assert parts.area == "Dock"
    assert parts.row == ""
    assert not parts.is_complete()


def test_with_placeholder_fills_only_missing_parts():
    parts = parse_location_string("B-7").with_placeholder("N/A")

    assert (parts.area, parts.row, parts.bay, parts.level, parts.pos) == ("B", "7", "N/A", "N/A", "N/A")


def test_build_location_string_round_trip():
    assert build_location_string(parse_location_string("A-01-02-03-04")) == "A-01-02-03-04"


def test_build_incomplete_location_returns_empty():
    assert build_location_string(LocationParts(area="A")) == ""


def test_location_key_is_case_insensitive():
    assert location_key(" A-01-02-03-04 ") == location_key("a-01-02-03-04")
