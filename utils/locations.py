"""
Helpers for structured location strings of the form ``AREA-ROW-BAY-LEVEL-POS``.
"""

from dataclasses import dataclass

PART_NAMES = ("area", "row", "bay", "level", "pos")


@dataclass(frozen=True)
class LocationParts:
    area: str = ""
    row: str = ""
    bay: str = ""
    level: str = ""
    pos: str = ""

    def is_complete(self) -> bool:
        return all(getattr(self, name) for name in PART_NAMES)

    def with_placeholder(self, placeholder: str) -> "LocationParts":
        """Fill every missing part with ``placeholder``."""
        return LocationParts(**{name: getattr(self, name) or placeholder for name in PART_NAMES})


def parse_location_string(location: str) -> LocationParts:
    """Split a location string into its parts; missing parts are empty strings."""
    parts = location.strip().split("-")
    values = {name: (parts[i].strip() if i < len(parts) else "") for i, name in enumerate(PART_NAMES)}
    return LocationParts(**values)


def build_location_string(parts: LocationParts) -> str:
    """Join parts back into a location string, or return "" if any part is missing."""
    if not parts.is_complete():
        return ""
    return "-".join(getattr(parts, name) for name in PART_NAMES)


def location_key(location: str) -> str:
    """Case-insensitive lookup key for a location string."""
    return location.strip().lower()
