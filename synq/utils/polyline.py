"""
Polyline encoding utility.
Implements the Encoded Polyline Algorithm Format.
ref: https://developers.google.com/maps/documentation/utilities/polylinealgorithm
"""
from typing import List, Sequence, Tuple

from synq.models.route import Coordinate


def encode_polyline(points: Sequence[Tuple[float, float]], precision: int = 5) -> str:
    """
    Encode a list of (lat, lng) pairs into a polyline string.

    Args:
        points: (latitude, longitude) pairs
        precision: Decimal places kept (5 for Google/GraphHopper, 6 for OSRM polyline6)

    Returns:
        Encoded polyline string.
    """
    factor = 10 ** precision
    result = []
    prev_lat = 0
    prev_lng = 0

    for lat, lng in points:
        lat_e = int(round(lat * factor))
        lng_e = int(round(lng * factor))

        result.append(_encode_value(lat_e - prev_lat))
        result.append(_encode_value(lng_e - prev_lng))

        prev_lat = lat_e
        prev_lng = lng_e

    return "".join(result)


def decode_polyline(encoded: str, precision: int = 5) -> List[Coordinate]:
    """
    Decode a polyline string into coordinates.

    Raises:
        ValueError: If the string is truncated
    """
    factor = 10 ** precision
    coordinates = []
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        d_lat, index = _decode_value(encoded, index)
        d_lng, index = _decode_value(encoded, index)
        lat += d_lat
        lng += d_lng
        coordinates.append(Coordinate(lat / factor, lng / factor))

    return coordinates


def _encode_value(value: int) -> str:
    """Encode a single value."""
    value = value << 1
    if value < 0:
        value = ~value

    result = []
    while value >= 0x20:
        result.append(chr((0x20 | (value & 0x1f)) + 63))
        value >>= 5
    result.append(chr(value + 63))

    return "".join(result)


def _decode_value(encoded: str, index: int) -> Tuple[int, int]:
    shift = 0
    value = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Truncated polyline")
        chunk = ord(encoded[index]) - 63
        index += 1
        value |= (chunk & 0x1f) << shift
        shift += 5
        if chunk < 0x20:
            break
    return (~(value >> 1) if value & 1 else value >> 1), index
