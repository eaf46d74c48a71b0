"""
Flexible polyline codec (the compact geometry encoding returned by HERE Routing v8).

Stream layout:
    header            unsigned varint: bits 0-3 precision, bits 4-6 third dimension type
    [3rd precision]   unsigned varint, only when the third dimension type is not ABSENT
    points            per point: signed lat delta, signed lng delta[, signed 3rd delta]

Every value is split into 5-bit chunks, least significant first; bit 0x20 of a
chunk means "more chunks follow". Each 6-bit chunk is written as one character
of a URL-safe base64 alphabet. Signed deltas are zig-zag encoded first.
"""
import math
from enum import IntEnum
from typing import Iterable, List, NamedTuple, Sequence, Tuple, Union

from .models import Point

ENCODING_TABLE = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
DECODING_TABLE = {ch: i for i, ch in enumerate(ENCODING_TABLE)}

DEFAULT_PRECISION = 5
MAX_PRECISION = 15
# 13 chunks; a longer varint is garbage, not a coordinate
MAX_VALUE_BITS = 65


class ThirdDimension(IntEnum):
    ABSENT = 0
    LEVEL = 1
    ALTITUDE = 2
    ELEVATION = 3
    # 4 and 5 are reserved by the format
    CUSTOM1 = 6
    CUSTOM2 = 7


class PolylineHeader(NamedTuple):
    precision: int
    third_dim: int
    third_dim_precision: int


class PolylineDecodeError(ValueError):
    """Raised when an encoded polyline can't be decoded."""
    pass


PointLike = Union[Point, Sequence[float]]


# ---------------- decoding ----------------

def _decode_unsigned(encoded: str, index: int) -> Tuple[int, int]:
    """
    Read one unsigned varint starting at `index`.
    Returns (value, next_index).
    """
    result = 0
    shift = 0
    i = index
    while i < len(encoded):
        ch = encoded[i]
        value = DECODING_TABLE.get(ch)
        if value is None:
            raise PolylineDecodeError(f"Invalid character {ch!r} at position {i}")
        if shift >= MAX_VALUE_BITS:
            raise PolylineDecodeError(f"Value starting at position {index} is longer than {MAX_VALUE_BITS} bits")
        result |= (value & 0x1F) << shift
        shift += 5
        i += 1
        if not value & 0x20:
            return result, i
    raise PolylineDecodeError(f"Polyline ends in the middle of a value (started at position {index})")


def _decode_signed(encoded: str, index: int) -> Tuple[int, int]:
    unsigned, i = _decode_unsigned(encoded, index)
    # zig-zag: odd values are negative
    if unsigned & 1:
        unsigned = ~unsigned
    return unsigned >> 1, i


def _read_header(encoded: str) -> Tuple[PolylineHeader, int]:
    header, index = _decode_unsigned(encoded, 0)
    precision = header & 0x0F
    third_dim = (header >> 4) & 0x07
    third_dim_precision = 0
    if third_dim != ThirdDimension.ABSENT:
        third_dim_precision, index = _decode_unsigned(encoded, index)
        if third_dim_precision > MAX_PRECISION:
            raise PolylineDecodeError(f"Third dimension precision {third_dim_precision} is out of range")
    return PolylineHeader(precision, third_dim, third_dim_precision), index


def decode_header(encoded: str) -> PolylineHeader:
    if not encoded:
        raise PolylineDecodeError("Empty polyline has no header")
    header, _ = _read_header(encoded)
    return header


def _iter_deltas(encoded: str) -> Iterable[Tuple[PolylineHeader, int, int, int]]:
    """
    Yields (header, lat, lng, z) with coordinates still as scaled integers.
    """
    header, index = _read_header(encoded)
    has_third = header.third_dim != ThirdDimension.ABSENT
    lat = lng = z = 0
    while index < len(encoded):
        d_lat, index = _decode_signed(encoded, index)
        d_lng, index = _decode_signed(encoded, index)
        lat += d_lat
        lng += d_lng
        if has_third:
            d_z, index = _decode_signed(encoded, index)
            z += d_z
        yield header, lat, lng, z


def decode(encoded: str) -> List[Point]:
    """
    Decode a flexible polyline to a list of points.
    The third dimension, if present, is read and dropped.
    Raises PolylineDecodeError on an invalid, oversized or truncated string.
    Decoding is strict: a value cut short, or a point missing its lng or
    third value, fails the whole string rather than being dropped quietly.
    """
    if not encoded:
        return []
    points: List[Point] = []
    for header, lat, lng, _ in _iter_deltas(encoded):
        factor = 10 ** header.precision
        points.append(Point(lat=lat / factor, lng=lng / factor))
    return points


def decode_with_third_dimension(encoded: str) -> List[Tuple[float, float, float]]:
    """Like decode(), but keeps the third value: [(lat, lng, z), ...]."""
    if not encoded:
        return []
    out: List[Tuple[float, float, float]] = []
    for header, lat, lng, z in _iter_deltas(encoded):
        factor = 10 ** header.precision
        z_factor = 10 ** header.third_dim_precision
        out.append((lat / factor, lng / factor, z / z_factor))
    return out


# ---------------- encoding ----------------

def _encode_unsigned(value: int) -> str:
    chars = []
    while value > 0x1F:
        chars.append(ENCODING_TABLE[(value & 0x1F) | 0x20])
        value >>= 5
    chars.append(ENCODING_TABLE[value])
    return "".join(chars)


def _encode_signed(value: int) -> str:
    unsigned = value << 1
    if value < 0:
        unsigned = ~unsigned
    return _encode_unsigned(unsigned)


def _scale(value: float, factor: int) -> int:
    # round half away from zero, the same way on both signs
    scaled = int(math.floor(abs(value) * factor + 0.5))
    return -scaled if value < 0 else scaled


def _components(point: PointLike) -> Tuple[float, float, float]:
    if isinstance(point, Point):
        return point.lat, point.lng, 0.0
    if len(point) >= 3:
        return float(point[0]), float(point[1]), float(point[2])
    return float(point[0]), float(point[1]), 0.0


def encode(
    points: Iterable[PointLike],
    precision: int = DEFAULT_PRECISION,
    third_dim: int = ThirdDimension.ABSENT,
    third_dim_precision: int = 0,
) -> str:
    """
    Encode points (Point models or (lat, lng[, z]) tuples) as a flexible polyline.
    An empty input encodes to an empty string.
    """
    if not 0 <= precision <= MAX_PRECISION:
        raise ValueError(f"precision must be between 0 and {MAX_PRECISION}, got {precision}")
    if not 0 <= third_dim_precision <= MAX_PRECISION:
        raise ValueError(f"third_dim_precision must be between 0 and {MAX_PRECISION}, got {third_dim_precision}")
    if third_dim not in ThirdDimension.__members__.values():
        raise ValueError(f"Unknown third dimension type: {third_dim}")

    points = list(points)
    if not points:
        return ""

    has_third = third_dim != ThirdDimension.ABSENT
    factor = 10 ** precision
    z_factor = 10 ** third_dim_precision

    out = [_encode_unsigned(precision | (int(third_dim) << 4))]
    if has_third:
        out.append(_encode_unsigned(third_dim_precision))

    last_lat = last_lng = last_z = 0
    for point in points:
        lat, lng, z = _components(point)
        s_lat = _scale(lat, factor)
        s_lng = _scale(lng, factor)
        out.append(_encode_signed(s_lat - last_lat))
        out.append(_encode_signed(s_lng - last_lng))
        last_lat, last_lng = s_lat, s_lng
        if has_third:
            s_z = _scale(z, z_factor)
            out.append(_encode_signed(s_z - last_z))
            last_z = s_z
    return "".join(out)
