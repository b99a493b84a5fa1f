"""SEC1 public key encoding, with twist-aware decompression."""

from __future__ import annotations

from twist_cracker.core.curves import main_curve, twist_curve
from twist_cracker.exceptions import MalformedInput
from twist_cracker.utils.constants import FIELD_HEX_WIDTH
from twist_cracker.utils.math_helpers import hex_to_int, int_to_fixed_hex, sqrt_mod
from twist_cracker.utils.types import Point


def point_from_hex(x_hex: str, y_hex: str) -> tuple[int, int]:
    """Build a point from two hex coordinates. Coordinates must lie in [0, p)."""
    x = hex_to_int(x_hex)
    y = hex_to_int(y_hex)
    p = main_curve().p
    if x >= p or y >= p:
        raise MalformedInput("coordinate outside the field")
    return (x, y)


def public_key_id(point: Point) -> str:
    """Storage key for a public key: x and y as 64-digit hex, concatenated."""
    if point is None:
        raise MalformedInput("the point at infinity has no public key id")
    x, y = point
    return int_to_fixed_hex(x, FIELD_HEX_WIDTH) + int_to_fixed_hex(y, FIELD_HEX_WIDTH)


def decode_public_key(text: str) -> tuple[int, int]:
    """Decode a SEC1 hex public key.

    04 || x || y is taken as given. 02/03 || x is decompressed on
    secp256k1, or on its twist when x^3 + 7 has no square root. That is how
    a compressed invalid-curve key shows up in a transaction.
    """
    cleaned = text.strip()
    if cleaned[:2] in ("0x", "0X"):
        cleaned = cleaned[2:]
    width = FIELD_HEX_WIDTH
    prefix = cleaned[:2]

    if prefix == "04" and len(cleaned) == 2 + 2 * width:
        return point_from_hex(cleaned[2:2 + width], cleaned[2 + width:])

    if prefix in ("02", "03") and len(cleaned) == 2 + width:
        x = hex_to_int(cleaned[2:])
        if x >= main_curve().p:
            raise MalformedInput("compressed x-coordinate is outside the field")
        for curve in (main_curve(), twist_curve()):
            y = sqrt_mod(x * x * x + curve.a * x + curve.b, curve.p)
            if y is None:
                continue
            if y % 2 != int(prefix == "03"):
                y = (-y) % curve.p
            return (x, y)
        raise MalformedInput("x-coordinate is on neither secp256k1 nor its twist")

    raise MalformedInput(f"unrecognised SEC1 public key of length {len(cleaned)}")


def encode_public_key(point: Point, compressed: bool = False) -> str:
    """SEC1 hex encoding (no 0x prefix)."""
    if point is None:
        raise MalformedInput("the point at infinity cannot be encoded")
    x, y = point
    x_hex = int_to_fixed_hex(x, FIELD_HEX_WIDTH)
    if compressed:
        return ("03" if y & 1 else "02") + x_hex
    return "04" + x_hex + int_to_fixed_hex(y, FIELD_HEX_WIDTH)
