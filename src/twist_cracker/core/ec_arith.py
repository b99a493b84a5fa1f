"""Affine point arithmetic on short Weierstrass curves y^2 = x^3 + ax + b.

Every function takes the curve explicitly, so the same code serves the
main curve and its twist. Points are (x, y) tuples; None is the point at
infinity. Operands are not validated: adding a point from the twist with
main-curve parameters still runs (only b differs between the two curves,
and b never enters the addition law). That is exactly the behaviour an
invalid-curve attack exploits.
"""

from __future__ import annotations

from twist_cracker.utils.math_helpers import mod_inverse
from twist_cracker.utils.types import CurveParameters, Point


def is_on_curve(point: Point, curve: CurveParameters) -> bool:
    """Check y^2 = x^3 + ax + b (mod p). The point at infinity is on every curve."""
    if point is None:
        return True
    x, y = point
    p = curve.p
    if not (0 <= x < p and 0 <= y < p):
        return False
    return (y * y - (x * x * x + curve.a * x + curve.b)) % p == 0


def point_negate(point: Point, curve: CurveParameters) -> Point:
    if point is None:
        return None
    x, y = point
    return (x, (-y) % curve.p)


def point_double(point: Point, curve: CurveParameters) -> Point:
    if point is None:
        return None
    x, y = point
    if y == 0:
        return None
    p = curve.p
    lam = (3 * x * x + curve.a) * mod_inverse(2 * y, p) % p
    x3 = (lam * lam - 2 * x) % p
    y3 = (lam * (x - x3) - y) % p
    return (x3, y3)


def point_add(p1: Point, p2: Point, curve: CurveParameters) -> Point:
    """Add two points.

    Precedence: infinity operand, vertical chord (same x, different y),
    doubling, then the general chord rule. The denominators reaching
    mod_inverse are non-zero mod the prime p by construction.
    """
    if p1 is None:
        return p2
    if p2 is None:
        return p1
    x1, y1 = p1
    x2, y2 = p2
    if x1 == x2 and y1 != y2:
        return None
    if y1 == y2 and x1 == x2:
        return point_double(p1, curve)
    p = curve.p
    lam = (y2 - y1) * mod_inverse(x2 - x1, p) % p
    x3 = (lam * lam - x1 - x2) % p
    y3 = (lam * (x1 - x3) - y1) % p
    return (x3, y3)


def point_subtract(p1: Point, p2: Point, curve: CurveParameters) -> Point:
    return point_add(p1, point_negate(p2, curve), curve)


def scalar_multiply(k: int, point: Point, curve: CurveParameters) -> Point:
    """Compute k * point by double-and-add-always, most significant bit first.

    Each bit costs one doubling and one addition whether it is set or not,
    so the work depends only on the bit length of k. Python integers are
    not constant time, so this is a shape property, not a side-channel
    guarantee.

    k = 0 gives the point at infinity; k = 1 gives the input unchanged;
    negative k multiplies the negated point.
    """
    if k < 0:
        return scalar_multiply(-k, point_negate(point, curve), curve)
    if k == 0 or point is None:
        return None
    if k == 1:
        return point

    result: Point = None
    for bit in bin(k)[2:]:
        result = point_double(result, curve)
        summed = point_add(result, point, curve)
        if bit == "1":
            result = summed
    return result


def multiply_generator(k: int, curve: CurveParameters) -> Point:
    """k * G for the curve's own generator."""
    return scalar_multiply(k, curve.generator, curve)
