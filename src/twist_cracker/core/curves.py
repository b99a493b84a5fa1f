"""Curve parameter registry: secp256k1 and its quadratic twist.

Since p = 3 (mod 4), -1 is a non-residue mod p and y^2 = x^3 - 7 is the
quadratic twist of y^2 = x^3 + 7: for x^3 + 7 != 0, x lies on secp256k1
exactly when -x does not lie on the twist. The twist order is fixed by
|E| + |E'| = 2p + 2 and factors as 3^2 * 13^2 * 3319 * 22639 * p220, so a
key multiplied onto a twist point leaks d mod 3, 13, 3319 and 22639.

The twist group is not cyclic: it is Z/3 x Z/(n'/3). The registered
generator therefore has order n'/3, recorded as CurveParameters.exponent,
and subgroup projections use that exponent rather than n'.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import math
from collections.abc import Iterator

from twist_cracker.core.ec_arith import is_on_curve, scalar_multiply
from twist_cracker.exceptions import CurveConfigurationError
from twist_cracker.utils.constants import (
    GENERATOR_SAMPLE_POINTS,
    GENERATOR_SEARCH_LIMIT,
    SECP256K1_A,
    SECP256K1_B,
    SECP256K1_GX,
    SECP256K1_GY,
    SECP256K1_N,
    SECP256K1_P,
    SMALL_FACTOR_BOUND,
    TWIST_B,
    TWIST_ORDER,
)
from twist_cracker.utils.math_helpers import factor_small, is_probable_prime, sqrt_mod
from twist_cracker.utils.types import CurveMembership, CurveParameters, Point

logger = logging.getLogger(__name__)

MAIN_CURVE = CurveParameters(
    name="secp256k1",
    p=SECP256K1_P,
    n=SECP256K1_N,
    a=SECP256K1_A,
    b=SECP256K1_B,
    gx=SECP256K1_GX,
    gy=SECP256K1_GY,
)


def main_curve() -> CurveParameters:
    return MAIN_CURVE


@functools.lru_cache(maxsize=None)
def twist_order_factors() -> dict[int, int]:
    """Full factorization of the twist order as {prime: exponent}.

    Trial division finds the small primes; the remaining cofactor must be a
    probable prime or the registry is misconfigured.
    """
    factors, cofactor = factor_small(TWIST_ORDER, SMALL_FACTOR_BOUND)
    if cofactor > 1:
        if not is_probable_prime(cofactor):
            raise CurveConfigurationError(
                "twist order cofactor is composite; cannot certify a generator"
            )
        factors[cofactor] = 1
    return factors


def twist_subgroup_primes(limit: int = SMALL_FACTOR_BOUND) -> tuple[int, ...]:
    """Distinct primes below limit dividing the twist order, ascending."""
    return tuple(sorted(q for q in twist_order_factors() if q < limit))


def point_order(point: Point, curve: CurveParameters, factors: dict[int, int]) -> int:
    """Order of a point, given the factorization {prime: exponent} of a multiple of it."""
    if point is None:
        return 1
    order = 1
    for q, e in factors.items():
        order *= q**e
    for q, e in factors.items():
        for _ in range(e):
            if scalar_multiply(order // q, point, curve) is not None:
                break
            order //= q
    return order


def _lift_points(curve: CurveParameters, limit: int) -> Iterator[tuple[int, int]]:
    """Points for x = 1, 2, ... below limit, taking the smaller square root for y."""
    for x in range(1, limit):
        y = sqrt_mod(x * x * x + curve.a * x + curve.b, curve.p)
        if y:
            yield (x, min(y, curve.p - y))


def _derive_twist_generator(curve: CurveParameters) -> tuple[int, int, int]:
    """Deterministic generator of maximal order and that order.

    E(F_p) is Z/m1 x Z/m2 with m1 | m2 and m1 | p - 1. The twist of
    secp256k1 has all of its 3-torsion rational, so m1 = 3 and no point
    has order n'. The exponent m2 is the lcm of the orders of the first
    GENERATOR_SAMPLE_POINTS points; the generator is the first point
    reaching it.

    Returns:
        (gx, gy, exponent)
    """
    factors = twist_order_factors()
    exponent = 1
    orders: list[tuple[tuple[int, int], int]] = []
    for point in _lift_points(curve, GENERATOR_SEARCH_LIMIT):
        order = point_order(point, curve, factors)
        orders.append((point, order))
        if len(orders) <= GENERATOR_SAMPLE_POINTS:
            exponent = math.lcm(exponent, order)
        if len(orders) >= GENERATOR_SAMPLE_POINTS and any(o == exponent for _, o in orders):
            break

    rank_factor = curve.n // exponent
    if curve.n % exponent or exponent % rank_factor or (curve.p - 1) % rank_factor:
        raise CurveConfigurationError(
            f"sampled exponent {exponent:#x} is inconsistent with the group order"
        )
    for point, order in orders:
        if order == exponent:
            return point[0], point[1], exponent
    raise CurveConfigurationError("no point of maximal order found on the twist")


@functools.lru_cache(maxsize=None)
def twist_curve() -> CurveParameters:
    """The twist y^2 = x^3 - 7 with a derived generator of maximal order."""
    # gx/gy filled in once derived
    skeleton = CurveParameters(
        name="secp256k1-twist",
        p=SECP256K1_P,
        n=TWIST_ORDER,
        a=SECP256K1_A,
        b=TWIST_B,
        gx=0,
        gy=0,
    )
    gx, gy, exponent = _derive_twist_generator(skeleton)
    twist = dataclasses.replace(skeleton, gx=gx, gy=gy, exponent=exponent)
    validate_curve_pair(MAIN_CURVE, twist)
    logger.debug("twist generator: x=%#x, order n'/%d", gx, twist.n // exponent)
    return twist


def validate_curve_pair(main: CurveParameters, twist: CurveParameters) -> None:
    """Raise CurveConfigurationError unless the pair is a curve and its twist."""
    if main.p != twist.p:
        raise CurveConfigurationError("main curve and twist must share the field prime")
    if main.a != twist.a:
        raise CurveConfigurationError("twist coefficient a must match the main curve")
    if twist.b != (main.p - main.b) % main.p:
        raise CurveConfigurationError("twist b must equal (p - b) mod p")
    if main.n + twist.n != 2 * (main.p + 1):
        raise CurveConfigurationError("curve orders must sum to 2p + 2")
    if not is_on_curve(main.generator, main):
        raise CurveConfigurationError("main generator is not on the main curve")
    if scalar_multiply(main.n, main.generator, main) is not None:
        raise CurveConfigurationError("main generator does not have order n")
    if not is_on_curve(twist.generator, twist):
        raise CurveConfigurationError("twist generator is not on the twist")
    if twist.n % twist.generator_order:
        raise CurveConfigurationError("twist generator order must divide the twist order")
    if scalar_multiply(twist.generator_order, twist.generator, twist) is not None:
        raise CurveConfigurationError("twist generator does not have the recorded order")
    for q in twist_order_factors():
        if twist.generator_order % q == 0 and scalar_multiply(
            twist.generator_order // q, twist.generator, twist
        ) is None:
            raise CurveConfigurationError(f"twist generator order is smaller than recorded (q={q})")


def classify_point(point: Point) -> CurveMembership:
    """Which of the two registered curves a public key point lies on."""
    if point is None:
        return CurveMembership.NEITHER
    if is_on_curve(point, MAIN_CURVE):
        return CurveMembership.MAIN
    if is_on_curve(point, twist_curve()):
        return CurveMembership.TWIST
    return CurveMembership.NEITHER
