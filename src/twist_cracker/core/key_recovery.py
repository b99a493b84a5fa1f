"""Turn combined fragments into a private key and check it.

A candidate is reduced modulo the secp256k1 order n and rendered as 64 hex
digits. Verification multiplies the main generator by the candidate:

    public key on secp256k1   ->  key * G must equal it exactly
    public key on the twist   ->  key * G must not be the point at infinity

A twist public key was never produced as key * G, so only the weaker
check is possible for it. Anything else fails verification.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from twist_cracker.core.crt import combine, has_sufficient_fragments
from twist_cracker.core.curves import classify_point, main_curve
from twist_cracker.core.ec_arith import multiply_generator
from twist_cracker.exceptions import InsufficientFragments, MalformedInput, OutOfRange
from twist_cracker.utils.constants import PRIVATE_KEY_HEX_WIDTH, SECP256K1_N
from twist_cracker.utils.math_helpers import hex_to_int, int_to_fixed_hex, product
from twist_cracker.utils.types import Congruence, CurveMembership, Point, RecoveredKey

logger = logging.getLogger(__name__)


def normalize(candidate: int | str) -> str:
    """Reduce a candidate key mod n and pad it to 64 hex digits.

    Raises:
        OutOfRange: candidate is a string that is not valid hex.
    """
    if isinstance(candidate, str):
        try:
            candidate = hex_to_int(candidate)
        except MalformedInput as exc:
            raise OutOfRange(f"not a private key: {candidate!r}") from exc
    return int_to_fixed_hex(candidate % SECP256K1_N, PRIVATE_KEY_HEX_WIDTH)


def verify(private_key_hex: str, public_key: Point) -> bool:
    """Check a private key against a public key point. Never raises."""
    try:
        key = hex_to_int(private_key_hex)
    except MalformedInput:
        return False
    if not 1 <= key < SECP256K1_N:
        return False
    if not isinstance(public_key, tuple) or len(public_key) != 2:
        return False

    computed = multiply_generator(key, main_curve())
    membership = classify_point(public_key)
    if membership is CurveMembership.MAIN:
        return computed == public_key
    if membership is CurveMembership.TWIST:
        return computed is not None
    return False


def recover_key(
    fragments: Iterable[Congruence],
    public_key: Point = None,
    curve_order: int = SECP256K1_N,
) -> RecoveredKey:
    """Combine fragments into a normalized key, verifying it when a public key is given.

    Raises:
        InsufficientFragments: the product of the moduli does not exceed
            curve_order, before or after non-coprime moduli are dropped.
        OutOfRange: the combined value is 0 mod curve_order.
    """
    items = list(fragments)
    if not has_sufficient_fragments(items, curve_order):
        raise InsufficientFragments(product({c.modulus for c in items}), curve_order)

    result = combine(items)
    if result.modulus <= curve_order:
        raise InsufficientFragments(result.modulus, curve_order)
    if result.value % curve_order == 0:
        raise OutOfRange("combined fragments give the zero key")

    key_hex = normalize(result.value)
    verified = False
    if public_key is not None:
        verified = verify(key_hex, public_key)
        if not verified:
            logger.warning("recovered key %s... failed verification", key_hex[:16])
    if verified:
        logger.info("recovered and verified key from %d fragments", len(result.used))
    return RecoveredKey(value=int(key_hex, 16), hex=key_hex, verified=verified)
