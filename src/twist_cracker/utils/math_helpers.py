"""Modular arithmetic and integer codecs for the Twist Cracker engine."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable

from twist_cracker.exceptions import MalformedInput, NotInvertible

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

# Miller-Rabin witnesses; deterministic below 3.3e24, overwhelming beyond.
_MR_BASES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41)


def gcd(a: int, b: int) -> int:
    """Greatest common divisor of |a| and |b| (Euclid)."""
    a, b = abs(a), abs(b)
    while b:
        a, b = b, a % b
    return a


def mod_inverse(a: int, m: int) -> int:
    """Inverse of a modulo m via the extended Euclidean algorithm.

    Returns a value in [0, m). Raises NotInvertible when gcd(a, m) != 1.
    """
    if m == 1:
        return 0
    old_r, r = a % m, m
    old_s, s = 1, 0
    while r:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_s, s = s, old_s - q * s
    if old_r != 1:
        raise NotInvertible(a, m, old_r)
    return old_s % m


def all_pairwise_coprime(values: Iterable[int]) -> bool:
    """True if every pair of values has gcd 1. Empty and singleton sets pass."""
    vals = list(values)
    for i in range(len(vals)):
        for j in range(i + 1, len(vals)):
            if gcd(vals[i], vals[j]) != 1:
                return False
    return True


def product(values: Iterable[int]) -> int:
    result = 1
    for v in values:
        result *= v
    return result


def hex_to_int(text: str) -> int:
    """Parse a big hex string, with or without a 0x prefix."""
    if not isinstance(text, str):
        raise MalformedInput(f"expected a hex string, got {type(text).__name__}")
    cleaned = text.strip()
    if cleaned[:2] in ("0x", "0X"):
        cleaned = cleaned[2:]
    if not cleaned or not _HEX_RE.match(cleaned):
        raise MalformedInput(f"invalid hex string: {text!r}")
    return int(cleaned, 16)


def int_to_fixed_hex(value: int, width: int) -> str:
    """Lowercase hex of value, left-padded with zeros to width digits."""
    if value < 0:
        raise MalformedInput(f"cannot encode negative value {value}")
    encoded = f"{value:0{width}x}"
    if len(encoded) > width:
        raise MalformedInput(f"value needs {len(encoded)} hex digits, width is {width}")
    return encoded


def sqrt_mod(a: int, p: int) -> int | None:
    """Square root of a modulo an odd prime p, or None for a non-residue.

    Uses the (p+1)/4 exponent when p = 3 mod 4 and Tonelli-Shanks otherwise.
    """
    a %= p
    if a == 0:
        return 0
    if pow(a, (p - 1) // 2, p) != 1:
        return None
    if p % 4 == 3:
        return pow(a, (p + 1) // 4, p)

    # Factor out powers of 2 from p-1
    q = p - 1
    s = 0
    while q % 2 == 0:
        q //= 2
        s += 1

    z = 2
    while pow(z, (p - 1) // 2, p) != p - 1:
        z += 1

    m = s
    c = pow(z, q, p)
    t = pow(a, q, p)
    r = pow(a, (q + 1) // 2, p)
    while t != 1:
        i = 1
        temp = (t * t) % p
        while temp != 1:
            temp = (temp * temp) % p
            i += 1
        b = pow(c, 1 << (m - i - 1), p)
        m = i
        c = (b * b) % p
        t = (t * c) % p
        r = (r * b) % p
    return r


def is_probable_prime(n: int) -> bool:
    """Miller-Rabin with fixed bases."""
    if n < 2:
        return False
    for small in _MR_BASES:
        if n % small == 0:
            return n == small
    d = n - 1
    r = 0
    while d % 2 == 0:
        d //= 2
        r += 1
    for base in _MR_BASES:
        x = pow(base, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(r - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


def factor_small(n: int, bound: int) -> tuple[dict[int, int], int]:
    """Trial-divide n by every integer below bound.

    Returns:
        factors: {prime: exponent} for primes < bound.
        cofactor: what is left of n (1 if fully factored).
    """
    factors: dict[int, int] = {}
    remaining = abs(n)
    d = 2
    while d < bound and d * d <= remaining:
        while remaining % d == 0:
            factors[d] = factors.get(d, 0) + 1
            remaining //= d
        d += 1 if d == 2 else 2
    if 1 < remaining < bound:
        factors[remaining] = factors.get(remaining, 0) + 1
        remaining = 1
    return factors, remaining


def ceil_sqrt(n: int) -> int:
    root = math.isqrt(n)
    return root if root * root == n else root + 1
