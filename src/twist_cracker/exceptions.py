"""Exception types for the analysis engine.

Everything except CurveConfigurationError is a recoverable condition that
callers are expected to handle.
"""

from __future__ import annotations


class TwistCrackerError(Exception):
    """Base class for all engine errors."""


class MalformedInput(TwistCrackerError, ValueError):
    """A numeric string or encoded key could not be decoded."""


class OutOfRange(TwistCrackerError, ValueError):
    """A value lies outside the range an operation accepts."""


class NotInvertible(TwistCrackerError, ArithmeticError):
    """Modular inverse requested for a value sharing a factor with the modulus."""

    def __init__(self, a: int, m: int, divisor: int) -> None:
        super().__init__(f"{a} has no inverse mod {m} (gcd = {divisor})")
        self.a = a
        self.m = m
        self.divisor = divisor


class NotCoprime(TwistCrackerError, ArithmeticError):
    """Two moduli share a common factor."""

    def __init__(self, first: int, second: int) -> None:
        super().__init__(f"moduli {first} and {second} are not coprime")
        self.pair = (first, second)


class InsufficientFragments(TwistCrackerError):
    """The fragments collected so far cannot pin down the key."""

    def __init__(self, product: int, target: int | None = None) -> None:
        if target is None:
            message = "no usable fragments"
        else:
            message = f"moduli product {product} does not exceed {target}; keep collecting"
        super().__init__(message)
        self.product = product
        self.target = target


class CurveConfigurationError(TwistCrackerError, RuntimeError):
    """The curve registry violates its invariants. Not recoverable."""
