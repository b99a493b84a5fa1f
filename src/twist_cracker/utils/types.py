"""Dataclass definitions for the Twist Cracker engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from twist_cracker.exceptions import OutOfRange
from twist_cracker.utils.constants import (
    BSGS_LIMIT,
    CANCEL_CHECK_INTERVAL,
    EXHAUSTIVE_LIMIT,
    KANGAROO_LIMIT,
    KANGAROO_TAME_FACTOR,
    KANGAROO_WILD_EXTRA,
    KANGAROO_WILD_FACTOR,
)

# Affine point, or None for the point at infinity.
Point = tuple[int, int] | None


class CurveMembership(enum.Enum):
    MAIN = "main"
    TWIST = "twist"
    NEITHER = "neither"


class VulnerabilityType(str, enum.Enum):
    TWISTED_CURVE = "twisted_curve"
    NONE = "none"
    INVALID = "invalid"


class SolveMethod(str, enum.Enum):
    EXHAUSTIVE = "exhaustive"
    BSGS = "bsgs"
    KANGAROO = "kangaroo"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class CurveParameters:
    """Short Weierstrass curve y^2 = x^3 + ax + b over F_p with generator G.

    For a non-cyclic group G only generates a subgroup; exponent is then
    its order (the group exponent) and n stays the full group order.
    """

    name: str
    p: int
    n: int  # group order
    a: int
    b: int
    gx: int
    gy: int
    exponent: int | None = None

    @property
    def generator(self) -> tuple[int, int]:
        return (self.gx, self.gy)

    @property
    def generator_order(self) -> int:
        return self.exponent or self.n


@dataclass(frozen=True, order=True)
class Congruence:
    """key = remainder (mod modulus)."""

    modulus: int
    remainder: int

    def __post_init__(self) -> None:
        if self.modulus < 2:
            raise OutOfRange(f"modulus must be >= 2, got {self.modulus}")
        if not 0 <= self.remainder < self.modulus:
            raise OutOfRange(
                f"remainder {self.remainder} outside [0, {self.modulus})"
            )


@dataclass(frozen=True)
class RecoveredKey:
    """A private key candidate assembled from fragments."""

    value: int
    hex: str  # 64 hex digits, no prefix
    verified: bool


@dataclass(frozen=True)
class Signature:
    """ECDSA signature components, carried for context only."""

    r: str
    s: str
    sighash: str = "01"


@dataclass
class CRTResult:
    """Outcome of combining a set of congruences."""

    value: int
    modulus: int
    used: list[Congruence] = field(default_factory=list)
    dropped: list[Congruence] = field(default_factory=list)


@dataclass
class SolveReport:
    """What one discrete-log solve did."""

    modulus: int
    method: SolveMethod
    remainder: int | None
    steps: int = 0
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def found(self) -> bool:
        return self.remainder is not None


@dataclass
class SolverConfig:
    """Tier thresholds and kangaroo tuning for the discrete log solver."""

    exhaustive_limit: int = EXHAUSTIVE_LIMIT
    bsgs_limit: int = BSGS_LIMIT
    kangaroo_limit: int = KANGAROO_LIMIT
    tame_factor: float = KANGAROO_TAME_FACTOR
    wild_factor: float = KANGAROO_WILD_FACTOR
    wild_extra_steps: int = KANGAROO_WILD_EXTRA
    cancel_check_interval: int = CANCEL_CHECK_INTERVAL


@dataclass
class AnalysisConfig:
    """Configuration for a twist analysis run."""

    moduli: tuple[int, ...] | None = None  # None -> small primes of the twist order
    max_workers: int | None = None
    timeout: float | None = None  # seconds for the whole fan-out
    solver: SolverConfig = field(default_factory=SolverConfig)


@dataclass
class AnalysisRequest:
    """A public key and signature handed over by the transaction layer.

    Either both coordinates (x, y) or a SEC1 encoded public_key must be set.
    """

    signature: Signature
    x: str | None = None
    y: str | None = None
    public_key: str | None = None
    txid: str | None = None
    on_main_curve: bool | None = None  # caller's hint, re-checked


@dataclass
class AnalysisResult:
    """Read-only output of analysing one public key."""

    vulnerability_type: VulnerabilityType
    public_key: Point
    signature: Signature
    twist_order: int | None = None
    prime_factors_used: list[int] = field(default_factory=list)
    congruences: list[Congruence] = field(default_factory=list)
    recovered_key: RecoveredKey | None = None
    status: str = "completed"
    message: str = ""
    txid: str | None = None
    solve_reports: list[SolveReport] = field(default_factory=list)
    dropped_moduli: list[int] = field(default_factory=list)
