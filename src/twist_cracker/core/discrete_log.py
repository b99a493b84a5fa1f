"""Tiered discrete logarithm solver for small prime-order subgroups.

Given a target P and a base B of prime order q, find d in [0, q) with
P = d * B. The algorithm is chosen from the size of q alone:

    q < 100              exhaustive search
    100 <= q < 10^4      baby-step / giant-step
    10^4 <= q < 10^6     Pollard kangaroo (lambda) with distinguished points
    q >= 10^6            out of range -- returns None

A None result means "not found" for this modulus and is final for the
attempt. Every tier polls an optional threading.Event so that a caller's
timeout can stop a long walk.
"""

from __future__ import annotations

import logging
import math
import threading
import time

from twist_cracker.core.ec_arith import point_add, point_negate, scalar_multiply
from twist_cracker.exceptions import OutOfRange
from twist_cracker.utils.constants import CANCEL_CHECK_INTERVAL, DISTINGUISHED_MASK
from twist_cracker.utils.math_helpers import ceil_sqrt
from twist_cracker.utils.types import (
    CurveParameters,
    Point,
    SolveMethod,
    SolverConfig,
    SolveReport,
)

logger = logging.getLogger(__name__)

# (remainder or None, group operations spent)
TierResult = tuple[int | None, int]


def _cancelled(cancel: threading.Event | None, step: int, interval: int) -> bool:
    return cancel is not None and step % interval == 0 and cancel.is_set()


def exhaustive_search(
    target: Point,
    base: Point,
    modulus: int,
    curve: CurveParameters,
    cancel: threading.Event | None = None,
    check_interval: int = CANCEL_CHECK_INTERVAL,
) -> TierResult:
    """Walk i*B for i = 0..q-1 and return the first i that hits the target."""
    current: Point = None
    for i in range(modulus):
        if _cancelled(cancel, i, check_interval):
            return None, i
        if current == target:
            return i, i + 1
        current = point_add(current, base, curve)
    return None, modulus


def baby_step_giant_step(
    target: Point,
    base: Point,
    modulus: int,
    curve: CurveParameters,
    cancel: threading.Event | None = None,
    check_interval: int = CANCEL_CHECK_INTERVAL,
) -> TierResult:
    """Shanks' baby-step/giant-step with an x-coordinate keyed table.

    j*B and -j*B share an x-coordinate, so a table hit is resolved against
    the stored point: an exact match gives i*m + j, the negation i*m - j.
    """
    m = ceil_sqrt(modulus)

    baby: dict[int, tuple[int, tuple[int, int]]] = {}
    current: Point = None
    for j in range(m):
        if current is not None:
            baby.setdefault(current[0], (j, current))
        current = point_add(current, base, curve)
    steps = m

    giant_stride = point_negate(scalar_multiply(m, base, curve), curve)
    giant = target
    for i in range(m):
        if _cancelled(cancel, i, check_interval):
            return None, steps
        candidate: int | None = None
        if giant is None:
            candidate = (i * m) % modulus
        else:
            hit = baby.get(giant[0])
            if hit is not None:
                j, stored = hit
                candidate = (i * m + j) % modulus if giant == stored else (i * m - j) % modulus
        if candidate is not None:
            if scalar_multiply(candidate, base, curve) == target:
                return candidate, steps
            logger.debug("bsgs: x-collision at i=%d did not verify", i)
        giant = point_add(giant, giant_stride, curve)
        steps += 1
    return None, steps


def _jump_distances(modulus: int, tame_factor: float) -> list[int]:
    """Powers of two whose mean lets the tame walk cover about one lap of the group."""
    target_mean = max(1.0, math.sqrt(modulus) / tame_factor)
    k = 1
    while (2**k - 1) / k < target_mean:
        k += 1
    return [1 << i for i in range(k)]


def _is_distinguished(point: Point) -> bool:
    return point is not None and (point[0] & DISTINGUISHED_MASK) == 0


def pollard_kangaroo(
    target: Point,
    base: Point,
    modulus: int,
    curve: CurveParameters,
    config: SolverConfig | None = None,
    cancel: threading.Event | None = None,
) -> TierResult:
    """Pollard's lambda method with distinguished-point traps.

    The tame kangaroo starts at (q // 2) * B and lays a trap at every
    distinguished point it visits. The wild kangaroo starts at the target
    with the same deterministic jumps; once it lands on the tame trail
    both paths coincide and the wild walker reaches a trap, giving
    d = tame_distance - wild_distance (mod q). Both walks have hard step
    budgets.
    """
    if config is None:
        config = SolverConfig()
    interval = config.cancel_check_interval
    root = math.isqrt(modulus)
    tame_budget = int(config.tame_factor * root) + 1
    wild_budget = int(config.wild_factor * root) + config.wild_extra_steps

    distances = _jump_distances(modulus, config.tame_factor)
    jump_points = [scalar_multiply(s, base, curve) for s in distances]
    k = len(distances)

    def partition(point: Point) -> int:
        return 0 if point is None else point[0] % k

    traps: dict[tuple[int, int], int] = {}
    tame_distance = modulus // 2
    tame = scalar_multiply(tame_distance, base, curve)
    steps = 0
    for i in range(tame_budget):
        if _cancelled(cancel, i, interval):
            return None, steps
        if _is_distinguished(tame):
            traps[tame] = tame_distance
        j = partition(tame)
        tame = point_add(tame, jump_points[j], curve)
        tame_distance = (tame_distance + distances[j]) % modulus
        steps += 1
    logger.debug("kangaroo q=%d: %d traps from %d tame steps", modulus, len(traps), tame_budget)

    wild = target
    wild_distance = 0
    for i in range(wild_budget):
        if _cancelled(cancel, i, interval):
            return None, steps
        if _is_distinguished(wild) and wild in traps:
            candidate = (traps[wild] - wild_distance) % modulus
            if scalar_multiply(candidate, base, curve) == target:
                return candidate, steps
            logger.debug("kangaroo q=%d: trap hit did not verify", modulus)
        j = partition(wild)
        wild = point_add(wild, jump_points[j], curve)
        wild_distance = (wild_distance + distances[j]) % modulus
        steps += 1
    return None, steps


class DiscreteLogSolver:
    """Pick a tier by modulus size and solve P = d * B in a subgroup of order q."""

    def __init__(self, curve: CurveParameters, config: SolverConfig | None = None) -> None:
        self.curve = curve
        self.config = config or SolverConfig()

    def select_method(self, modulus: int) -> SolveMethod:
        if modulus < self.config.exhaustive_limit:
            return SolveMethod.EXHAUSTIVE
        if modulus < self.config.bsgs_limit:
            return SolveMethod.BSGS
        if modulus < self.config.kangaroo_limit:
            return SolveMethod.KANGAROO
        return SolveMethod.OUT_OF_RANGE

    def solve(
        self,
        target: Point,
        modulus: int,
        base: Point = None,
        cancel: threading.Event | None = None,
    ) -> int | None:
        """d mod q, or None when the tier's search budget is exhausted."""
        return self.solve_report(target, modulus, base=base, cancel=cancel).remainder

    def solve_report(
        self,
        target: Point,
        modulus: int,
        base: Point = None,
        cancel: threading.Event | None = None,
    ) -> SolveReport:
        """Solve and describe the work done.

        Args:
            target: point whose logarithm is wanted.
            modulus: prime order q of the subgroup spanned by base.
            base: subgroup generator; defaults to the curve generator.
            cancel: polled every cancel_check_interval steps.
        """
        if modulus < 2:
            raise OutOfRange(f"modulus must be >= 2, got {modulus}")
        if base is None:
            base = self.curve.generator
        method = self.select_method(modulus)

        if target is None:
            return SolveReport(modulus=modulus, method=method, remainder=0)
        if method is SolveMethod.OUT_OF_RANGE:
            logger.warning(
                "modulus %d is beyond the solver range (< %d); not solved",
                modulus, self.config.kangaroo_limit,
            )
            return SolveReport(modulus=modulus, method=method, remainder=None)

        interval = self.config.cancel_check_interval
        logger.debug("solving mod %d with %s", modulus, method.value)
        start = time.perf_counter()
        if method is SolveMethod.EXHAUSTIVE:
            remainder, steps = exhaustive_search(
                target, base, modulus, self.curve, cancel, interval,
            )
        elif method is SolveMethod.BSGS:
            remainder, steps = baby_step_giant_step(
                target, base, modulus, self.curve, cancel, interval,
            )
        else:
            remainder, steps = pollard_kangaroo(
                target, base, modulus, self.curve, self.config, cancel,
            )
        elapsed = time.perf_counter() - start

        cancelled = remainder is None and cancel is not None and cancel.is_set()
        if cancelled:
            logger.warning("solve mod %d cancelled after %d steps", modulus, steps)
        elif remainder is None:
            logger.info("no logarithm mod %d within %d steps", modulus, steps)
        return SolveReport(
            modulus=modulus,
            method=method,
            remainder=remainder,
            steps=steps,
            elapsed=elapsed,
            cancelled=cancelled,
        )
