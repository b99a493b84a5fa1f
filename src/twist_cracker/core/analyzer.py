"""Twist analysis pipeline: public key in, key fragments out.

A public key point that lies on y^2 = x^3 - 7 instead of secp256k1 was
multiplied by the signer's private key d inside a group whose order has
small prime factors. Projecting the point into each small subgroup and
solving the discrete logarithm there gives d mod q for every such q.

The projection multiplies by e/q, where e = n'/3 is the order of the twist
generator G'. For q != 3 that lands in the cyclic subgroup generated by
(e/q)G'. The 3-torsion is Z/3 x Z/3, so for q = 3 the projected key may lie
outside <(e/3)G'>; the solver then reports no remainder for 3 and the
analysis is partial.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading

from twist_cracker.core.crt import has_sufficient_fragments
from twist_cracker.core.curves import classify_point, twist_curve, twist_subgroup_primes
from twist_cracker.core.discrete_log import DiscreteLogSolver
from twist_cracker.core.ec_arith import scalar_multiply
from twist_cracker.core.fragment_store import FragmentStore, InMemoryFragmentStore
from twist_cracker.core.key_recovery import recover_key
from twist_cracker.core.public_key import decode_public_key, point_from_hex, public_key_id
from twist_cracker.exceptions import InsufficientFragments, MalformedInput, OutOfRange
from twist_cracker.utils.types import (
    AnalysisConfig,
    AnalysisRequest,
    AnalysisResult,
    Congruence,
    CurveMembership,
    CurveParameters,
    Point,
    SolveReport,
    VulnerabilityType,
)

logger = logging.getLogger(__name__)


def request_point(request: AnalysisRequest) -> tuple[int, int]:
    """The public key point named by a request.

    Raises:
        MalformedInput: neither coordinates nor an encoded key decode.
    """
    if request.x is not None and request.y is not None:
        return point_from_hex(request.x, request.y)
    if request.public_key is not None:
        return decode_public_key(request.public_key)
    raise MalformedInput("request carries no public key")


class _CancelScope(threading.Event):
    """Cancel flag for one fan-out, also set while the caller's event is."""

    def __init__(self, parent: threading.Event | None = None) -> None:
        super().__init__()
        self.parent = parent

    def is_set(self) -> bool:
        return super().is_set() or (self.parent is not None and self.parent.is_set())


class TwistAnalyzer:
    """Extract private key congruences from twist-curve public keys.

    Args:
        store: where fragments accumulate across analyses of the same key.
        config: worklist, worker count, timeout and solver tuning.
    """

    def __init__(
        self,
        store: FragmentStore | None = None,
        config: AnalysisConfig | None = None,
    ) -> None:
        self.store = store if store is not None else InMemoryFragmentStore()
        self.config = config or AnalysisConfig()

    def worklist(self, twist: CurveParameters) -> tuple[list[int], list[int]]:
        """Split the configured moduli into (usable, skipped)."""
        candidates = self.config.moduli or twist_subgroup_primes(self.config.solver.kangaroo_limit)
        usable: list[int] = []
        skipped: list[int] = []
        for q in candidates:
            if q in usable:
                continue
            if q >= 2 and twist.n % q == 0:
                usable.append(q)
            else:
                skipped.append(q)
        if skipped:
            logger.warning("moduli %s do not divide the twist order; skipped", skipped)
        return usable, skipped

    def _solve_modulus(
        self,
        point: Point,
        modulus: int,
        twist: CurveParameters,
        solver: DiscreteLogSolver,
        cancel: threading.Event,
    ) -> SolveReport:
        cofactor = twist.generator_order // modulus
        target = scalar_multiply(cofactor, point, twist)
        base = scalar_multiply(cofactor, twist.generator, twist)
        report = solver.solve_report(target, modulus, base=base, cancel=cancel)
        if report.found:
            logger.info(
                "key = %d (mod %d) via %s in %d steps",
                report.remainder, modulus, report.method.value, report.steps,
            )
        return report

    def solve_subgroups(
        self,
        point: Point,
        moduli: list[int],
        cancel: threading.Event | None = None,
    ) -> list[SolveReport]:
        """One discrete log per modulus, run concurrently. Reports come back in modulus order.

        A configured timeout cancels the walks still running; they stop at
        their next check and report nothing. The caller's cancel event is
        only read, never set.
        """
        twist = twist_curve()
        solver = DiscreteLogSolver(twist, self.config.solver)
        event = _CancelScope(cancel)

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {
                executor.submit(self._solve_modulus, point, q, twist, solver, event): q
                for q in moduli
            }
            _, pending = concurrent.futures.wait(futures, timeout=self.config.timeout)
            if pending:
                logger.warning(
                    "timeout after %ss; cancelling moduli %s",
                    self.config.timeout, sorted(futures[f] for f in pending),
                )
                event.set()
            reports = {futures[f]: f.result() for f in futures}
        return [reports[q] for q in moduli]

    def analyze(
        self,
        request: AnalysisRequest,
        cancel: threading.Event | None = None,
    ) -> AnalysisResult:
        """Classify the public key and, on the twist, harvest key fragments.

        Raises:
            MalformedInput: the request's public key cannot be decoded.
        """
        point = request_point(request)
        membership = classify_point(point)
        if request.on_main_curve is not None and request.on_main_curve != (
            membership is CurveMembership.MAIN
        ):
            logger.warning("curve hint on_main_curve=%s disagrees with the point", request.on_main_curve)

        if membership is CurveMembership.MAIN:
            return AnalysisResult(
                vulnerability_type=VulnerabilityType.NONE,
                public_key=point,
                signature=request.signature,
                message="public key is on secp256k1",
                txid=request.txid,
            )
        if membership is CurveMembership.NEITHER:
            return AnalysisResult(
                vulnerability_type=VulnerabilityType.INVALID,
                public_key=point,
                signature=request.signature,
                status="rejected",
                message="public key is on neither secp256k1 nor its twist",
                txid=request.txid,
            )

        twist = twist_curve()
        moduli, skipped = self.worklist(twist)
        reports = self.solve_subgroups(point, moduli, cancel)
        found = [Congruence(r.modulus, r.remainder) for r in reports if r.found]

        key_id = public_key_id(point)
        fragments = self.store.merge(key_id, found)
        recovered = None
        if has_sufficient_fragments(fragments):
            try:
                recovered = recover_key(fragments, point)
            except (InsufficientFragments, OutOfRange) as exc:
                logger.warning("stored fragments for %s... give no key: %s", key_id[:16], exc)
            else:
                self.store.set_recovered(key_id, recovered)

        if any(r.cancelled for r in reports):
            status = "cancelled"
        elif len(found) < len(moduli):
            status = "partial"
        else:
            status = "completed"
        message = (
            f"{len(found)}/{len(moduli)} congruences; "
            f"{len(fragments)} stored for this key covering {fragments.product.bit_length()} bits"
        )
        logger.info("analysis of %s...: %s", key_id[:16], message)

        return AnalysisResult(
            vulnerability_type=VulnerabilityType.TWISTED_CURVE,
            public_key=point,
            signature=request.signature,
            twist_order=twist.n,
            prime_factors_used=[c.modulus for c in found],
            congruences=found,
            recovered_key=recovered,
            status=status,
            message=message,
            txid=request.txid,
            solve_reports=reports,
            dropped_moduli=skipped,
        )
