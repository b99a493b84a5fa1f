"""Integration tests: public key in, key fragments out."""

import logging
import threading

import pytest

from twist_cracker.core.analyzer import TwistAnalyzer, request_point
from twist_cracker.core.crt import combine
from twist_cracker.core.curves import _lift_points
from twist_cracker.core.ec_arith import multiply_generator, point_add, point_negate, scalar_multiply
from twist_cracker.core.fragment_store import InMemoryFragmentStore
from twist_cracker.core.public_key import encode_public_key, public_key_id
from twist_cracker.exceptions import MalformedInput
from twist_cracker.utils.types import (
    AnalysisConfig,
    AnalysisRequest,
    Congruence,
    Signature,
    SolveMethod,
    VulnerabilityType,
)

SECRET = 1234567891  # below 3 * 13 * 3319 * 22639
SIGNATURE = Signature(r="1f" * 32, s="2e" * 32)


def request_for(point, **kwargs) -> AnalysisRequest:
    return AnalysisRequest(
        signature=SIGNATURE,
        x=f"{point[0]:064x}",
        y=f"{point[1]:064x}",
        **kwargs,
    )


@pytest.fixture(scope="module")
def twist_public_key(twist):
    return scalar_multiply(SECRET, twist.generator, twist)


@pytest.fixture(scope="module")
def foreign_torsion(twist, subgroup_base):
    """A point of order 3 outside the subgroup generated by (e/3)G'."""
    base = subgroup_base(3)
    inside = {base, point_negate(base, twist)}
    for point in _lift_points(twist, 1000):
        torsion = scalar_multiply(twist.generator_order // 3, point, twist)
        if torsion is not None and torsion not in inside:
            return torsion
    pytest.fail("no 3-torsion point outside <(e/3)G'> among small x")


class TestFullPipeline:
    """Analyze a twist public key produced from a known secret."""

    def test_end_to_end(self, twist, twist_public_key):
        result = TwistAnalyzer().analyze(request_for(twist_public_key, txid="aa" * 32))

        assert result.vulnerability_type is VulnerabilityType.TWISTED_CURVE
        assert result.status == "completed"
        assert result.twist_order == twist.n
        assert result.prime_factors_used == [3, 13, 3319, 22639]
        assert result.txid == "aa" * 32
        assert result.signature == SIGNATURE
        for c in result.congruences:
            assert SECRET % c.modulus == c.remainder

        assert combine(result.congruences).value == SECRET
        # 37 bits is nowhere near the 256 needed
        assert result.recovered_key is None

    def test_methods_per_modulus(self, twist_public_key):
        result = TwistAnalyzer().analyze(request_for(twist_public_key))
        methods = {r.modulus: r.method for r in result.solve_reports}
        assert methods == {
            3: SolveMethod.EXHAUSTIVE,
            13: SolveMethod.EXHAUSTIVE,
            3319: SolveMethod.BSGS,
            22639: SolveMethod.KANGAROO,
        }

    def test_sec1_request(self, twist_public_key):
        request = AnalysisRequest(
            signature=SIGNATURE, public_key=encode_public_key(twist_public_key)
        )
        result = TwistAnalyzer(config=AnalysisConfig(moduli=(3, 13))).analyze(request)
        assert [c.remainder for c in result.congruences] == [SECRET % 3, SECRET % 13]

    def test_single_worker(self, twist_public_key):
        config = AnalysisConfig(moduli=(13, 3319), max_workers=1)
        result = TwistAnalyzer(config=config).analyze(request_for(twist_public_key))
        assert [c.modulus for c in result.congruences] == [13, 3319]


class TestClassification:
    def test_main_curve_key(self, secp256k1):
        public = multiply_generator(SECRET, secp256k1)
        result = TwistAnalyzer().analyze(request_for(public))
        assert result.vulnerability_type is VulnerabilityType.NONE
        assert result.congruences == []
        assert result.recovered_key is None

    def test_point_on_neither_curve(self):
        result = TwistAnalyzer().analyze(request_for((1, 1)))
        assert result.vulnerability_type is VulnerabilityType.INVALID
        assert result.status == "rejected"

    def test_missing_public_key(self):
        with pytest.raises(MalformedInput):
            TwistAnalyzer().analyze(AnalysisRequest(signature=SIGNATURE))

    def test_request_point_prefers_coordinates(self, secp256k1):
        request = AnalysisRequest(
            signature=SIGNATURE,
            x=f"{secp256k1.gx:x}",
            y=f"{secp256k1.gy:x}",
            public_key="garbage",
        )
        assert request_point(request) == secp256k1.generator

    def test_hint_mismatch_logged(self, twist_public_key, caplog):
        analyzer = TwistAnalyzer(config=AnalysisConfig(moduli=(3,)))
        with caplog.at_level(logging.WARNING, logger="twist_cracker.core.analyzer"):
            analyzer.analyze(request_for(twist_public_key, on_main_curve=True))
        assert "disagrees" in caplog.text


class TestWorklist:
    def test_non_dividing_moduli_skipped(self, twist_public_key):
        config = AnalysisConfig(moduli=(3, 7, 13, 101))
        result = TwistAnalyzer(config=config).analyze(request_for(twist_public_key))
        assert result.dropped_moduli == [7, 101]
        assert [c.modulus for c in result.congruences] == [3, 13]

    def test_duplicates_solved_once(self, twist):
        analyzer = TwistAnalyzer(config=AnalysisConfig(moduli=(13, 13, 3)))
        usable, skipped = analyzer.worklist(twist)
        assert usable == [13, 3]
        assert skipped == []

    def test_default_worklist(self, twist):
        usable, skipped = TwistAnalyzer().worklist(twist)
        assert usable == [3, 13, 3319, 22639]
        assert skipped == []


class TestFragmentAccumulation:
    def test_fragments_accumulate_per_key(self, twist_public_key):
        store = InMemoryFragmentStore()
        TwistAnalyzer(store, AnalysisConfig(moduli=(3, 13))).analyze(request_for(twist_public_key))
        TwistAnalyzer(store, AnalysisConfig(moduli=(3319,))).analyze(request_for(twist_public_key))

        fragments = store.get(public_key_id(twist_public_key))
        assert sorted(fragments.moduli) == [3, 13, 3319]
        record = store.record(public_key_id(twist_public_key))
        assert record["modulo_values"]["0xcf7"] == hex(SECRET % 3319)

    def test_recovery_once_sufficient(self, twist_public_key):
        store = InMemoryFragmentStore()
        key_id = public_key_id(twist_public_key)
        # fragments for the same key leaked elsewhere
        large = [2**127 - 1, 2**89 - 1, 2**61 - 1]
        store.merge(key_id, [Congruence(m, SECRET % m) for m in large])

        result = TwistAnalyzer(store, AnalysisConfig(moduli=(3, 13))).analyze(
            request_for(twist_public_key)
        )
        assert result.recovered_key is not None
        assert result.recovered_key.value == SECRET
        assert result.recovered_key.verified
        assert store.recovered(key_id) == result.recovered_key

    def test_dropped_moduli_block_recovery(self, twist_public_key, caplog):
        store = InMemoryFragmentStore()
        key_id = public_key_id(twist_public_key)
        r61 = 2**61 - 1
        # enough bits in total, but only one of the r61 multiples survives combination
        shared = [r61 * 5, r61 * 7, 2**127 - 1]
        store.merge(key_id, [Congruence(m, SECRET % m) for m in shared])

        with caplog.at_level(logging.WARNING, logger="twist_cracker.core.analyzer"):
            result = TwistAnalyzer(store, AnalysisConfig(moduli=(3, 13))).analyze(
                request_for(twist_public_key)
            )
        assert result.recovered_key is None
        assert store.recovered(key_id) is None
        assert "give no key" in caplog.text


class TestCancellation:
    def test_preset_cancel(self, twist_public_key):
        cancel = threading.Event()
        cancel.set()
        result = TwistAnalyzer().analyze(request_for(twist_public_key), cancel=cancel)
        assert result.status == "cancelled"
        assert result.congruences == []
        assert all(r.cancelled for r in result.solve_reports)

    def test_timeout_cancels(self, twist_public_key):
        config = AnalysisConfig(moduli=(22639,), timeout=0.0)
        result = TwistAnalyzer(config=config).analyze(request_for(twist_public_key))
        assert result.status == "cancelled"
        assert result.congruences == []

    def test_caller_event_left_untouched(self, twist_public_key):
        cancel = threading.Event()
        config = AnalysisConfig(moduli=(22639,), timeout=0.0)
        result = TwistAnalyzer(config=config).analyze(request_for(twist_public_key), cancel=cancel)
        assert result.status == "cancelled"
        assert not cancel.is_set()


class TestThreeTorsion:
    """The 3-torsion of the twist is Z/3 x Z/3, not cyclic."""

    def test_key_in_generator_subgroup(self, twist_public_key):
        result = TwistAnalyzer(config=AnalysisConfig(moduli=(3,))).analyze(
            request_for(twist_public_key)
        )
        assert result.congruences == [Congruence(3, SECRET % 3)]

    def test_foreign_component_gives_no_remainder(self, twist, foreign_torsion):
        point = point_add(scalar_multiply(SECRET, twist.generator, twist), foreign_torsion, twist)
        config = AnalysisConfig(moduli=(3, 13, 3319))
        result = TwistAnalyzer(config=config).analyze(request_for(point))

        reports = {r.modulus: r for r in result.solve_reports}
        assert reports[3].remainder is None
        assert not reports[3].cancelled
        assert result.status == "partial"
        assert result.congruences == [Congruence(13, SECRET % 13), Congruence(3319, SECRET % 3319)]

    def test_torsion_point_alone(self, foreign_torsion):
        result = TwistAnalyzer(config=AnalysisConfig(moduli=(3, 13))).analyze(
            request_for(foreign_torsion)
        )
        # projects to infinity mod 13, so 0 there is the true logarithm
        assert [c.modulus for c in result.congruences] == [13]
        assert result.congruences[0].remainder == 0
