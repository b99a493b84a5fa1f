"""Tests for the Chinese Remainder combiner."""

import numpy as np
import pytest

from twist_cracker.core.crt import (
    combine,
    combine_strict,
    has_sufficient_fragments,
    select_coprime_moduli,
)
from twist_cracker.core.key_recovery import normalize
from twist_cracker.exceptions import InsufficientFragments, NotCoprime
from twist_cracker.utils.constants import REFERENCE_MODULI, REFERENCE_REMAINDERS, SECP256K1_N
from twist_cracker.utils.types import Congruence

REFERENCE = [Congruence(m, r) for m, r in zip(REFERENCE_MODULI, REFERENCE_REMAINDERS)]
REFERENCE_VALUE = 6822938631949731
REFERENCE_PRODUCT = 31249487656358033


def fragments_of(key: int, moduli) -> list[Congruence]:
    return [Congruence(m, key % m) for m in moduli]


class TestReferenceSet:
    def test_value(self):
        result = combine(REFERENCE)
        assert result.value == REFERENCE_VALUE
        assert result.modulus == REFERENCE_PRODUCT
        assert result.dropped == []

    def test_satisfies_every_congruence(self):
        value = combine(REFERENCE).value
        for c in REFERENCE:
            assert value % c.modulus == c.remainder

    def test_hex(self):
        assert normalize(combine(REFERENCE).value) == "0" * 50 + "183d6d317b4da3"

    def test_six_moduli(self):
        result = combine(REFERENCE[:6])
        assert result.modulus == 1741209542339
        assert result.value == 879645065529

    def test_drop_first_and_last(self):
        result = combine(REFERENCE[1:7])
        assert result.modulus == 2258400495509
        assert result.value == 310735017042

    def test_order_does_not_matter(self):
        assert combine(list(reversed(REFERENCE))).value == REFERENCE_VALUE

    def test_insufficient_for_secp256k1(self):
        assert not has_sufficient_fragments(REFERENCE)


class TestCombine:
    def test_small(self):
        # x = 2 mod 3, 3 mod 5, 2 mod 7 -> 23
        result = combine([Congruence(3, 2), Congruence(5, 3), Congruence(7, 2)])
        assert result.value == 23
        assert result.modulus == 105

    def test_single(self):
        result = combine([Congruence(101, 45)])
        assert (result.value, result.modulus) == (45, 101)

    def test_empty(self):
        with pytest.raises(InsufficientFragments):
            combine([])

    def test_recovers_random_keys(self):
        rng = np.random.default_rng(42)
        moduli = [3, 13, 3319, 22639]
        bound = 3 * 13 * 3319 * 22639
        for key in rng.integers(0, bound, size=10):
            key = int(key)
            assert combine(fragments_of(key, moduli)).value == key

    def test_non_coprime_falls_back(self):
        result = combine([Congruence(6, 5), Congruence(35, 12), Congruence(10, 7)])
        # greedy keeps 35, then 6 (coprime with 35); 10 shares factors with both
        assert sorted(c.modulus for c in result.used) == [6, 35]
        assert [c.modulus for c in result.dropped] == [10]
        assert result.value % 6 == 5
        assert result.value % 35 == 12

    def test_duplicate_agreeing_moduli_merge(self):
        result = combine([Congruence(7, 3), Congruence(7, 3), Congruence(11, 4)])
        assert result.modulus == 77
        assert result.dropped == []

    def test_duplicate_conflicting_moduli_drop(self):
        result = combine([Congruence(7, 3), Congruence(7, 4), Congruence(11, 4)])
        assert result.modulus == 11
        assert result.value == 4
        assert sorted(c.remainder for c in result.dropped) == [3, 4]

    def test_all_conflicting(self):
        with pytest.raises(InsufficientFragments):
            combine([Congruence(7, 3), Congruence(7, 4)])


class TestCombineStrict:
    def test_coprime(self):
        assert combine_strict(REFERENCE).value == REFERENCE_VALUE

    def test_not_coprime(self):
        with pytest.raises(NotCoprime) as info:
            combine_strict([Congruence(6, 1), Congruence(9, 4)])
        assert info.value.pair == (6, 9)

    def test_repeated_modulus(self):
        with pytest.raises(NotCoprime) as info:
            combine_strict([Congruence(7, 3), Congruence(7, 4)])
        assert info.value.pair == (7, 7)

    def test_empty(self):
        with pytest.raises(InsufficientFragments):
            combine_strict([])


class TestSufficiency:
    def test_empty(self):
        assert not has_sufficient_fragments([])

    def test_product_must_exceed_order(self):
        big = Congruence(SECP256K1_N, 1)
        assert not has_sufficient_fragments([big])
        assert has_sufficient_fragments([big, Congruence(2, 1)])

    def test_custom_order(self):
        assert has_sufficient_fragments(REFERENCE[:2], curve_order=101 * 103 - 1)
        assert not has_sufficient_fragments(REFERENCE[:2], curve_order=101 * 103)

    def test_duplicates_counted_once(self):
        assert not has_sufficient_fragments([Congruence(11, 1), Congruence(11, 1)], curve_order=100)


class TestSelectCoprimeModuli:
    def test_descending_greedy(self):
        assert select_coprime_moduli([6, 35, 10, 11]) == [35, 11, 6]

    def test_stops_at_target(self):
        assert select_coprime_moduli(REFERENCE_MODULI, target_product=137 * 131) == [137, 131, 127]

    def test_without_target_uses_everything(self):
        assert sorted(select_coprime_moduli(REFERENCE_MODULI)) == list(REFERENCE_MODULI)

    def test_repeated_modulus_kept_once(self):
        assert select_coprime_moduli([7, 7, 11]) == [11, 7]
