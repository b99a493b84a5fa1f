"""Chinese Remainder combination of private key fragments.

Each fragment says key = r_i (mod m_i). For pairwise coprime m_i there is
exactly one solution modulo M = prod(m_i); it equals the key itself only
once M exceeds the curve order n.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from twist_cracker.exceptions import InsufficientFragments, NotCoprime
from twist_cracker.utils.constants import SECP256K1_N
from twist_cracker.utils.math_helpers import all_pairwise_coprime, gcd, mod_inverse, product
from twist_cracker.utils.types import Congruence, CRTResult

logger = logging.getLogger(__name__)


def select_coprime_moduli(
    candidates: Iterable[int], target_product: int | None = None
) -> list[int]:
    """Greedy pairwise-coprime subset, largest moduli first.

    A candidate is kept if it is coprime with everything kept so far.
    Selection stops as soon as the product exceeds target_product (when
    given), otherwise every candidate is considered.
    """
    selected: list[int] = []
    running = 1
    for m in sorted(candidates, reverse=True):
        if all(gcd(m, kept) == 1 for kept in selected):
            selected.append(m)
            running *= m
            if target_product is not None and running > target_product:
                break
    return selected


def has_sufficient_fragments(
    fragments: Iterable[Congruence], curve_order: int = SECP256K1_N
) -> bool:
    """True iff the product of the distinct moduli strictly exceeds curve_order."""
    moduli = {c.modulus for c in fragments}
    return product(moduli) > curve_order


def _split_conflicts(items: list[Congruence]) -> tuple[list[Congruence], list[Congruence]]:
    """Collapse repeated moduli.

    Repeats that agree are merged. Repeats that disagree contradict each
    other, so every congruence for that modulus is dropped.
    """
    groups: dict[int, list[Congruence]] = {}
    for c in items:
        groups.setdefault(c.modulus, []).append(c)
    kept: list[Congruence] = []
    dropped: list[Congruence] = []
    for modulus, group in groups.items():
        if len({c.remainder for c in group}) == 1:
            kept.append(group[0])
        else:
            logger.warning(
                "conflicting remainders %s for modulus %d; dropping all of them",
                sorted(c.remainder for c in group), modulus,
            )
            dropped.extend(group)
    return kept, dropped


def _solve(congruences: list[Congruence]) -> tuple[int, int]:
    modulus = product(c.modulus for c in congruences)
    total = 0
    for c in congruences:
        partial = modulus // c.modulus
        total += c.remainder * partial * mod_inverse(partial, c.modulus)
    return total % modulus, modulus


def combine(congruences: Iterable[Congruence]) -> CRTResult:
    """Combine fragments into one value modulo the product of their moduli.

    Non-coprime moduli do not abort the combination: the greedy coprime
    subset is combined and the rest is reported in CRTResult.dropped.

    Raises:
        InsufficientFragments: nothing usable is left to combine.
    """
    kept, dropped = _split_conflicts(list(congruences))

    moduli = [c.modulus for c in kept]
    if not all_pairwise_coprime(moduli):
        selected = set(select_coprime_moduli(moduli))
        excluded = [c for c in kept if c.modulus not in selected]
        logger.warning(
            "moduli are not pairwise coprime; dropping %s",
            [c.modulus for c in excluded],
        )
        dropped.extend(excluded)
        kept = [c for c in kept if c.modulus in selected]

    if not kept:
        raise InsufficientFragments(1)

    value, modulus = _solve(kept)
    logger.debug("crt: %d congruences -> %d mod %d", len(kept), value, modulus)
    return CRTResult(value=value, modulus=modulus, used=kept, dropped=dropped)


def combine_strict(congruences: Iterable[Congruence]) -> CRTResult:
    """Like combine, but raise NotCoprime instead of degrading to a subset."""
    items = list(congruences)
    if not items:
        raise InsufficientFragments(1)
    for i in range(len(items)):
        for j in range(i + 1, len(items)):
            if gcd(items[i].modulus, items[j].modulus) != 1:
                raise NotCoprime(items[i].modulus, items[j].modulus)
    value, modulus = _solve(items)
    return CRTResult(value=value, modulus=modulus, used=items)
