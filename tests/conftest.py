"""Shared fixtures: the curve pair and small twist subgroups."""

import pytest

from twist_cracker.core.curves import main_curve, twist_curve
from twist_cracker.core.ec_arith import scalar_multiply
from twist_cracker.utils.types import CurveParameters


@pytest.fixture(scope="session")
def secp256k1() -> CurveParameters:
    return main_curve()


@pytest.fixture(scope="session")
def twist() -> CurveParameters:
    return twist_curve()


@pytest.fixture(scope="session")
def subgroup_base(twist):
    """(e/q) * G' for a prime q dividing the twist order; a point of order q.

    e is the order of G', the twist group exponent n'/3.
    """
    cache = {}

    def base(q: int):
        if q not in cache:
            cache[q] = scalar_multiply(twist.generator_order // q, twist.generator, twist)
        return cache[q]

    return base
