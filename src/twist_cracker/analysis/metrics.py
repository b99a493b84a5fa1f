"""Observable metrics from discrete log solves."""

from __future__ import annotations

import math

import numpy as np

from twist_cracker.utils.types import SolveMethod, SolveReport


class SolveMetrics:
    """Summarize a batch of solve reports.

    Takes the per-modulus SolveReports of one or more analyses and
    produces the numbers the CLI prints and exports.
    """

    def __init__(self, reports: list[SolveReport]) -> None:
        self.reports = reports

    def method_counts(self) -> dict[str, int]:
        counts = {method.value: 0 for method in SolveMethod}
        for r in self.reports:
            counts[r.method.value] += 1
        return counts

    def step_stats(self) -> dict:
        """Group operations spent per solve.

        Returns dict with mean/std/min/max of steps, plus the ratio of
        steps to sqrt(q), which stays near a constant for the square-root
        tiers.
        """
        if not self.reports:
            return {
                "count": 0,
                "steps_mean": 0.0,
                "steps_std": 0.0,
                "steps_min": 0,
                "steps_max": 0,
                "sqrt_ratio_mean": 0.0,
            }

        steps = np.array([r.steps for r in self.reports], dtype=np.float64)
        roots = np.sqrt(np.array([r.modulus for r in self.reports], dtype=np.float64))

        return {
            "count": len(self.reports),
            "steps_mean": float(np.mean(steps)),
            "steps_std": float(np.std(steps)),
            "steps_min": int(np.min(steps)),
            "steps_max": int(np.max(steps)),
            "sqrt_ratio_mean": float(np.mean(steps / roots)),
        }

    def success_rate(self) -> float:
        if not self.reports:
            return 0.0
        found = np.array([r.found for r in self.reports], dtype=bool)
        return float(np.mean(found))

    def total_elapsed(self) -> float:
        return float(np.sum([r.elapsed for r in self.reports]))

    def recovered_bits(self) -> float:
        """log2 of the product of the distinct moduli solved."""
        moduli = {r.modulus for r in self.reports if r.found}
        return float(sum(math.log2(m) for m in moduli))

    def full_report(self) -> dict:
        """Aggregate all metrics into a single report."""
        return {
            "method_counts": self.method_counts(),
            "step_stats": self.step_stats(),
            "success_rate": self.success_rate(),
            "total_elapsed": self.total_elapsed(),
            "recovered_bits": self.recovered_bits(),
            "cancelled": sum(1 for r in self.reports if r.cancelled),
        }
