"""
Advantage Estimator

Illustrative telemetry comparing an exhaustive-search cost model against the
cost of one sampling pass. Computed strictly after selection; the numbers are
informational only and never influence which plan is chosen.
"""

from __future__ import annotations

import math

from plansearch.config.optimization_config_loader import (
    AdvantageConfig,
    get_optimization_config,
)
from plansearch.services.optimization_types import AdvantageMetrics, CandidatePlan


def classical_cost_estimate(plan: CandidatePlan, config: AdvantageConfig) -> float:
    """Exhaustive-search cost, exponential in the number of exercises and capped."""
    n = len(plan.exercises)
    # (2 ** n) * unit raises OverflowError for n > 1023
    if n >= math.log2(config.classical_cost_cap_ms / config.classical_unit_cost_ms):
        return config.classical_cost_cap_ms
    return min((2 ** n) * config.classical_unit_cost_ms, config.classical_cost_cap_ms)


def estimate_advantage(
    selected: CandidatePlan, *, config: AdvantageConfig | None = None
) -> AdvantageMetrics:
    config = config or get_optimization_config().advantage
    classical = classical_cost_estimate(selected, config)
    sampled = config.sampled_cost_ms

    return AdvantageMetrics(
        speedup_factor=classical / sampled,
        accuracy_improvement=min(max(1.0 - sampled / classical, 0.0), 1.0),
        energy_efficiency=classical / (classical + sampled),
    )


def neutral_advantage() -> AdvantageMetrics:
    """Telemetry attached to degraded results: no speedup claimed."""
    return AdvantageMetrics(speedup_factor=1.0, accuracy_improvement=0.0, energy_efficiency=0.0)
