"""
Selector

Roulette-wheel sampling over a weighted population using an injected random
source. The walk returns the first candidate whose cumulative weight exceeds
the draw; if floating-point drift lets the walk run off the end, the last
candidate is returned instead.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from plansearch.core.exceptions import SelectionDriftFallback
from plansearch.services.optimization_types import (
    CandidatePlan,
    Population,
    RandomSource,
    SelectionOutcome,
)

logger = logging.getLogger(__name__)


def select_with_outcome(population: Population, rng: RandomSource) -> SelectionOutcome:
    """Draw one candidate and report how it was picked."""
    total = population.total_weight
    r = rng.random() * total

    cumulative = 0.0
    for index, plan in enumerate(population.plans):
        cumulative += plan.weight
        if cumulative > r:
            return SelectionOutcome(plan=plan, index=index)

    last = len(population.plans) - 1
    logger.warning(
        f"{SelectionDriftFallback.__name__}: cumulative weight {cumulative!r} never "
        f"exceeded draw {r!r}; returning the last candidate"
    )
    return SelectionOutcome(plan=population.plans[last], index=last, drift_fallback=True)


def select(population: Population, rng: RandomSource) -> CandidatePlan:
    """Draw one candidate; the result is always a member of the population."""
    return select_with_outcome(population, rng).plan


def refine_selected(plan: CandidatePlan, factor: float) -> CandidatePlan:
    """Boost the chosen plan's per-exercise fitness scores, capped at 1.

    Applied after selection; it never influences which plan is chosen.
    """
    if factor == 1:
        return plan
    exercises = tuple(
        replace(ex, fitness_score=min(1.0, ex.fitness_score * factor))
        for ex in plan.exercises
    )
    return replace(plan, exercises=exercises)
