"""
Amplifier

Re-weights a population with a fit score and prunes weak candidates.

Each round:
1. Score every candidate (score clamped to [0, 1])
2. Multiply its weight by amplification_base + score
3. Drop candidates whose renormalized weight falls below the threshold
4. If nothing survives, keep the single highest-weight candidate
5. Rescale survivors so their weights sum to 1

Rounds run strictly in sequence; each starts from the weights the previous
round produced.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Callable

from plansearch.core.deadline import Deadline
from plansearch.core.exceptions import ConfigurationError, PopulationExhaustedWarning
from plansearch.services.optimization_types import CandidatePlan, Population

logger = logging.getLogger(__name__)

ScoreFn = Callable[[CandidatePlan], float]


def _score_all(
    population: Population, score_fn: ScoreFn, executor: Executor | None
) -> list[float]:
    if executor is None:
        scores = [score_fn(plan) for plan in population.plans]
    else:
        # Executor.map yields results in submission order
        scores = list(executor.map(score_fn, population.plans))
    return [min(max(float(score), 0.0), 1.0) for score in scores]


def suppress(population: Population, threshold: float) -> Population:
    """Drop candidates whose normalized weight is below threshold.

    Removing candidates only shrinks the total, so every survivor stays at or
    above the threshold after renormalization.
    """
    total = population.total_weight
    survivors = [plan for plan in population.plans if plan.weight / total >= threshold]
    if survivors:
        return population.with_plans(survivors)

    best = population.best()
    logger.warning(
        f"Suppression at threshold {threshold} would empty a population of "
        f"{len(population)}; keeping the top candidate (weight {best.weight:.4f})"
    )
    return population.with_plans([best], anomaly=PopulationExhaustedWarning.name)


def rescale(population: Population) -> Population:
    """Divide every weight by the total; probabilities are unchanged."""
    total = population.total_weight
    return population.with_plans(
        [plan.with_weight(plan.weight / total) for plan in population.plans]
    )


def amplify_round(
    population: Population,
    score_fn: ScoreFn,
    *,
    threshold: float,
    amplification_base: float,
    executor: Executor | None = None,
) -> Population:
    scores = _score_all(population, score_fn, executor)
    boosted = [
        plan.with_weight(plan.weight * (amplification_base + score))
        for plan, score in zip(population.plans, scores)
    ]
    return rescale(suppress(population.with_plans(boosted), threshold))


def amplify(
    population: Population,
    score_fn: ScoreFn,
    *,
    rounds: int = 1,
    threshold: float = 0.05,
    amplification_base: float = 0.5,
    executor: Executor | None = None,
    deadline: Deadline | None = None,
) -> Population:
    """Re-weight and prune a population.

    Args:
        population: Population to refine.
        score_fn: Heuristic fitness-to-goal score in [0, 1] for a plan.
        rounds: Number of sequential amplification rounds.
        threshold: Minimum normalized weight a candidate needs to survive.
        amplification_base: Weight multiplier is amplification_base + score.
        executor: Optional executor used to score candidates in parallel.
        deadline: Optional budget checked before every round.

    Returns:
        A non-empty Population whose survivors all meet the threshold.

    Raises:
        ConfigurationError: If rounds, threshold or amplification_base are invalid.
        BudgetExceededError: If the deadline expires between rounds.
    """
    if isinstance(rounds, bool) or not isinstance(rounds, int) or rounds < 1:
        raise ConfigurationError(
            f"rounds must be a positive integer, got {rounds!r}",
            details={"rounds": repr(rounds)},
        )
    if not 0 <= threshold < 1:
        raise ConfigurationError(
            f"threshold must be in [0, 1), got {threshold}",
            details={"threshold": threshold},
        )
    if amplification_base <= 0:
        raise ConfigurationError(
            f"amplification_base must be > 0, got {amplification_base}",
            details={"amplification_base": amplification_base},
        )

    current = population
    for round_index in range(rounds):
        if deadline is not None:
            deadline.check(f"amplification round {round_index + 1}")
        before = len(current)
        current = amplify_round(
            current,
            score_fn,
            threshold=threshold,
            amplification_base=amplification_base,
            executor=executor,
        )
        logger.debug(
            f"Amplification round {round_index + 1}/{rounds}: "
            f"{before} -> {len(current)} candidates, coherence={current.coherence:.3f}"
        )

    return current
