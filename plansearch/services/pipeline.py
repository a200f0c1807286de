"""Generator -> Amplifier -> Selector pipeline shared by the services."""

from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Callable

from plansearch.config.optimization_config_loader import OptimizationConfig
from plansearch.core.deadline import Deadline
from plansearch.core.exceptions import SelectionDriftFallback
from plansearch.ml.scoring.plan_scorer import GlobalPlanScorer
from plansearch.services.amplifier import ScoreFn, amplify
from plansearch.services.candidate_generator import generate
from plansearch.services.optimization_types import (
    Population,
    RandomSource,
    SelectionOutcome,
    UserProfile,
)
from plansearch.services.selector import select_with_outcome

ScoreFnFactory = Callable[[UserProfile], ScoreFn]


@dataclass(frozen=True)
class PipelineOutcome:
    population: Population
    selection: SelectionOutcome

    @property
    def anomalies(self) -> tuple[str, ...]:
        if self.selection.drift_fallback:
            return self.population.anomalies + (SelectionDriftFallback.name,)
        return self.population.anomalies


def default_score_fn(profile: UserProfile, config: OptimizationConfig) -> ScoreFn:
    return GlobalPlanScorer(profile, config)


def run_pipeline(
    profile: UserProfile,
    rng: RandomSource,
    *,
    config: OptimizationConfig,
    population_size: int,
    score_fn: ScoreFn | None = None,
    rounds: int | None = None,
    threshold: float | None = None,
    executor: Executor | None = None,
    deadline: Deadline | None = None,
) -> PipelineOutcome:
    """Generate, amplify and sample once for a single profile."""
    population = generate(
        profile, population_size, rng, config=config, deadline=deadline
    )
    population = amplify(
        population,
        score_fn or default_score_fn(profile, config),
        rounds=rounds if rounds is not None else config.amplifier.rounds,
        threshold=threshold if threshold is not None else config.amplifier.suppression_threshold,
        amplification_base=config.amplifier.amplification_base,
        executor=executor,
        deadline=deadline,
    )
    return PipelineOutcome(
        population=population,
        selection=select_with_outcome(population, rng),
    )
