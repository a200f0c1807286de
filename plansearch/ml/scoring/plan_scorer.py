"""Weighted multi-dimension scorer for candidate workout plans.

This module provides the default score function used by the amplifier. A
plan is evaluated along several dimensions, each producing a score in
[0, 1]; the total is the weighted mean with weights normalized to sum to 1.

Dimensions:
- exercise_fitness: mean per-exercise fitness score
- goal_alignment: share of exercises serving at least one of the user's goals
- intensity_fit: closeness of the plan intensity to the user's target
- duration_fit: closeness of the plan duration to the preferred session length
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from plansearch.config.optimization_config_loader import (
    OptimizationConfig,
    get_optimization_config,
)
from plansearch.services.candidate_generator import target_intensity
from plansearch.services.optimization_types import CandidatePlan, UserProfile

logger = logging.getLogger(__name__)


@dataclass
class ScoringContext:
    """Per-profile data shared by all dimension evaluators."""

    profile: UserProfile
    goal_tags_by_exercise: dict[str, frozenset[str]]
    target_intensity: float
    no_goal_score: float


@dataclass
class ScoringDimension:
    """One scoring dimension.

    Attributes:
        name: Dimension identifier (e.g. 'goal_alignment')
        evaluator: Callable returning a score in [0, 1] for a plan
        weight: Raw weight from configuration
        enabled: Whether this dimension contributes to the total
    """

    name: str
    evaluator: Callable[[CandidatePlan, ScoringContext], float]
    weight: float = 1.0
    enabled: bool = True

    def evaluate(self, plan: CandidatePlan, context: ScoringContext) -> float:
        if not self.enabled:
            return 0.0
        return min(max(self.evaluator(plan, context), 0.0), 1.0)


@dataclass
class PlanScoringResult:
    """Score breakdown for one plan."""

    total_score: float
    dimension_scores: dict[str, float]
    normalized_weights: dict[str, float] = field(default_factory=dict)

    def get_top_dimensions(self, n: int = 2) -> list[tuple[str, float]]:
        weighted = [
            (name, score * self.normalized_weights.get(name, 0.0))
            for name, score in self.dimension_scores.items()
        ]
        return sorted(weighted, key=lambda x: -x[1])[:n]


def _exercise_fitness(plan: CandidatePlan, context: ScoringContext) -> float:
    return sum(ex.fitness_score for ex in plan.exercises) / len(plan.exercises)


def _goal_alignment(plan: CandidatePlan, context: ScoringContext) -> float:
    goals = set(context.profile.goals)
    if not goals:
        return context.no_goal_score
    matched = 0
    for ex in plan.exercises:
        tags = context.goal_tags_by_exercise.get(ex.id, frozenset()) | {ex.category}
        if goals & tags:
            matched += 1
    return matched / len(plan.exercises)


def _intensity_fit(plan: CandidatePlan, context: ScoringContext) -> float:
    return 1.0 - abs(plan.intensity - context.target_intensity)


def _duration_fit(plan: CandidatePlan, context: ScoringContext) -> float:
    target = context.profile.session_minutes
    return max(1.0 - abs(plan.duration_minutes - target) / target, 0.0)


DIMENSION_EVALUATORS: dict[str, Callable[[CandidatePlan, ScoringContext], float]] = {
    "exercise_fitness": _exercise_fitness,
    "goal_alignment": _goal_alignment,
    "intensity_fit": _intensity_fit,
    "duration_fit": _duration_fit,
}


class GlobalPlanScorer:
    """Default plan scorer built from the scoring section of the configuration.

    Instances are bound to one profile and are callable, so they can be passed
    directly as the amplifier's score function.

    Example:
        >>> scorer = GlobalPlanScorer(profile)
        >>> population = amplify(population, scorer)
        >>> scorer.score_plan(plan).get_top_dimensions()
    """

    def __init__(
        self,
        profile: UserProfile,
        config: OptimizationConfig | None = None,
        pool_tags: dict[str, frozenset[str]] | None = None,
    ) -> None:
        self._config = config or get_optimization_config()
        self._dimensions: dict[str, ScoringDimension] = {}
        self._context = ScoringContext(
            profile=profile,
            goal_tags_by_exercise=pool_tags or self._pool_tags(profile, self._config),
            target_intensity=target_intensity(profile, self._config.generator),
            no_goal_score=self._config.generator.no_goal_affinity,
        )
        self._initialize_dimensions()

    @staticmethod
    def _pool_tags(
        profile: UserProfile, config: OptimizationConfig
    ) -> dict[str, frozenset[str]]:
        if profile.exercise_pool is not None:
            return {t.id: frozenset(t.goal_tags) for t in profile.exercise_pool}
        return {t.id: frozenset(t.goal_tags) for t in config.default_exercise_pool}

    def _initialize_dimensions(self) -> None:
        for name, dimension_config in self._config.scoring.dimensions.items():
            evaluator = DIMENSION_EVALUATORS.get(name)
            if evaluator is None:
                logger.warning(f"Ignoring unknown scoring dimension '{name}'")
                continue
            self._dimensions[name] = ScoringDimension(
                name=name,
                evaluator=evaluator,
                weight=dimension_config.weight,
                enabled=dimension_config.enabled,
            )

        total = sum(d.weight for d in self._dimensions.values() if d.enabled)
        self._normalized_weights = {
            name: (d.weight / total if d.enabled and total > 0 else 0.0)
            for name, d in self._dimensions.items()
        }

    @property
    def normalized_weights(self) -> dict[str, float]:
        return dict(self._normalized_weights)

    def score_plan(self, plan: CandidatePlan) -> PlanScoringResult:
        dimension_scores = {
            name: dimension.evaluate(plan, self._context)
            for name, dimension in self._dimensions.items()
        }
        total = sum(
            score * self._normalized_weights[name]
            for name, score in dimension_scores.items()
        )
        return PlanScoringResult(
            total_score=min(max(total, 0.0), 1.0),
            dimension_scores=dimension_scores,
            normalized_weights=dict(self._normalized_weights),
        )

    def score(self, plan: CandidatePlan) -> float:
        return self.score_plan(plan).total_score

    def __call__(self, plan: CandidatePlan) -> float:
        return self.score(plan)
