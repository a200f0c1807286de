"""
Plan Optimization Service

Caller-facing facade over the search engine. Wires the generator, amplifier
and selector into one request, attaches the advantage telemetry, and applies
the request's wall-clock budget.

Requests are stateless and independent; each gets its own random source.
An explicit rng wins, then an explicit seed, then the configured default seed;
otherwise a fresh unseeded source is created for the request.

When a request runs out of time the service returns the precomputed default
plan from configuration, marked degraded so callers can tell it apart from an
optimized result. Invalid input (empty pool, malformed plateau, bad
population size) is never masked by the fallback and propagates to the caller.

Example:
    >>> service = PlanOptimizationService()
    >>> result = service.optimize(profile, seed=42)
    >>> result.plan.intensity, result.advantage.speedup_factor
"""

from __future__ import annotations

import asyncio
import random
import time
import uuid
from concurrent.futures import Executor
from functools import lru_cache
from typing import Callable

from plansearch.config.optimization_config_loader import (
    FallbackPlanConfig,
    OptimizationConfig,
    get_optimization_config,
)
from plansearch.config.settings import Settings, get_settings
from plansearch.core.deadline import Deadline
from plansearch.core.exceptions import BudgetExceededError, TimeoutFallback
from plansearch.core.logging import get_logger
from plansearch.services import escape as escape_engine
from plansearch.services import pairing as pairing_engine
from plansearch.services.advantage import estimate_advantage, neutral_advantage
from plansearch.services.amplifier import ScoreFn
from plansearch.services.optimization_types import (
    CandidateExercise,
    CandidatePlan,
    EscapeResult,
    OptimizationResult,
    PairingResult,
    PlateauDescription,
    RandomSource,
    UserProfile,
)
from plansearch.services.pipeline import ScoreFnFactory, run_pipeline
from plansearch.services.selector import refine_selected

logger = get_logger(__name__)

_UNSET = object()


def build_fallback_plan(config: FallbackPlanConfig) -> CandidatePlan:
    """Deterministic default plan; no randomness involved."""
    return CandidatePlan(
        exercises=tuple(
            CandidateExercise(
                id=ex.id,
                name=ex.name,
                category=ex.category,
                sets=ex.sets,
                reps=ex.reps,
                load=ex.load,
                fitness_score=ex.fitness_score,
            )
            for ex in config.exercises
        ),
        intensity=config.intensity,
        duration_minutes=config.duration_minutes,
        rest_periods=config.rest_periods,
        weight=config.weight,
    )


class PlanOptimizationService:
    """Stateless optimization service.

    The service holds only immutable configuration and the precomputed
    fallback plan, so one instance can serve concurrent requests as long as
    each request uses its own random source.
    """

    def __init__(
        self,
        config: OptimizationConfig | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the service.

        Args:
            config: Optimization configuration; the shared loader's config if omitted.
            settings: Environment settings; the cached settings if omitted.
            clock: Monotonic clock used for time budgets.
        """
        self._settings = settings or get_settings()
        self._config = config or get_optimization_config()
        self._clock = clock
        self._fallback_plan = build_fallback_plan(self._config.fallback_plan)
        logger.info(
            "plan_optimization_service_initialized",
            config_version=self._config.version,
            default_population_size=self._settings.default_population_size,
        )

    @property
    def config(self) -> OptimizationConfig:
        return self._config

    @property
    def fallback_plan(self) -> CandidatePlan:
        return self._fallback_plan

    def _resolve_rng(self, rng: RandomSource | None, seed: int | None) -> RandomSource:
        if rng is not None:
            return rng
        if seed is not None:
            return random.Random(seed)
        if self._settings.default_seed is not None:
            return random.Random(self._settings.default_seed)
        return random.Random()

    def _resolve_budget(self, time_budget_seconds: float | None | object) -> float | None:
        if time_budget_seconds is _UNSET:
            return self._settings.default_time_budget_seconds
        return time_budget_seconds

    def fallback_result(self, reason: str = TimeoutFallback.name) -> OptimizationResult:
        """Degraded result carrying the precomputed default plan."""
        return OptimizationResult(
            plan=self._fallback_plan,
            coherence_score=0.0,
            advantage=neutral_advantage(),
            diversity_benefit=0.0,
            degraded=True,
            fallback_reason=reason,
            anomalies=(reason,),
        )

    def fallback_pairing(self, reason: str = TimeoutFallback.name) -> PairingResult:
        return PairingResult(
            plans=(self._fallback_plan, self._fallback_plan),
            synchronization_level=1.0,
            blend_factor=self._config.pairing.blend_factor,
            degraded=True,
            fallback_reason=reason,
            anomalies=(reason,),
        )

    def optimize(
        self,
        profile: UserProfile,
        *,
        rng: RandomSource | None = None,
        seed: int | None = None,
        population_size: int | None = None,
        score_fn: ScoreFn | None = None,
        rounds: int | None = None,
        threshold: float | None = None,
        time_budget_seconds: float | None | object = _UNSET,
        executor: Executor | None = None,
    ) -> OptimizationResult:
        """Run Generator -> Amplifier -> Selector for one profile.

        Args:
            profile: User to optimize for.
            rng: Random source for this request only.
            seed: Seed for a new random source when rng is not given.
            population_size: Candidates to generate; settings default if omitted.
            score_fn: Heuristic score in [0, 1]; GlobalPlanScorer if omitted.
            rounds: Amplification rounds; config default if omitted.
            threshold: Suppression threshold; config default if omitted.
            time_budget_seconds: Wall-clock budget; None disables it.
            executor: Optional executor for parallel candidate scoring.

        Returns:
            OptimizationResult; degraded when the budget expired.

        Raises:
            EmptyExercisePoolError: If the profile has no usable exercises.
            InvalidPopulationSizeError: If population_size is not a positive integer.
        """
        log = logger.bind(request_id=uuid.uuid4().hex[:12], user_id=profile.user_id)
        deadline = Deadline(self._resolve_budget(time_budget_seconds), clock=self._clock)
        size = population_size if population_size is not None else self._settings.default_population_size

        try:
            outcome = run_pipeline(
                profile,
                self._resolve_rng(rng, seed),
                config=self._config,
                population_size=size,
                score_fn=score_fn,
                rounds=rounds,
                threshold=threshold,
                executor=executor,
                deadline=deadline,
            )
        except BudgetExceededError as e:
            log.warning("optimization_timeout_fallback", **e.details)
            return self.fallback_result()

        population = outcome.population
        plan = refine_selected(
            outcome.selection.plan, self._config.selection.refinement_factor
        )
        advantage = estimate_advantage(plan, config=self._config.advantage)

        if outcome.anomalies:
            log.warning("optimization_recovered_anomalies", anomalies=list(outcome.anomalies))
        log.info(
            "optimization_completed",
            survivors=len(population),
            selected_index=outcome.selection.index,
            exercises=len(plan.exercises),
            intensity=round(plan.intensity, 4),
            coherence=round(population.coherence, 4),
            elapsed_ms=round(deadline.elapsed() * 1000, 2),
        )

        return OptimizationResult(
            plan=plan,
            coherence_score=population.coherence,
            advantage=advantage,
            diversity_benefit=population.diversity,
            anomalies=outcome.anomalies,
        )

    def pair(
        self,
        profile_a: UserProfile,
        profile_b: UserProfile,
        *,
        rng: RandomSource | None = None,
        seed: int | None = None,
        blend_factor: float | None = None,
        population_size: int | None = None,
        score_fn_factory: ScoreFnFactory | None = None,
        time_budget_seconds: float | None | object = _UNSET,
        executor: Executor | None = None,
    ) -> PairingResult:
        """Two plans with synchronized intensity for partnered users."""
        log = logger.bind(
            request_id=uuid.uuid4().hex[:12],
            user_ids=[profile_a.user_id, profile_b.user_id],
        )
        deadline = Deadline(self._resolve_budget(time_budget_seconds), clock=self._clock)
        size = population_size if population_size is not None else self._settings.default_population_size

        try:
            result = pairing_engine.pair(
                profile_a,
                profile_b,
                self._resolve_rng(rng, seed),
                config=self._config,
                blend_factor=blend_factor,
                population_size=size,
                score_fn_factory=score_fn_factory,
                executor=executor,
                deadline=deadline,
            )
        except BudgetExceededError as e:
            log.warning("pairing_timeout_fallback", **e.details)
            return self.fallback_pairing()

        log.info(
            "pairing_completed",
            synchronization_level=round(result.synchronization_level, 4),
            blend_factor=result.blend_factor,
        )
        return result

    def escape(
        self,
        profile: UserProfile,
        plateau: PlateauDescription,
        *,
        rng: RandomSource | None = None,
        seed: int | None = None,
    ) -> EscapeResult:
        """Breakthrough plan for a stalled metric.

        Raises:
            InvalidPlateauError: If the plateau levels are non-positive or malformed.
        """
        return escape_engine.escape(
            profile, plateau, self._resolve_rng(rng, seed), config=self._config
        )

    async def optimize_async(
        self,
        profile: UserProfile,
        *,
        time_budget_seconds: float | None | object = _UNSET,
        **kwargs,
    ) -> OptimizationResult:
        """Non-blocking optimize; the budget also bounds the await."""
        budget = self._resolve_budget(time_budget_seconds)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self.optimize, profile, time_budget_seconds=budget, **kwargs
                ),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            logger.warning("optimization_async_timeout_fallback", budget_seconds=budget)
            return self.fallback_result()

    async def pair_async(
        self,
        profile_a: UserProfile,
        profile_b: UserProfile,
        *,
        time_budget_seconds: float | None | object = _UNSET,
        **kwargs,
    ) -> PairingResult:
        budget = self._resolve_budget(time_budget_seconds)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self.pair, profile_a, profile_b, time_budget_seconds=budget, **kwargs
                ),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            logger.warning("pairing_async_timeout_fallback", budget_seconds=budget)
            return self.fallback_pairing()

    async def escape_async(
        self, profile: UserProfile, plateau: PlateauDescription, **kwargs
    ) -> EscapeResult:
        return await asyncio.to_thread(self.escape, profile, plateau, **kwargs)


@lru_cache
def get_plan_optimization_service() -> PlanOptimizationService:
    """Get cached PlanOptimizationService built from the shared configuration."""
    return PlanOptimizationService()


def optimize(profile: UserProfile, **kwargs) -> OptimizationResult:
    return get_plan_optimization_service().optimize(profile, **kwargs)


def pair(profile_a: UserProfile, profile_b: UserProfile, **kwargs) -> PairingResult:
    return get_plan_optimization_service().pair(profile_a, profile_b, **kwargs)


def escape(profile: UserProfile, plateau: PlateauDescription, **kwargs) -> EscapeResult:
    return get_plan_optimization_service().escape(profile, plateau, **kwargs)
