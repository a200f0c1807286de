"""
Tests for PlanOptimizationService.

Covers the end-to-end optimize flow, reproducibility, the time budget
fallback and the pair/escape entry points.
"""

import asyncio
import json
import random
from itertools import count
from unittest.mock import Mock, patch

import pytest

import plansearch
from plansearch.config.settings import Settings
from plansearch.core.exceptions import EmptyExercisePoolError, InvalidPlateauError
from plansearch.services.optimization_types import (
    PlateauDescription,
    SelectionOutcome,
    UserProfile,
)
from plansearch.services.pipeline import run_pipeline
from plansearch.services.plan_optimizer import PlanOptimizationService, build_fallback_plan
from plansearch.services.selector import refine_selected


@pytest.fixture
def plateau():
    return PlateauDescription(
        metric="bench_press_1rm", stalled_days=21, current_level=80.0, target_level=90.0
    )


class TestOptimize:
    """Test the main optimize flow."""

    def test_end_to_end(self, service, profile):
        result = service.optimize(profile, seed=42)
        pool_ids = {t.id for t in profile.exercise_pool}

        assert result.degraded is False
        assert result.fallback_reason is None
        assert result.anomalies == ()
        assert set(result.plan.exercise_ids) <= pool_ids
        assert len(result.plan.rest_periods) == len(result.plan.exercises)
        assert 0 <= result.plan.intensity <= 1
        assert 0 <= result.coherence_score <= 1
        assert 0 < result.diversity_benefit <= 1
        assert result.advantage.speedup_factor == pytest.approx(
            2 ** len(result.plan.exercises) * 1000 / 100
        )
        assert result.advantage.speedup_factor > 1
        assert 0 <= result.advantage.accuracy_improvement <= 1
        assert 0 <= result.advantage.energy_efficiency <= 1

    def test_same_seed_same_result(self, service, profile):
        first = service.optimize(profile, seed=42)
        second = service.optimize(profile, seed=42)

        assert first == second
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_rng_and_seed_are_equivalent(self, service, profile):
        assert service.optimize(profile, rng=random.Random(42)) == service.optimize(
            profile, seed=42
        )

    def test_default_seed_from_settings(self, config, profile):
        service = PlanOptimizationService(
            config=config, settings=Settings(default_population_size=10, default_seed=7)
        )

        assert service.optimize(profile) == service.optimize(profile)

    def test_custom_score_fn(self, service, profile):
        score_fn = Mock(side_effect=lambda plan: 1.0 if "back-squat" in plan.exercise_ids else 0.0)

        result = service.optimize(profile, seed=3, population_size=12, score_fn=score_fn)

        assert score_fn.call_count == 12
        assert result.degraded is False

    def test_multiple_rounds(self, service, profile):
        result = service.optimize(profile, seed=3, rounds=3)

        assert result.degraded is False

    def test_many_rounds_stay_stable(self, service, profile):
        result = service.optimize(profile, seed=42, rounds=2000)

        assert result.degraded is False
        assert 0 < result.plan.weight <= 1

    def test_exhaustion_is_reported(self, service, profile):
        result = service.optimize(profile, seed=5, threshold=0.99)

        assert "population_exhausted" in result.anomalies
        assert result.coherence_score == 0.0
        assert result.degraded is False

    def test_selection_drift_is_reported(self, service, profile):
        def drifted(population, rng):
            last = len(population) - 1
            return SelectionOutcome(plan=population.plans[last], index=last, drift_fallback=True)

        with patch("plansearch.services.pipeline.select_with_outcome", side_effect=drifted):
            result = service.optimize(profile, seed=5)

        assert result.anomalies == ("selection_drift",)
        assert result.degraded is False

    def test_selected_plan_is_refined(self, service, config, profile):
        outcome = run_pipeline(profile, random.Random(42), config=config, population_size=10)

        result = service.optimize(profile, seed=42)

        assert result.plan == refine_selected(
            outcome.selection.plan, config.selection.refinement_factor
        )
        assert all(0 <= ex.fitness_score <= 1 for ex in result.plan.exercises)

    def test_empty_pool_raises(self, service):
        profile = UserProfile(user_id="empty", exercise_pool=())

        with pytest.raises(EmptyExercisePoolError):
            service.optimize(profile, seed=1)

    def test_default_pool(self, service, config):
        profile = UserProfile(user_id="newcomer", goals=("general_fitness",))

        result = service.optimize(profile, seed=1)
        default_ids = {entry.id for entry in config.default_exercise_pool}

        assert set(result.plan.exercise_ids) <= default_ids


class TestTimeBudget:
    """Test the degraded fallback on timeout."""

    def test_zero_budget_returns_fallback(self, service, profile, config):
        result = service.optimize(profile, seed=1, time_budget_seconds=0)

        assert result.degraded is True
        assert result.fallback_reason == "timeout"
        assert result.anomalies == ("timeout",)
        assert result.plan == build_fallback_plan(config.fallback_plan)
        assert result.advantage.speedup_factor == 1.0
        assert result.advantage.accuracy_improvement == 0.0

    def test_fallback_is_deterministic(self, service, profile):
        first = service.optimize(profile, time_budget_seconds=0)
        second = service.optimize(profile, time_budget_seconds=0)

        assert first == second

    def test_invalid_input_is_not_masked(self, service):
        profile = UserProfile(user_id="empty", exercise_pool=())

        with pytest.raises(EmptyExercisePoolError):
            service.optimize(profile, time_budget_seconds=0)

    def test_budget_expires_mid_generation(self, config, settings, profile):
        ticks = count()
        service = PlanOptimizationService(
            config=config, settings=settings, clock=lambda: float(next(ticks))
        )

        result = service.optimize(profile, seed=1, time_budget_seconds=2.5)

        assert result.degraded is True

    def test_generous_budget(self, service, profile):
        result = service.optimize(profile, seed=1, time_budget_seconds=60)

        assert result.degraded is False

    def test_budget_from_settings(self, config, profile):
        service = PlanOptimizationService(
            config=config,
            settings=Settings(default_population_size=10, default_time_budget_seconds=0),
        )

        assert service.optimize(profile, seed=1).degraded is True

    def test_pairing_fallback(self, service, profile, partner_profile):
        result = service.pair(profile, partner_profile, seed=1, time_budget_seconds=0)

        assert result.degraded is True
        assert result.plans[0] == result.plans[1] == service.fallback_plan
        assert result.synchronization_level == 1.0


class TestPairAndEscape:
    """Test the pairing and escape entry points."""

    def test_pair(self, service, profile, partner_profile):
        result = service.pair(profile, partner_profile, seed=42)

        assert result.plans[0].intensity == result.plans[1].intensity
        assert result.synchronization_level == 1.0

    def test_pair_with_blend_factor(self, service, profile, partner_profile):
        result = service.pair(profile, partner_profile, seed=42, blend_factor=0.25)

        assert result.blend_factor == 0.25
        assert 0 <= result.synchronization_level <= 1

    def test_escape(self, service, profile, plateau):
        result = service.escape(profile, plateau, seed=4)

        assert result.barrier_height == pytest.approx(10 * 0.117783, abs=1e-5)
        assert result.plan.weight == result.success_probability
        assert json.loads(json.dumps(result.to_dict()))["metric"] == "bench_press_1rm"

    def test_escape_invalid_plateau(self, service, profile):
        bad = PlateauDescription(
            metric="bench_press_1rm", stalled_days=21, current_level=-1.0, target_level=90.0
        )

        with pytest.raises(InvalidPlateauError):
            service.escape(profile, bad, seed=4)


class TestAsync:
    """Test the asyncio entry points."""

    @pytest.mark.asyncio
    async def test_optimize_async_matches_sync(self, service, profile):
        result = await service.optimize_async(profile, seed=42)

        assert result == service.optimize(profile, seed=42)

    @pytest.mark.asyncio
    async def test_optimize_async_timeout(self, service, profile):
        result = await service.optimize_async(profile, seed=42, time_budget_seconds=0)

        assert result.degraded is True
        assert result.fallback_reason == "timeout"

    @pytest.mark.asyncio
    async def test_pair_async(self, service, profile, partner_profile):
        result = await service.pair_async(profile, partner_profile, seed=42)

        assert result == service.pair(profile, partner_profile, seed=42)

    @pytest.mark.asyncio
    async def test_escape_async(self, service, profile, plateau):
        result = await service.escape_async(profile, plateau, seed=4)

        assert result == service.escape(profile, plateau, seed=4)

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_independent(self, service, profile):
        results = await asyncio.gather(
            *(service.optimize_async(profile, seed=42) for _ in range(4))
        )

        assert all(r == results[0] for r in results)


class TestModuleShortcuts:
    def test_optimize_shortcut(self, profile):
        result = plansearch.optimize(profile, seed=42, population_size=10)

        assert result.degraded is False
        assert isinstance(plansearch.get_plan_optimization_service(), PlanOptimizationService)
