"""Shared fixtures for the plan search test suite."""

from __future__ import annotations

import random

import pytest

from plansearch.config.optimization_config_loader import get_optimization_config
from plansearch.config.settings import Settings
from plansearch.services.optimization_types import (
    CandidateExercise,
    CandidatePlan,
    ExerciseTemplate,
    Population,
    UserProfile,
)
from plansearch.services.plan_optimizer import PlanOptimizationService


# ---------------------------------------------------------------------------
# Fake random source
# ---------------------------------------------------------------------------

class FixedRandom(random.Random):
    """Random source whose random() replays a fixed sequence of draws."""

    def __init__(self, *draws: float):
        super().__init__(0)
        self._draws = list(draws)
        self._index = 0

    def random(self) -> float:
        value = self._draws[self._index % len(self._draws)]
        self._index += 1
        return value


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_plan(
    weight: float,
    intensity: float = 0.5,
    ids: tuple[str, ...] = ("squat",),
    duration_minutes: int = 45,
    fitness_score: float = 0.5,
    category: str = "strength",
) -> CandidatePlan:
    """Helper to build a valid plan with one rest period per exercise."""
    return CandidatePlan(
        exercises=tuple(
            CandidateExercise(
                id=ex_id,
                name=ex_id.title(),
                category=category,
                sets=3,
                reps=10,
                load=20.0,
                fitness_score=fitness_score,
            )
            for ex_id in ids
        ),
        intensity=intensity,
        duration_minutes=duration_minutes,
        rest_periods=tuple(90 for _ in ids),
        weight=weight,
    )


def make_population(*weights: float) -> Population:
    return Population(
        plans=tuple(make_plan(w, ids=(f"ex-{i}",)) for i, w in enumerate(weights))
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    """Bundled optimization configuration."""
    return get_optimization_config()


@pytest.fixture
def three_exercise_pool():
    return (
        ExerciseTemplate(
            id="back-squat",
            name="Barbell Back Squat",
            category="strength",
            goal_tags=("strength", "muscle_gain"),
            base_load=60.0,
        ),
        ExerciseTemplate(
            id="rowing-intervals",
            name="Rowing Intervals",
            category="cardio",
            goal_tags=("endurance",),
        ),
        ExerciseTemplate(
            id="plank",
            name="Plank",
            category="core",
            goal_tags=("general_fitness",),
        ),
    )


@pytest.fixture
def profile(three_exercise_pool):
    return UserProfile(
        user_id="user-1",
        goals=("strength",),
        fitness_level=0.6,
        session_minutes=45,
        exercise_pool=three_exercise_pool,
    )


@pytest.fixture
def partner_profile(three_exercise_pool):
    return UserProfile(
        user_id="user-2",
        goals=("endurance",),
        fitness_level=0.3,
        preferred_intensity=0.8,
        session_minutes=30,
        exercise_pool=three_exercise_pool,
    )


@pytest.fixture
def settings():
    return Settings(
        default_population_size=10,
        default_time_budget_seconds=None,
        default_seed=None,
    )


@pytest.fixture
def service(config, settings):
    return PlanOptimizationService(config=config, settings=settings)


@pytest.fixture
def rng():
    return random.Random(42)
