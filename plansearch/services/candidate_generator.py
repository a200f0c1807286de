"""
Candidate Generator

Builds the initial weighted population of candidate workout plans for a
user profile. Exercises are drawn from a profile-derived pool with bounded
random sets, reps, load, intensity, duration and rest periods. Initial
weights are biased upward for plans whose exercises serve the user's goals,
so the population does not start uniform.

build_plan is the shared primitive: the escape engine calls it with an
intensity/duration boost and a larger variance multiplier.
"""

from __future__ import annotations

import logging
from typing import Sequence

from plansearch.config.optimization_config_loader import (
    GeneratorConfig,
    OptimizationConfig,
    get_optimization_config,
)
from plansearch.core.deadline import Deadline
from plansearch.core.exceptions import EmptyExercisePoolError, InvalidPopulationSizeError
from plansearch.services.optimization_types import (
    CandidateExercise,
    CandidatePlan,
    ExerciseTemplate,
    Population,
    RandomSource,
    UserProfile,
)


logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def default_exercise_pool(config: OptimizationConfig) -> tuple[ExerciseTemplate, ...]:
    """Exercise templates used when a profile does not supply its own pool."""
    return tuple(
        ExerciseTemplate(
            id=entry.id,
            name=entry.name,
            category=entry.category,
            goal_tags=entry.goal_tags,
            base_load=entry.base_load,
            equipment=entry.equipment,
        )
        for entry in config.default_exercise_pool
    )


def resolve_exercise_pool(
    profile: UserProfile, config: OptimizationConfig
) -> tuple[ExerciseTemplate, ...]:
    """Derive the exercise pool for a profile.

    Starts from the profile's pool (or the configured default pool), drops
    excluded exercises and, when the profile declares equipment, exercises
    needing equipment it does not have.

    Raises:
        EmptyExercisePoolError: If nothing is left.
    """
    templates = (
        profile.exercise_pool
        if profile.exercise_pool is not None
        else default_exercise_pool(config)
    )

    pool = [t for t in templates if t.id not in profile.excluded_exercise_ids]
    if profile.available_equipment:
        pool = [t for t in pool if set(t.equipment) <= profile.available_equipment]

    if not pool:
        raise EmptyExercisePoolError(
            profile.user_id,
            details={
                "user_id": profile.user_id,
                "templates": len(templates),
                "excluded": sorted(profile.excluded_exercise_ids),
                "available_equipment": sorted(profile.available_equipment),
            },
        )
    return tuple(pool)


def goal_affinity(
    template: ExerciseTemplate, goals: Sequence[str], config: GeneratorConfig
) -> float:
    """Share of the user's goals that the exercise serves, in [0, 1]."""
    if not goals:
        return config.no_goal_affinity
    wanted = set(goals)
    served = wanted & (set(template.goal_tags) | {template.category})
    return len(served) / len(wanted)


def target_intensity(profile: UserProfile, config: GeneratorConfig) -> float:
    if profile.preferred_intensity is not None:
        return profile.preferred_intensity
    return _clamp(
        config.default_intensity
        + config.fitness_intensity_weight * (profile.fitness_level - 0.5),
        0.0,
        1.0,
    )


def validate_population_size(population_size: object, config: GeneratorConfig) -> int:
    """Return the population size to generate, capped at max_population_size."""
    if (
        isinstance(population_size, bool)
        or not isinstance(population_size, int)
        or population_size < 1
    ):
        raise InvalidPopulationSizeError(population_size)

    if population_size > config.max_population_size:
        logger.info(
            f"Population size {population_size} capped at {config.max_population_size}"
        )
        return config.max_population_size
    return population_size


def build_plan(
    pool: Sequence[ExerciseTemplate],
    profile: UserProfile,
    rng: RandomSource,
    config: GeneratorConfig,
    *,
    intensity_boost: float = 0.0,
    duration_boost: float = 0.0,
    variance_multiplier: float = 1.0,
) -> CandidatePlan:
    """Build one candidate plan from the pool.

    Args:
        pool: Non-empty exercise pool.
        profile: User the plan is for.
        rng: Per-request random source.
        config: Generator bounds.
        intensity_boost: Added to the profile's target intensity before jitter.
        duration_boost: Relative increase of the session length (0.5 = +50%).
        variance_multiplier: Scales the intensity and duration jitter.

    Returns:
        A CandidatePlan satisfying the data model invariants.
    """
    if not pool:
        raise EmptyExercisePoolError(profile.user_id)

    max_count = min(config.max_exercises_per_plan, len(pool))
    count = rng.randint(1, max_count)
    picks = rng.sample(list(pool), count)

    intensity_jitter = min(config.intensity_jitter * variance_multiplier, 1.0)
    intensity = _clamp(
        target_intensity(profile, config)
        + intensity_boost
        + rng.uniform(-intensity_jitter, intensity_jitter),
        config.min_intensity,
        config.max_intensity,
    )

    exercises = []
    rest_periods = []
    affinities = []
    for template in picks:
        affinity = goal_affinity(template, profile.goals, config)
        affinities.append(affinity)

        load = template.base_load * (0.75 + 0.5 * profile.fitness_level)
        load *= 1 + rng.uniform(-config.load_jitter, config.load_jitter)

        exercises.append(
            CandidateExercise(
                id=template.id,
                name=template.name,
                category=template.category,
                sets=rng.randint(config.min_sets, config.max_sets),
                reps=rng.randint(config.min_reps, config.max_reps),
                load=round(max(load, 0.0), 1),
                fitness_score=_clamp(0.5 * rng.random() + 0.5 * affinity, 0.0, 1.0),
            )
        )

        step = config.rest_step_seconds
        rest = (
            config.base_rest_seconds
            + intensity * config.rest_intensity_seconds
            + rng.uniform(-step, step) * variance_multiplier
        )
        rest_periods.append(max(int(round(rest / step)) * step, step))

    duration_jitter = min(config.duration_jitter * variance_multiplier, 0.9)
    duration = profile.session_minutes * (1 + duration_boost)
    duration *= 1 + rng.uniform(-duration_jitter, duration_jitter)
    duration_minutes = int(
        _clamp(round(duration), config.min_duration_minutes, config.max_duration_minutes)
    )

    mean_affinity = sum(affinities) / len(affinities)
    weight = rng.uniform(config.min_initial_weight, config.max_initial_weight)
    weight *= 1 + config.goal_bias * mean_affinity

    return CandidatePlan(
        exercises=tuple(exercises),
        intensity=intensity,
        duration_minutes=duration_minutes,
        rest_periods=tuple(rest_periods),
        weight=weight,
    )


def generate(
    profile: UserProfile,
    population_size: int,
    rng: RandomSource,
    *,
    config: OptimizationConfig | None = None,
    deadline: Deadline | None = None,
) -> Population:
    """Build the initial weighted population for a profile.

    Raises:
        InvalidPopulationSizeError: If population_size is not a positive integer.
        EmptyExercisePoolError: If the profile-derived pool is empty.
        BudgetExceededError: If the deadline expires between candidates.
    """
    config = config or get_optimization_config()
    size = validate_population_size(population_size, config.generator)
    pool = resolve_exercise_pool(profile, config)

    plans = []
    for _ in range(size):
        if deadline is not None:
            deadline.check("generation")
        plans.append(build_plan(pool, profile, rng, config.generator))

    population = Population(plans=tuple(plans))
    logger.debug(
        f"Generated {len(population)} candidates for user {profile.user_id} "
        f"from a pool of {len(pool)} exercises"
    )
    return population
