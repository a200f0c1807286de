"""
Escape Engine

Breaks a progress plateau with a deliberately bolder plan, in the manner of a
simulated-annealing uphill move:

    barrier_height      = log(target_level / current_level) * scaling_constant
    success_probability = exp(-2 * barrier_height / decay_constant), clamped to (0, 1]

Boldness is 1 - success_probability. The plan is built with the generator's
build_plan primitive, with intensity and duration boosted in proportion to the
boldness and a wider jitter, so harder barriers produce higher-variance plans.
"""

from __future__ import annotations

import logging
import math

from plansearch.config.optimization_config_loader import (
    EscapeConfig,
    OptimizationConfig,
    get_optimization_config,
)
from plansearch.core.exceptions import InvalidPlateauError
from plansearch.services.candidate_generator import build_plan, resolve_exercise_pool
from plansearch.services.optimization_types import (
    EscapeResult,
    PlateauDescription,
    RandomSource,
    UserProfile,
)

logger = logging.getLogger(__name__)

# Smallest positive float; keeps the probability inside (0, 1]
MIN_SUCCESS_PROBABILITY = math.ulp(0.0)


def validate_plateau(plateau: PlateauDescription) -> None:
    """Reject malformed plateau descriptions.

    Raises:
        InvalidPlateauError: If a level is non-positive or not finite, the
            stall length is negative, or the metric name is empty.
    """
    if not isinstance(plateau.metric, str) or not plateau.metric.strip():
        raise InvalidPlateauError("metric", "must be a non-empty string")

    for field_name in ("current_level", "target_level"):
        value = getattr(plateau, field_name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidPlateauError(
                field_name, f"must be a number, got {value!r}", details={field_name: repr(value)}
            )
        if not math.isfinite(value) or value <= 0:
            raise InvalidPlateauError(
                field_name, f"must be finite and > 0, got {value}", details={field_name: value}
            )

    if isinstance(plateau.stalled_days, bool) or not isinstance(plateau.stalled_days, int):
        raise InvalidPlateauError(
            "stalled_days", f"must be an integer, got {plateau.stalled_days!r}"
        )
    if plateau.stalled_days < 0:
        raise InvalidPlateauError(
            "stalled_days", f"must be >= 0, got {plateau.stalled_days}"
        )


def barrier_height(plateau: PlateauDescription, config: EscapeConfig) -> float:
    validate_plateau(plateau)
    return math.log(plateau.target_level / plateau.current_level) * config.scaling_constant


def success_probability(barrier: float, decay_constant: float) -> float:
    """Probability of breaking through a barrier; strictly decreasing in barrier."""
    exponent = -2 * barrier / decay_constant
    if exponent >= 0:
        return 1.0
    return max(math.exp(exponent), MIN_SUCCESS_PROBABILITY)


def escape(
    profile: UserProfile,
    plateau: PlateauDescription,
    rng: RandomSource,
    *,
    config: OptimizationConfig | None = None,
) -> EscapeResult:
    """Generate a breakthrough plan for a stalled metric.

    Raises:
        InvalidPlateauError: If the plateau description is malformed.
        EmptyExercisePoolError: If the profile has no usable exercises.
    """
    config = config or get_optimization_config()
    escape_config = config.escape

    barrier = barrier_height(plateau, escape_config)
    probability = success_probability(barrier, escape_config.decay_constant)
    boldness = 1.0 - probability

    pool = resolve_exercise_pool(profile, config)
    plan = build_plan(
        pool,
        profile,
        rng,
        config.generator,
        intensity_boost=escape_config.max_intensity_boost * boldness,
        duration_boost=escape_config.max_duration_boost * boldness,
        variance_multiplier=1.0 + boldness,
    ).with_weight(probability)

    logger.info(
        f"Escape plan for {profile.user_id} on '{plateau.metric}' after "
        f"{plateau.stalled_days} stalled days: barrier={barrier:.3f}, "
        f"p={probability:.4f}, intensity={plan.intensity:.3f}, "
        f"duration={plan.duration_minutes}min"
    )

    return EscapeResult(
        plan=plan,
        success_probability=probability,
        barrier_height=barrier,
        metric=plateau.metric,
    )
