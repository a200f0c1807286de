"""
Pairing Engine

Produces two correlated plans for partnered users. The pipeline runs
independently for each profile, each with a child random source derived from
the request's source, then both intensities are pulled toward each other:

    a' = (1 - f) * a + f * b
    b' = (1 - f) * b + f * a

With f = 0.5 both intensities equal (a + b) / 2. The synchronization level is
1 - |a' - b'|, clamped to [0, 1].
"""

from __future__ import annotations

import logging
import random
from concurrent.futures import Executor

from plansearch.config.optimization_config_loader import (
    OptimizationConfig,
    get_optimization_config,
)
from plansearch.core.deadline import Deadline
from plansearch.core.exceptions import ConfigurationError
from plansearch.services.optimization_types import PairingResult, RandomSource, UserProfile
from plansearch.services.pipeline import ScoreFnFactory, default_score_fn, run_pipeline

logger = logging.getLogger(__name__)


def child_rng(rng: RandomSource) -> random.Random:
    """Independent, reproducible random source derived from a parent source."""
    return random.Random(rng.getrandbits(64))


def blend_intensities(a: float, b: float, blend_factor: float) -> tuple[float, float]:
    if not 0 <= blend_factor <= 0.5:
        raise ConfigurationError(
            f"blend_factor must be between 0 and 0.5, got {blend_factor}",
            details={"blend_factor": blend_factor},
        )
    if blend_factor == 0.5:
        mean = (a + b) / 2
        return mean, mean
    return (1 - blend_factor) * a + blend_factor * b, (1 - blend_factor) * b + blend_factor * a


def synchronization_level(a: float, b: float) -> float:
    return min(max(1.0 - abs(a - b), 0.0), 1.0)


def pair(
    profile_a: UserProfile,
    profile_b: UserProfile,
    rng: RandomSource,
    *,
    config: OptimizationConfig | None = None,
    blend_factor: float | None = None,
    population_size: int = 100,
    score_fn_factory: ScoreFnFactory | None = None,
    executor: Executor | None = None,
    deadline: Deadline | None = None,
) -> PairingResult:
    """Derive two plans with correlated intensity.

    Raises:
        ConfigurationError: If blend_factor is outside [0, 0.5].
        EmptyExercisePoolError: If either profile has no usable exercises.
    """
    config = config or get_optimization_config()
    factor = config.pairing.blend_factor if blend_factor is None else blend_factor

    outcomes = []
    for profile in (profile_a, profile_b):
        score_fn = (
            score_fn_factory(profile)
            if score_fn_factory is not None
            else default_score_fn(profile, config)
        )
        outcomes.append(
            run_pipeline(
                profile,
                child_rng(rng),
                config=config,
                population_size=population_size,
                score_fn=score_fn,
                executor=executor,
                deadline=deadline,
            )
        )

    plan_a = outcomes[0].selection.plan
    plan_b = outcomes[1].selection.plan
    intensity_a, intensity_b = blend_intensities(plan_a.intensity, plan_b.intensity, factor)
    sync = synchronization_level(intensity_a, intensity_b)

    logger.debug(
        f"Paired {profile_a.user_id} and {profile_b.user_id}: intensities "
        f"{plan_a.intensity:.3f}/{plan_b.intensity:.3f} -> "
        f"{intensity_a:.3f}/{intensity_b:.3f}, sync={sync:.3f}"
    )

    return PairingResult(
        plans=(plan_a.with_intensity(intensity_a), plan_b.with_intensity(intensity_b)),
        synchronization_level=sync,
        blend_factor=factor,
        anomalies=outcomes[0].anomalies + outcomes[1].anomalies,
    )
