"""
Optimization Types

Shared type definitions for the plan search services.
These types are used by the generator, amplifier, selector, pairing and
escape engines and by the PlanOptimizationService facade.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, Sequence

from plansearch.core.exceptions import PlanValidationError


class RandomSource(Protocol):
    """Subset of random.Random used by the engine.

    Each request gets its own instance; instances are not shared between
    concurrently executing requests.
    """

    def random(self) -> float: ...

    def uniform(self, a: float, b: float) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def sample(self, population: Sequence[Any], k: int) -> list[Any]: ...

    def getrandbits(self, k: int) -> int: ...


@dataclass(frozen=True)
class ExerciseTemplate:
    """Exercise available to the generator (one entry of an exercise pool)."""

    id: str
    name: str
    category: str = "strength"
    goal_tags: tuple[str, ...] = ()
    base_load: float = 0.0
    equipment: tuple[str, ...] = ()


@dataclass(frozen=True)
class UserProfile:
    """Generator seed inputs for one user.

    Attributes:
        user_id: Opaque identity
        goals: Goal tags such as "strength" or "endurance"
        fitness_level: Training history summary in [0, 1]
        preferred_intensity: Target intensity in [0, 1]; None derives it from fitness_level
        session_minutes: Preferred session length
        exercise_pool: Exercises to draw from; None means the configured default pool
        excluded_exercise_ids: Exercises never to prescribe
        available_equipment: Equipment on hand; empty means no equipment filter
    """

    user_id: str
    goals: tuple[str, ...] = ()
    fitness_level: float = 0.5
    preferred_intensity: float | None = None
    session_minutes: int = 45
    exercise_pool: tuple[ExerciseTemplate, ...] | None = None
    excluded_exercise_ids: frozenset[str] = frozenset()
    available_equipment: frozenset[str] = frozenset()

    def __post_init__(self):
        if not 0 <= self.fitness_level <= 1:
            raise PlanValidationError(
                "fitness_level", f"must be between 0 and 1, got {self.fitness_level}"
            )
        if self.preferred_intensity is not None and not 0 <= self.preferred_intensity <= 1:
            raise PlanValidationError(
                "preferred_intensity",
                f"must be between 0 and 1, got {self.preferred_intensity}",
            )
        if self.session_minutes <= 0:
            raise PlanValidationError(
                "session_minutes", f"must be > 0, got {self.session_minutes}"
            )


@dataclass(frozen=True)
class PlateauDescription:
    """A stalled progress metric the escape engine should break through."""

    metric: str
    stalled_days: int
    current_level: float
    target_level: float


@dataclass(frozen=True)
class CandidateExercise:
    id: str
    name: str
    sets: int
    reps: int
    load: float
    fitness_score: float
    category: str = "strength"

    def __post_init__(self):
        if self.sets < 1 or self.reps < 1:
            raise PlanValidationError(
                "exercise",
                f"'{self.id}' needs sets >= 1 and reps >= 1, got {self.sets}x{self.reps}",
            )
        if self.load < 0:
            raise PlanValidationError("load", f"'{self.id}' load must be >= 0, got {self.load}")
        if not 0 <= self.fitness_score <= 1:
            raise PlanValidationError(
                "fitness_score",
                f"'{self.id}' fitness score must be in [0, 1], got {self.fitness_score}",
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "sets": self.sets,
            "reps": self.reps,
            "load": self.load,
            "fitness_score": self.fitness_score,
        }


@dataclass(frozen=True)
class CandidatePlan:
    """One fully specified workout plan competing for selection.

    Attributes:
        exercises: Ordered exercises
        intensity: Overall intensity in [0, 1]
        duration_minutes: Planned session length
        rest_periods: Rest in seconds after each exercise
        weight: Unnormalized probability mass (>= 0)
    """

    exercises: tuple[CandidateExercise, ...]
    intensity: float
    duration_minutes: int
    rest_periods: tuple[int, ...]
    weight: float

    def __post_init__(self):
        if not self.exercises:
            raise PlanValidationError("exercises", "a plan needs at least one exercise")
        if len(self.rest_periods) != len(self.exercises):
            raise PlanValidationError(
                "rest_periods",
                f"expected {len(self.exercises)} rest periods, got {len(self.rest_periods)}",
            )
        if not 0 <= self.intensity <= 1:
            raise PlanValidationError("intensity", f"must be in [0, 1], got {self.intensity}")
        if self.duration_minutes <= 0:
            raise PlanValidationError(
                "duration_minutes", f"must be > 0, got {self.duration_minutes}"
            )
        if not math.isfinite(self.weight) or self.weight < 0:
            raise PlanValidationError("weight", f"must be finite and >= 0, got {self.weight}")

    @property
    def exercise_ids(self) -> tuple[str, ...]:
        return tuple(ex.id for ex in self.exercises)

    def with_weight(self, weight: float) -> CandidatePlan:
        return replace(self, weight=weight)

    def with_intensity(self, intensity: float) -> CandidatePlan:
        return replace(self, intensity=intensity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "exercises": [ex.to_dict() for ex in self.exercises],
            "intensity": self.intensity,
            "duration_minutes": self.duration_minutes,
            "rest_periods": list(self.rest_periods),
            "weight": self.weight,
        }


@dataclass(frozen=True)
class Population:
    """Weighted set of candidates considered in one optimization call."""

    plans: tuple[CandidatePlan, ...]
    anomalies: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.plans:
            raise PlanValidationError("population", "a population needs at least one plan")
        if self.total_weight <= 0:
            raise PlanValidationError(
                "population", "at least one plan must carry a positive weight"
            )

    def __len__(self) -> int:
        return len(self.plans)

    def __iter__(self):
        return iter(self.plans)

    @property
    def total_weight(self) -> float:
        return math.fsum(plan.weight for plan in self.plans)

    def probabilities(self) -> list[float]:
        total = self.total_weight
        return [plan.weight / total for plan in self.plans]

    @property
    def aggregate_probability(self) -> float:
        """Sum of normalized probabilities; 1 within floating-point error."""
        return math.fsum(self.probabilities())

    @property
    def diversity(self) -> float:
        """Share of distinct exercise combinations among the plans, in [0, 1]."""
        distinct = {frozenset(plan.exercise_ids) for plan in self.plans}
        return len(distinct) / len(self.plans)

    @property
    def coherence(self) -> float:
        """Normalized entropy of the weights.

        1.0 means mass is spread evenly; the value decays toward 0 as
        amplification concentrates mass on a few candidates. A single
        candidate is fully concentrated (0.0).
        """
        n = len(self.plans)
        if n < 2:
            return 0.0
        entropy = -math.fsum(p * math.log(p) for p in self.probabilities() if p > 0)
        return min(max(entropy / math.log(n), 0.0), 1.0)

    def best(self) -> CandidatePlan:
        """Highest-weight plan; the earliest one wins ties."""
        return max(self.plans, key=lambda plan: plan.weight)

    def with_plans(
        self, plans: Sequence[CandidatePlan], anomaly: str | None = None
    ) -> Population:
        anomalies = self.anomalies + ((anomaly,) if anomaly else ())
        return Population(plans=tuple(plans), anomalies=anomalies)


@dataclass(frozen=True)
class AdvantageMetrics:
    """Illustrative telemetry comparing exhaustive and sampled search costs."""

    speedup_factor: float
    accuracy_improvement: float
    energy_efficiency: float

    def to_dict(self) -> dict[str, float]:
        return {
            "speedup_factor": self.speedup_factor,
            "accuracy_improvement": self.accuracy_improvement,
            "energy_efficiency": self.energy_efficiency,
        }


@dataclass(frozen=True)
class SelectionOutcome:
    plan: CandidatePlan
    index: int
    drift_fallback: bool = False


@dataclass(frozen=True)
class OptimizationResult:
    """Selected plan with population statistics and advantage telemetry."""

    plan: CandidatePlan
    coherence_score: float
    advantage: AdvantageMetrics
    diversity_benefit: float = 0.0
    degraded: bool = False
    fallback_reason: str | None = None
    anomalies: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "coherence_score": self.coherence_score,
            "advantage": self.advantage.to_dict(),
            "diversity_benefit": self.diversity_benefit,
            "degraded": self.degraded,
            "fallback_reason": self.fallback_reason,
            "anomalies": list(self.anomalies),
        }


@dataclass(frozen=True)
class PairingResult:
    plans: tuple[CandidatePlan, CandidatePlan]
    synchronization_level: float
    blend_factor: float
    degraded: bool = False
    fallback_reason: str | None = None
    anomalies: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plans": [plan.to_dict() for plan in self.plans],
            "synchronization_level": self.synchronization_level,
            "blend_factor": self.blend_factor,
            "degraded": self.degraded,
            "fallback_reason": self.fallback_reason,
            "anomalies": list(self.anomalies),
        }


@dataclass(frozen=True)
class EscapeResult:
    plan: CandidatePlan
    success_probability: float
    barrier_height: float
    metric: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "success_probability": self.success_probability,
            "barrier_height": self.barrier_height,
            "metric": self.metric,
        }
