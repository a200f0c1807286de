"""Population-based stochastic search for workout plans.

Public entry points:
    - PlanOptimizationService: optimize / pair / escape (plus async variants)
    - optimize, pair, escape: module-level shortcuts on a cached service
"""
from plansearch.core.exceptions import (
    EmptyExercisePoolError,
    InvalidPlateauError,
    InvalidPopulationSizeError,
    PlanSearchError,
)
from plansearch.services.optimization_types import (
    AdvantageMetrics,
    CandidateExercise,
    CandidatePlan,
    EscapeResult,
    ExerciseTemplate,
    OptimizationResult,
    PairingResult,
    PlateauDescription,
    Population,
    UserProfile,
)
from plansearch.services.plan_optimizer import (
    PlanOptimizationService,
    escape,
    get_plan_optimization_service,
    optimize,
    pair,
)

__version__ = "1.0.0"

__all__ = [
    "AdvantageMetrics",
    "CandidateExercise",
    "CandidatePlan",
    "EmptyExercisePoolError",
    "EscapeResult",
    "ExerciseTemplate",
    "InvalidPlateauError",
    "InvalidPopulationSizeError",
    "OptimizationResult",
    "PairingResult",
    "PlanOptimizationService",
    "PlanSearchError",
    "PlateauDescription",
    "Population",
    "UserProfile",
    "escape",
    "get_plan_optimization_service",
    "optimize",
    "pair",
]
