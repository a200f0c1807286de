"""Plan scoring package.

Main exports:
    - GlobalPlanScorer: Default weighted multi-dimension plan scorer
    - PlanScoringResult: Score breakdown with per-dimension scores
    - ScoringDimension: One dimension with its evaluator and weight
    - ScoringContext: Per-profile data shared by the evaluators
"""
from .plan_scorer import (
    DIMENSION_EVALUATORS,
    GlobalPlanScorer,
    PlanScoringResult,
    ScoringContext,
    ScoringDimension,
)

__all__ = [
    "DIMENSION_EVALUATORS",
    "GlobalPlanScorer",
    "PlanScoringResult",
    "ScoringContext",
    "ScoringDimension",
]
