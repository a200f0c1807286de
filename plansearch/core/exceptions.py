"""Exception hierarchy for the plan search engine.

Exception Hierarchy:
- PlanSearchError (base)
  - ValidationError (invalid caller input)
    - EmptyExercisePoolError (no exercise left to build a candidate)
    - InvalidPlateauError (malformed or non-positive plateau levels)
    - InvalidPopulationSizeError (population size is not a positive integer)
    - PlanValidationError (a candidate plan breaks its invariants)
  - ConfigurationError (invalid engine parameters or config file)
  - BudgetExceededError (wall-clock budget expired; handled by the service)

Non-fatal anomalies are Warning subclasses. They are never raised by the
engine; their names are recorded on populations and results and logged:
- PopulationExhaustedWarning
- SelectionDriftFallback
- TimeoutFallback

Example:
    try:
        result = service.escape(profile, plateau)
    except InvalidPlateauError as e:
        logger.error("plateau rejected", code=e.code, details=e.details)
"""

from __future__ import annotations


class PlanSearchError(Exception):
    """Base exception for all plan search errors.

    Attributes:
        code: Stable machine-readable error code
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ValidationError(PlanSearchError):
    def __init__(self, field: str, message: str, code: str | None = None, details: dict | None = None):
        code = code or f"VAL_{field.upper()}_001"
        msg = f"Validation failed for {field}: {message}"
        super().__init__(code, msg, details or {"field": field})


class EmptyExercisePoolError(ValidationError):
    """Raised when the profile-derived exercise pool has no exercises."""

    def __init__(self, user_id: str, details: dict | None = None):
        super().__init__(
            "exercise_pool",
            f"no exercises available for user '{user_id}'",
            code="VAL_EXERCISE_POOL_EMPTY",
            details=details or {"user_id": user_id},
        )


class InvalidPlateauError(ValidationError):
    """Raised when plateau inputs are non-positive or malformed."""

    def __init__(self, field: str, message: str, details: dict | None = None):
        super().__init__(field, message, code="VAL_PLATEAU_001", details=details)


class InvalidPopulationSizeError(ValidationError):
    def __init__(self, value: object):
        super().__init__(
            "population_size",
            f"must be a positive integer, got {value!r}",
            code="VAL_POPULATION_SIZE_001",
            details={"value": repr(value)},
        )


class PlanValidationError(ValidationError):
    """Raised when a candidate plan or exercise breaks the data model invariants."""

    def __init__(self, field: str, message: str, details: dict | None = None):
        super().__init__(field, message, code="VAL_PLAN_001", details=details)


class ConfigurationError(PlanSearchError):
    def __init__(self, message: str, code: str = "CFG_001", details: dict | None = None):
        super().__init__(code, message, details)


class BudgetExceededError(PlanSearchError):
    """Raised by Deadline.check when the request's wall-clock budget has expired."""

    def __init__(self, budget_seconds: float, elapsed_seconds: float, stage: str = ""):
        super().__init__(
            "BUDGET_001",
            f"time budget of {budget_seconds:.3f}s exceeded after {elapsed_seconds:.3f}s"
            + (f" during {stage}" if stage else ""),
            {
                "budget_seconds": budget_seconds,
                "elapsed_seconds": elapsed_seconds,
                "stage": stage,
            },
        )


# =============================================================================
# Non-fatal anomalies
# =============================================================================

class PlanSearchAnomaly(Warning):
    """Base class for anomalies that are recovered locally."""

    name = "anomaly"


class PopulationExhaustedWarning(PlanSearchAnomaly):
    """Suppression would have emptied the population; the top candidate was kept."""

    name = "population_exhausted"


class SelectionDriftFallback(PlanSearchAnomaly):
    """The cumulative walk ended without a pick; the last candidate was returned."""

    name = "selection_drift"


class TimeoutFallback(PlanSearchAnomaly):
    """The request exceeded its time budget; the default plan was returned."""

    name = "timeout"


def is_validation_error(exception: Exception) -> bool:
    """Check if exception is caused by invalid caller input."""
    return isinstance(exception, ValidationError)
