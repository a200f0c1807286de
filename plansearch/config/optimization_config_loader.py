"""
Unified Optimization Configuration Loader

This module provides a centralized, type-safe configuration loader for the
plan search engine: candidate generation bounds, amplification and
suppression, selection refinement, advantage cost models, pairing, plateau
escape, the degraded fallback plan and the plan scorer's dimension weights.

Configuration is loaded from optimization_config.yaml and validated in each
section's __post_init__. Supports reloading without restart.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from threading import RLock
from typing import Any, Callable

import yaml

from plansearch.core.exceptions import ConfigurationError


class OptimizationConfigLoadError(ConfigurationError):
    """Raised when configuration cannot be loaded or is invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="CFG_LOAD_001", details=details)


class OptimizationConfigValidationError(OptimizationConfigLoadError):
    """Raised when configuration fails validation."""


DEFAULT_OPTIMIZATION_CONFIG_PATH = Path(__file__).parent / "optimization_config.yaml"


@dataclass(frozen=True)
class ExerciseTemplateConfig:
    """One entry of the default exercise pool."""

    id: str
    name: str
    category: str
    goal_tags: tuple[str, ...] = ()
    base_load: float = 0.0
    equipment: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.id or not self.name:
            raise OptimizationConfigValidationError(
                "exercise templates need a non-empty id and name",
                details={"id": self.id, "name": self.name},
            )
        if self.base_load < 0:
            raise OptimizationConfigValidationError(
                f"base_load for '{self.id}' must be >= 0, got {self.base_load}"
            )


@dataclass(frozen=True)
class GeneratorConfig:
    """Candidate generation bounds."""

    max_population_size: int = 200
    max_exercises_per_plan: int = 6
    min_sets: int = 2
    max_sets: int = 5
    min_reps: int = 6
    max_reps: int = 15
    load_jitter: float = 0.2
    min_initial_weight: float = 0.1
    max_initial_weight: float = 0.2
    goal_bias: float = 1.0
    no_goal_affinity: float = 0.5
    default_intensity: float = 0.5
    fitness_intensity_weight: float = 0.3
    intensity_jitter: float = 0.15
    min_intensity: float = 0.1
    max_intensity: float = 1.0
    duration_jitter: float = 0.25
    min_duration_minutes: int = 10
    max_duration_minutes: int = 180
    base_rest_seconds: int = 60
    rest_intensity_seconds: int = 60
    rest_step_seconds: int = 15

    def __post_init__(self):
        if self.max_population_size < 1:
            raise OptimizationConfigValidationError(
                f"max_population_size ({self.max_population_size}) must be >= 1"
            )
        if self.max_exercises_per_plan < 1:
            raise OptimizationConfigValidationError(
                f"max_exercises_per_plan ({self.max_exercises_per_plan}) must be >= 1"
            )
        if not 1 <= self.min_sets <= self.max_sets:
            raise OptimizationConfigValidationError(
                f"min_sets ({self.min_sets}) must be >= 1 and <= max_sets ({self.max_sets})"
            )
        if not 1 <= self.min_reps <= self.max_reps:
            raise OptimizationConfigValidationError(
                f"min_reps ({self.min_reps}) must be >= 1 and <= max_reps ({self.max_reps})"
            )
        if not 0 < self.min_initial_weight <= self.max_initial_weight:
            raise OptimizationConfigValidationError(
                f"initial weight range ({self.min_initial_weight}, {self.max_initial_weight}) "
                "must be positive and ordered"
            )
        if self.goal_bias < 0:
            raise OptimizationConfigValidationError(
                f"goal_bias ({self.goal_bias}) must be >= 0"
            )
        if not 0 <= self.min_intensity <= self.max_intensity <= 1:
            raise OptimizationConfigValidationError(
                f"intensity bounds ({self.min_intensity}, {self.max_intensity}) must lie in [0, 1]"
            )
        if not 0 < self.min_duration_minutes <= self.max_duration_minutes:
            raise OptimizationConfigValidationError(
                f"duration bounds ({self.min_duration_minutes}, {self.max_duration_minutes}) "
                "must be positive and ordered"
            )
        for field_name, value in [
            ("load_jitter", self.load_jitter),
            ("no_goal_affinity", self.no_goal_affinity),
            ("default_intensity", self.default_intensity),
            ("fitness_intensity_weight", self.fitness_intensity_weight),
            ("intensity_jitter", self.intensity_jitter),
            ("duration_jitter", self.duration_jitter),
        ]:
            if not 0 <= value <= 1:
                raise OptimizationConfigValidationError(
                    f"{field_name} must be between 0 and 1, got {value}"
                )
        if self.rest_step_seconds < 1 or self.base_rest_seconds < 0:
            raise OptimizationConfigValidationError(
                "rest_step_seconds must be >= 1 and base_rest_seconds >= 0"
            )


@dataclass(frozen=True)
class AmplifierConfig:
    """Re-weighting and suppression settings."""

    rounds: int = 1
    suppression_threshold: float = 0.05
    amplification_base: float = 0.5

    def __post_init__(self):
        if self.rounds < 1:
            raise OptimizationConfigValidationError(
                f"rounds ({self.rounds}) must be >= 1"
            )
        if not 0 <= self.suppression_threshold < 1:
            raise OptimizationConfigValidationError(
                f"suppression_threshold ({self.suppression_threshold}) must be in [0, 1)"
            )
        if self.amplification_base <= 0:
            raise OptimizationConfigValidationError(
                f"amplification_base ({self.amplification_base}) must be > 0"
            )


@dataclass(frozen=True)
class SelectionConfig:
    """Post-selection refinement of the chosen plan."""

    refinement_factor: float = 1.2

    def __post_init__(self):
        if self.refinement_factor < 1:
            raise OptimizationConfigValidationError(
                f"refinement_factor ({self.refinement_factor}) must be >= 1"
            )


@dataclass(frozen=True)
class AdvantageConfig:
    """Cost models for the illustrative advantage telemetry."""

    classical_unit_cost_ms: float = 1000.0
    classical_cost_cap_ms: float = 1e12
    search_space_size: int = 100
    sampled_unit_cost_ms: float = 10.0

    def __post_init__(self):
        if self.classical_unit_cost_ms <= 0 or self.sampled_unit_cost_ms <= 0:
            raise OptimizationConfigValidationError("unit costs must be > 0")
        if self.classical_cost_cap_ms < self.classical_unit_cost_ms:
            raise OptimizationConfigValidationError(
                f"classical_cost_cap_ms ({self.classical_cost_cap_ms}) must be >= "
                f"classical_unit_cost_ms ({self.classical_unit_cost_ms})"
            )
        if self.search_space_size < 1:
            raise OptimizationConfigValidationError(
                f"search_space_size ({self.search_space_size}) must be >= 1"
            )

    @property
    def sampled_cost_ms(self) -> float:
        return (self.search_space_size ** 0.5) * self.sampled_unit_cost_ms


@dataclass(frozen=True)
class PairingConfig:
    blend_factor: float = 0.5

    def __post_init__(self):
        if not 0 <= self.blend_factor <= 0.5:
            raise OptimizationConfigValidationError(
                f"blend_factor ({self.blend_factor}) must be between 0 and 0.5"
            )


@dataclass(frozen=True)
class EscapeConfig:
    """Plateau escape constants."""

    scaling_constant: float = 10.0
    decay_constant: float = 10.0
    max_intensity_boost: float = 0.3
    max_duration_boost: float = 0.5

    def __post_init__(self):
        if self.scaling_constant <= 0 or self.decay_constant <= 0:
            raise OptimizationConfigValidationError(
                "scaling_constant and decay_constant must be > 0"
            )
        if self.max_intensity_boost < 0 or self.max_duration_boost < 0:
            raise OptimizationConfigValidationError("escape boosts must be >= 0")


@dataclass(frozen=True)
class FallbackExerciseConfig:
    id: str
    name: str
    category: str
    sets: int
    reps: int
    load: float = 0.0
    fitness_score: float = 0.5


@dataclass(frozen=True)
class FallbackPlanConfig:
    """Deterministic plan returned when a request runs out of time."""

    intensity: float = 0.7
    duration_minutes: int = 60
    rest_periods: tuple[int, ...] = (60, 90, 60)
    weight: float = 1.0
    exercises: tuple[FallbackExerciseConfig, ...] = ()

    def __post_init__(self):
        if not self.exercises:
            raise OptimizationConfigValidationError("fallback_plan needs at least one exercise")
        if len(self.rest_periods) != len(self.exercises):
            raise OptimizationConfigValidationError(
                f"fallback_plan has {len(self.exercises)} exercises but "
                f"{len(self.rest_periods)} rest periods"
            )


@dataclass(frozen=True)
class ScoringDimensionConfig:
    weight: float = 1.0
    enabled: bool = True

    def __post_init__(self):
        if self.weight < 0:
            raise OptimizationConfigValidationError(
                f"dimension weight must be >= 0, got {self.weight}"
            )


@dataclass(frozen=True)
class ScoringConfig:
    dimensions: dict[str, ScoringDimensionConfig]

    def __post_init__(self):
        if not any(d.enabled and d.weight > 0 for d in self.dimensions.values()):
            raise OptimizationConfigValidationError(
                "at least one scoring dimension must be enabled with a positive weight"
            )


@dataclass(frozen=True)
class OptimizationConfig:
    """Unified optimization configuration."""

    version: str
    last_updated: str
    generator: GeneratorConfig
    amplifier: AmplifierConfig
    selection: SelectionConfig
    advantage: AdvantageConfig
    pairing: PairingConfig
    escape: EscapeConfig
    fallback_plan: FallbackPlanConfig
    scoring: ScoringConfig
    default_exercise_pool: tuple[ExerciseTemplateConfig, ...]


_NUMERIC_FIELD_TYPES: dict[str, type] = {"int": int, "float": float}


def _coerce_number(section: str, name: str, expected: type, value: Any) -> int | float:
    """Convert a YAML scalar to the field's numeric type.

    Raises:
        OptimizationConfigValidationError: If the value is not a number of that type.
    """
    if isinstance(value, bool):
        raise OptimizationConfigValidationError(
            f"{section}.{name} must be a number, got {value!r}",
            details={"section": section, "field": name},
        )
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise OptimizationConfigValidationError(
            f"{section}.{name} must be a number, got {value!r}",
            details={"section": section, "field": name},
        )
    if expected is int:
        if not number.is_integer():
            raise OptimizationConfigValidationError(
                f"{section}.{name} must be an integer, got {value!r}",
                details={"section": section, "field": name},
            )
        return int(number)
    return number


def _build_section(cls: type, raw: Any, section: str) -> Any:
    """Build one section dataclass, rejecting unknown keys and coercing numbers."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise OptimizationConfigValidationError(
            f"Section '{section}' must be a mapping, got {type(raw).__name__}",
            details={"section": section},
        )

    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise OptimizationConfigValidationError(
            f"Unknown configuration key(s) in '{section}': {', '.join(map(str, unknown))}",
            details={"section": section, "unknown_keys": unknown},
        )

    values = {}
    for key, value in raw.items():
        expected = _NUMERIC_FIELD_TYPES.get(known[key].type)
        values[key] = _coerce_number(section, key, expected, value) if expected else value
    return cls(**values)


def parse_optimization_config(data: dict[str, Any]) -> OptimizationConfig:
    """Parse raw YAML data into OptimizationConfig.

    Args:
        data: Raw YAML data as dictionary.

    Returns:
        Parsed OptimizationConfig.

    Raises:
        OptimizationConfigValidationError: If validation fails.
    """
    generator = _build_section(GeneratorConfig, data.get("generator"), "generator")
    amplifier = _build_section(AmplifierConfig, data.get("amplifier"), "amplifier")
    selection = _build_section(SelectionConfig, data.get("selection"), "selection")
    advantage = _build_section(AdvantageConfig, data.get("advantage"), "advantage")
    pairing = _build_section(PairingConfig, data.get("pairing"), "pairing")
    escape = _build_section(EscapeConfig, data.get("escape"), "escape")

    fallback_data = data.get("fallback_plan") or {}
    fallback_plan = FallbackPlanConfig(
        intensity=_coerce_number(
            "fallback_plan", "intensity", float, fallback_data.get("intensity", 0.7)
        ),
        duration_minutes=_coerce_number(
            "fallback_plan", "duration_minutes", int, fallback_data.get("duration_minutes", 60)
        ),
        rest_periods=tuple(
            _coerce_number("fallback_plan", "rest_periods", int, rest)
            for rest in fallback_data.get("rest_periods", (60, 90, 60))
        ),
        weight=_coerce_number("fallback_plan", "weight", float, fallback_data.get("weight", 1.0)),
        exercises=tuple(
            _build_section(FallbackExerciseConfig, exercise, "fallback_plan.exercises")
            for exercise in fallback_data.get("exercises", [])
        ),
    )

    dimensions_data = (data.get("scoring") or {}).get("dimensions") or {}
    scoring = ScoringConfig(
        dimensions={
            name: _build_section(ScoringDimensionConfig, dim, f"scoring.dimensions.{name}")
            for name, dim in dimensions_data.items()
        }
    )

    pool = tuple(
        ExerciseTemplateConfig(
            id=str(entry["id"]),
            name=entry["name"],
            category=entry.get("category", "strength"),
            goal_tags=tuple(entry.get("goal_tags", ())),
            base_load=float(entry.get("base_load", 0.0)),
            equipment=tuple(entry.get("equipment", ())),
        )
        for entry in data.get("default_exercise_pool", [])
    )
    if not pool:
        raise OptimizationConfigValidationError("default_exercise_pool must not be empty")

    return OptimizationConfig(
        version=str(data.get("version", "1.0.0")),
        last_updated=str(data.get("last_updated", "")),
        generator=generator,
        amplifier=amplifier,
        selection=selection,
        advantage=advantage,
        pairing=pairing,
        escape=escape,
        fallback_plan=fallback_plan,
        scoring=scoring,
        default_exercise_pool=pool,
    )


def load_optimization_config(path: Path | str) -> OptimizationConfig:
    """Read and parse a configuration file without touching the shared loader."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise OptimizationConfigLoadError(
            f"Configuration file not found: {path}",
            details={"file_path": str(path)},
        )
    except yaml.YAMLError as e:
        raise OptimizationConfigLoadError(
            f"Failed to parse YAML configuration: {e}",
            details={"file_path": str(path)},
        )

    if not isinstance(data, dict):
        raise OptimizationConfigLoadError(
            "Configuration root must be a mapping",
            details={"file_path": str(path)},
        )

    try:
        return parse_optimization_config(data)
    except OptimizationConfigValidationError:
        raise
    except (KeyError, ValueError, TypeError) as e:
        raise OptimizationConfigLoadError(
            f"Failed to parse configuration: {e}",
            details={"file_path": str(path)},
        )


class OptimizationConfigLoader:
    """Thread-safe holder for the current configuration with reload support."""

    def __init__(self, config_path: Path | str | None = None):
        self._lock = RLock()
        self._config: OptimizationConfig | None = None
        self._config_path = Path(config_path) if config_path else DEFAULT_OPTIMIZATION_CONFIG_PATH
        self._reload_callbacks: list[Callable[[OptimizationConfig], None]] = []
        self._reload_count = 0

        self._load_config()

    @property
    def config_path(self) -> Path:
        return self._config_path

    def _load_config(self) -> None:
        self._config = load_optimization_config(self._config_path)
        self._reload_count += 1
        self._notify_callbacks()

    @property
    def config(self) -> OptimizationConfig:
        """Get current configuration (thread-safe)."""
        with self._lock:
            if self._config is None:
                self._load_config()
            return self._config

    def reload(self) -> None:
        """Force reload configuration from file."""
        with self._lock:
            self._load_config()

    def register_reload_callback(
        self, callback: Callable[[OptimizationConfig], None]
    ) -> None:
        """Register a callback to be called with the new configuration on reload."""
        self._reload_callbacks.append(callback)

    def _notify_callbacks(self) -> None:
        if self._config is None:
            return
        for callback in self._reload_callbacks:
            callback(self._config)

    @property
    def reload_count(self) -> int:
        return self._reload_count


_loader_instance: OptimizationConfigLoader | None = None
_loader_lock = RLock()


def get_optimization_config_loader(
    config_path: Path | str | None = None,
) -> OptimizationConfigLoader:
    """Get or create the shared OptimizationConfigLoader instance.

    The path is taken from the argument, then from the
    PLANSEARCH_OPTIMIZATION_CONFIG_PATH setting, then the bundled file.

    Example:
        >>> loader = get_optimization_config_loader()
        >>> threshold = loader.config.amplifier.suppression_threshold
    """
    global _loader_instance
    with _loader_lock:
        if _loader_instance is None:
            if config_path is None:
                from plansearch.config.settings import get_settings

                config_path = get_settings().optimization_config_path or None
            _loader_instance = OptimizationConfigLoader(config_path)
        return _loader_instance


def get_optimization_config() -> OptimizationConfig:
    """Get current optimization configuration.

    Example:
        >>> from plansearch.config.optimization_config_loader import get_optimization_config
        >>> config = get_optimization_config()
        >>> rounds = config.amplifier.rounds
    """
    return get_optimization_config_loader().config


def reload_optimization_config() -> None:
    """Force reload optimization configuration from file."""
    get_optimization_config_loader().reload()


def reset_optimization_config_loader() -> None:
    """Drop the shared loader so the next access reads configuration again."""
    global _loader_instance
    with _loader_lock:
        _loader_instance = None
