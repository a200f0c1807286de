"""
Tests for the optimization configuration loader.
"""

import pytest
import yaml

from plansearch.config.optimization_config_loader import (
    DEFAULT_OPTIMIZATION_CONFIG_PATH,
    AmplifierConfig,
    FallbackExerciseConfig,
    FallbackPlanConfig,
    GeneratorConfig,
    OptimizationConfigLoader,
    OptimizationConfigLoadError,
    OptimizationConfigValidationError,
    PairingConfig,
    ScoringConfig,
    ScoringDimensionConfig,
    get_optimization_config,
    get_optimization_config_loader,
    load_optimization_config,
    reset_optimization_config_loader,
)
from plansearch.core.exceptions import ConfigurationError


@pytest.fixture
def raw_config():
    with open(DEFAULT_OPTIMIZATION_CONFIG_PATH) as f:
        return yaml.safe_load(f)


@pytest.fixture
def write_config(tmp_path):
    def _write(data):
        path = tmp_path / "optimization_config.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestBundledConfig:
    """Test the configuration shipped with the package."""

    def test_loads(self):
        config = load_optimization_config(DEFAULT_OPTIMIZATION_CONFIG_PATH)

        assert config.amplifier.suppression_threshold == 0.05
        assert config.amplifier.amplification_base == 0.5
        assert config.generator.max_population_size == 200
        assert config.pairing.blend_factor == 0.5
        assert config.escape.scaling_constant == 10.0
        assert config.escape.decay_constant == 10.0
        assert config.advantage.sampled_cost_ms == pytest.approx(100.0)

    def test_numeric_fields_are_numbers(self, raw_config):
        config = load_optimization_config(DEFAULT_OPTIMIZATION_CONFIG_PATH)

        assert isinstance(raw_config["advantage"]["classical_cost_cap_ms"], float)
        assert config.advantage.classical_cost_cap_ms == 1e12

    def test_fallback_plan_is_consistent(self):
        config = load_optimization_config(DEFAULT_OPTIMIZATION_CONFIG_PATH)

        assert len(config.fallback_plan.exercises) == len(config.fallback_plan.rest_periods)
        assert 0 <= config.fallback_plan.intensity <= 1

    def test_default_pool_ids_are_unique(self):
        config = load_optimization_config(DEFAULT_OPTIMIZATION_CONFIG_PATH)
        ids = [entry.id for entry in config.default_exercise_pool]

        assert len(ids) == len(set(ids))


class TestSectionValidation:
    """Test __post_init__ validation of individual sections."""

    def test_suppression_threshold_must_be_below_one(self):
        with pytest.raises(OptimizationConfigValidationError):
            AmplifierConfig(suppression_threshold=1.0)

    def test_blend_factor_upper_bound(self):
        with pytest.raises(OptimizationConfigValidationError):
            PairingConfig(blend_factor=0.6)

    def test_sets_must_be_ordered(self):
        with pytest.raises(OptimizationConfigValidationError):
            GeneratorConfig(min_sets=6, max_sets=5)

    def test_fallback_rest_periods_match_exercises(self):
        exercise = FallbackExerciseConfig(id="plank", name="Plank", category="core", sets=3, reps=1)

        with pytest.raises(OptimizationConfigValidationError):
            FallbackPlanConfig(rest_periods=(60, 60), exercises=(exercise,))

    def test_fallback_needs_exercises(self):
        with pytest.raises(OptimizationConfigValidationError):
            FallbackPlanConfig(exercises=())

    def test_scoring_needs_an_enabled_dimension(self):
        with pytest.raises(OptimizationConfigValidationError):
            ScoringConfig(
                dimensions={"duration_fit": ScoringDimensionConfig(weight=1.0, enabled=False)}
            )

    def test_validation_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AmplifierConfig(rounds=0)

        assert exc_info.value.code == "CFG_LOAD_001"


class TestLoadOptimizationConfig:
    """Test reading configuration files."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(OptimizationConfigLoadError) as exc_info:
            load_optimization_config(tmp_path / "missing.yaml")

        assert "not found" in exc_info.value.message

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("generator: [unclosed\n")

        with pytest.raises(OptimizationConfigLoadError):
            load_optimization_config(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(OptimizationConfigLoadError):
            load_optimization_config(path)

    def test_unknown_key(self, raw_config, write_config):
        raw_config["amplifier"]["turbo"] = True

        with pytest.raises(OptimizationConfigValidationError) as exc_info:
            load_optimization_config(write_config(raw_config))

        assert "Unknown configuration key(s) in 'amplifier': turbo" in exc_info.value.message
        assert exc_info.value.details["unknown_keys"] == ["turbo"]

    def test_range_error_is_not_reported_as_unknown_key(self, raw_config, write_config):
        raw_config["amplifier"]["suppression_threshold"] = 1.5

        with pytest.raises(OptimizationConfigValidationError) as exc_info:
            load_optimization_config(write_config(raw_config))

        assert "suppression_threshold" in exc_info.value.message
        assert "Unknown" not in exc_info.value.message

    def test_quoted_number_is_coerced(self, raw_config, write_config):
        raw_config["advantage"]["classical_cost_cap_ms"] = "1.0e12"
        raw_config["amplifier"]["rounds"] = "2"

        config = load_optimization_config(write_config(raw_config))

        assert config.advantage.classical_cost_cap_ms == 1e12
        assert config.amplifier.rounds == 2
        assert isinstance(config.amplifier.rounds, int)

    @pytest.mark.parametrize(
        "section,key,value,fragment",
        [
            ("advantage", "classical_cost_cap_ms", "lots", "advantage.classical_cost_cap_ms must be a number"),
            ("amplifier", "rounds", 1.5, "amplifier.rounds must be an integer"),
            ("generator", "max_sets", True, "generator.max_sets must be a number"),
            ("pairing", "blend_factor", None, "pairing.blend_factor must be a number"),
        ],
    )
    def test_non_numeric_value(self, raw_config, write_config, section, key, value, fragment):
        raw_config[section][key] = value

        with pytest.raises(OptimizationConfigValidationError) as exc_info:
            load_optimization_config(write_config(raw_config))

        assert fragment in exc_info.value.message

    def test_section_must_be_mapping(self, raw_config, write_config):
        raw_config["escape"] = [10.0, 10.0]

        with pytest.raises(OptimizationConfigValidationError) as exc_info:
            load_optimization_config(write_config(raw_config))

        assert "'escape' must be a mapping" in exc_info.value.message

    def test_fallback_exercise_numbers_are_checked(self, raw_config, write_config):
        raw_config["fallback_plan"]["exercises"][0]["sets"] = "three"

        with pytest.raises(OptimizationConfigValidationError):
            load_optimization_config(write_config(raw_config))

    def test_empty_default_pool(self, raw_config, write_config):
        raw_config["default_exercise_pool"] = []

        with pytest.raises(OptimizationConfigValidationError):
            load_optimization_config(write_config(raw_config))

    def test_pool_entry_without_id(self, raw_config, write_config):
        del raw_config["default_exercise_pool"][0]["id"]

        with pytest.raises(OptimizationConfigLoadError):
            load_optimization_config(write_config(raw_config))

    def test_overrides_are_applied(self, raw_config, write_config):
        raw_config["amplifier"]["rounds"] = 3
        raw_config["pairing"]["blend_factor"] = 0.25

        config = load_optimization_config(write_config(raw_config))

        assert config.amplifier.rounds == 3
        assert config.pairing.blend_factor == 0.25


class TestOptimizationConfigLoader:
    """Test the reloadable loader."""

    def test_reload_rereads_file(self, raw_config, write_config):
        path = write_config(raw_config)
        loader = OptimizationConfigLoader(path)
        assert loader.config.amplifier.rounds == 1

        raw_config["amplifier"]["rounds"] = 2
        write_config(raw_config)
        loader.reload()

        assert loader.config.amplifier.rounds == 2
        assert loader.reload_count == 2

    def test_reload_callbacks(self, raw_config, write_config):
        loader = OptimizationConfigLoader(write_config(raw_config))
        received = []
        loader.register_reload_callback(received.append)

        loader.reload()

        assert len(received) == 1
        assert received[0] is loader.config

    def test_shared_loader_is_reused(self):
        reset_optimization_config_loader()
        try:
            first = get_optimization_config_loader()
            second = get_optimization_config_loader()

            assert first is second
            assert get_optimization_config() is first.config
        finally:
            reset_optimization_config_loader()

    def test_shared_loader_uses_explicit_path(self, raw_config, write_config):
        raw_config["amplifier"]["rounds"] = 4
        path = write_config(raw_config)

        reset_optimization_config_loader()
        try:
            loader = get_optimization_config_loader(path)

            assert loader.config_path == path
            assert get_optimization_config().amplifier.rounds == 4
        finally:
            reset_optimization_config_loader()
