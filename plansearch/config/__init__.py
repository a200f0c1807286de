"""Engine configuration module.

- **settings.py**: Environment-based settings (Pydantic BaseSettings)
  - Debug flag, log rendering, request defaults, config file override
  - Loaded from environment / .env via pydantic-settings (PLANSEARCH_ prefix)

- **optimization_config.yaml**: Search engine configuration
  - Loaded via OptimizationConfigLoader and validated section by section
  - Generator bounds, amplification, selection, advantage cost models,
    pairing, plateau escape, fallback plan, scorer weights, default pool
"""
from plansearch.config.settings import Settings, get_settings

# Optimization config loader (lazy import to avoid circular dependencies)
# Use: from plansearch.config.optimization_config_loader import get_optimization_config

__all__ = ["Settings", "get_settings"]
