"""
Core infrastructure for the ART planning engine.

- Configuration (PlanningConfig, Settings)
- Logging setup for host processes
"""

from art_planning.core.config import (
    PlanningConfig,
    PriorityThresholds,
    ReadinessWeights,
    ScoringConfig,
    Settings,
    WSJFWeights,
    clear_config_cache,
    get_config,
    get_settings,
    load_config_from_env,
)
from art_planning.core.logging import (
    ContextLogger,
    JSONFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "PlanningConfig",
    "PriorityThresholds",
    "ReadinessWeights",
    "ScoringConfig",
    "Settings",
    "WSJFWeights",
    "clear_config_cache",
    "get_config",
    "get_settings",
    "load_config_from_env",
    "ContextLogger",
    "JSONFormatter",
    "configure_logging",
    "get_logger",
]
