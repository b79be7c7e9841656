"""
Configuration for the ART planning engine.

PlanningConfig is passed explicitly into every planning call; nothing in
the engine reads the environment on its own. load_config_from_env() is a
convenience for callers (CLI, webhook workers) that want ART_* overrides.
"""

import os
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class WSJFWeights:
    """Weights of the three WSJF numerator terms. Job size is the denominator."""
    business_value: float = 0.35
    time_criticality: float = 0.25
    risk_reduction: float = 0.25


@dataclass(frozen=True)
class PriorityThresholds:
    """WSJF score thresholds; below medium is LOW."""
    urgent: float = 8.0
    high: float = 5.0
    medium: float = 2.0

    def __post_init__(self):
        if not (self.urgent >= self.high >= self.medium):
            raise ValueError(
                f"Priority thresholds must satisfy urgent >= high >= medium, "
                f"got {self.urgent}/{self.high}/{self.medium}"
            )


@dataclass(frozen=True)
class ScoringConfig:
    weights: WSJFWeights = field(default_factory=WSJFWeights)
    thresholds: PriorityThresholds = field(default_factory=PriorityThresholds)
    scoring_version: str = "1.0.0"
    # None uses the packaged scoring_tables.v1.yaml
    keyword_tables_path: Optional[Path] = None


@dataclass(frozen=True)
class ReadinessWeights:
    dependency_integrity: float = 1 / 3
    capacity_balance: float = 1 / 3
    value_delivery: float = 1 / 3

    def __post_init__(self):
        if min(self.dependency_integrity, self.capacity_balance, self.value_delivery) < 0:
            raise ValueError("Readiness weights must be non-negative")
        if self.dependency_integrity + self.capacity_balance + self.value_delivery <= 0:
            raise ValueError("At least one readiness weight must be positive")


@dataclass(frozen=True)
class PlanningConfig:
    """Effective configuration for one planning call. Embedded in ARTPlan metadata."""

    # Iterations
    default_iteration_length: int = 14  # days
    buffer_capacity: float = 0.2  # reserved for unplanned work
    max_capacity_utilization: float = 0.85  # ceiling applied during allocation

    # Readiness
    target_utilization: float = 0.8
    min_value_delivery_threshold: float = 0.8
    min_readiness_score: float = 0.8
    readiness_weights: ReadinessWeights = field(default_factory=ReadinessWeights)

    # Dependency analysis
    high_dependency_threshold: int = 3  # in+out HARD edges above this flags an item
    strict_dependency_validation: bool = False

    # Scoring
    score_work_items: bool = True
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def __post_init__(self):
        if self.default_iteration_length < 1:
            raise ValueError(
                f"default_iteration_length must be at least 1 day, got {self.default_iteration_length}"
            )
        if not 0.0 <= self.buffer_capacity < 1.0:
            raise ValueError(f"buffer_capacity must be in [0, 1), got {self.buffer_capacity}")
        if not 0.0 < self.max_capacity_utilization <= 1.0:
            raise ValueError(
                f"max_capacity_utilization must be in (0, 1], got {self.max_capacity_utilization}"
            )
        if not 0.0 < self.target_utilization <= 1.0:
            raise ValueError(f"target_utilization must be in (0, 1], got {self.target_utilization}")
        if self.high_dependency_threshold < 0:
            raise ValueError("high_dependency_threshold must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form recorded in plan metadata for reproducibility."""
        data = asdict(self)
        path = data["scoring"]["keyword_tables_path"]
        data["scoring"]["keyword_tables_path"] = str(path) if path is not None else None
        return data


@dataclass
class Settings:
    """Process-level settings (logging) for hosts embedding the engine."""
    log_level: str = "INFO"
    log_format: str = "text"  # json or text
    planning: PlanningConfig = field(default_factory=PlanningConfig)


def load_config_from_env() -> PlanningConfig:
    """Build a PlanningConfig from ART_* environment variables (and .env)."""
    load_dotenv()

    def get_float(key: str, default: float) -> float:
        return float(os.getenv(key, str(default)))

    def get_int(key: str, default: int) -> int:
        return int(os.getenv(key, str(default)))

    def get_bool(key: str, default: bool = False) -> bool:
        value = os.getenv(key, str(default)).lower()
        return value in ("true", "1", "yes")

    tables_path = os.getenv("ART_KEYWORD_TABLES_PATH")

    return PlanningConfig(
        default_iteration_length=get_int("ART_DEFAULT_ITERATION_LENGTH", 14),
        buffer_capacity=get_float("ART_BUFFER_CAPACITY", 0.2),
        max_capacity_utilization=get_float("ART_MAX_CAPACITY_UTILIZATION", 0.85),
        target_utilization=get_float("ART_TARGET_UTILIZATION", 0.8),
        min_value_delivery_threshold=get_float("ART_MIN_VALUE_DELIVERY_THRESHOLD", 0.8),
        min_readiness_score=get_float("ART_MIN_READINESS_SCORE", 0.8),
        high_dependency_threshold=get_int("ART_HIGH_DEPENDENCY_THRESHOLD", 3),
        strict_dependency_validation=get_bool("ART_STRICT_DEPENDENCY_VALIDATION", False),
        score_work_items=get_bool("ART_SCORE_WORK_ITEMS", True),
        scoring=ScoringConfig(
            weights=WSJFWeights(
                business_value=get_float("ART_WSJF_WEIGHT_BUSINESS_VALUE", 0.35),
                time_criticality=get_float("ART_WSJF_WEIGHT_TIME_CRITICALITY", 0.25),
                risk_reduction=get_float("ART_WSJF_WEIGHT_RISK_REDUCTION", 0.25),
            ),
            thresholds=PriorityThresholds(
                urgent=get_float("ART_PRIORITY_URGENT_THRESHOLD", 8.0),
                high=get_float("ART_PRIORITY_HIGH_THRESHOLD", 5.0),
                medium=get_float("ART_PRIORITY_MEDIUM_THRESHOLD", 2.0),
            ),
            scoring_version=os.getenv("ART_SCORING_VERSION", "1.0.0"),
            keyword_tables_path=Path(tables_path) if tables_path else None,
        ),
    )


def load_settings_from_env() -> Settings:
    load_dotenv()
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "text"),
        planning=load_config_from_env(),
    )


@lru_cache()
def get_config() -> PlanningConfig:
    """Get cached planning config."""
    return load_config_from_env()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings_from_env()


def clear_config_cache() -> None:
    """Clear config caches (for testing)."""
    get_config.cache_clear()
    get_settings.cache_clear()
