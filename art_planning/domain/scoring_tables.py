"""
Versioned keyword tables for WSJF scoring.

The packaged artifact is scoring_tables.v1.yaml next to this module. A
different table file can be supplied through
ScoringConfig.keyword_tables_path; the loaded tables are immutable.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml


DEFAULT_TABLES_PATH = Path(__file__).resolve().parent / "scoring_tables.v1.yaml"


@dataclass(frozen=True)
class KeywordFactor:
    """One weighted keyword set: min(100, base + matches * increment)."""
    name: str
    base: float
    increment: float
    keywords: tuple[str, ...]

    def matches(self, content: str) -> int:
        return sum(1 for keyword in self.keywords if keyword in content)

    def score(self, content: str) -> float:
        return min(100.0, self.base + self.matches(content) * self.increment)


@dataclass(frozen=True)
class DimensionTable:
    factors: tuple[KeywordFactor, ...]
    divisor: float


@dataclass(frozen=True)
class ScaleTable:
    """A 1..max heuristic: min(max, base + matches * increment)."""
    base: float
    increment: float
    maximum: float
    keywords: tuple[str, ...]

    def score(self, content: str) -> float:
        matched = sum(1 for keyword in self.keywords if keyword in content)
        return min(self.maximum, self.base + matched * self.increment)


@dataclass(frozen=True)
class ScoringTables:
    version: str
    business_value: DimensionTable
    time_criticality: DimensionTable
    risk_reduction: DimensionTable
    points_boost_per_point: float
    points_boost_max: float
    priority_boost_pivot: int
    priority_boost_per_step: float
    complexity: ScaleTable
    uncertainty: ScaleTable
    dependency_weight: float
    dependency_keywords: tuple[str, ...]

    def count_dependency_mentions(self, content: str) -> int:
        return sum(1 for keyword in self.dependency_keywords if keyword in content)


def _parse_dimension(name: str, data: dict) -> DimensionTable:
    factors_data = data.get("factors")
    if not factors_data:
        raise ValueError(f"Scoring table dimension '{name}' has no factors")

    factors = tuple(
        KeywordFactor(
            name=factor_name,
            base=float(factor["base"]),
            increment=float(factor["increment"]),
            keywords=tuple(str(k).lower() for k in factor.get("keywords", [])),
        )
        for factor_name, factor in factors_data.items()
    )
    divisor = float(data.get("divisor", len(factors)))
    if divisor <= 0:
        raise ValueError(f"Scoring table dimension '{name}' has non-positive divisor {divisor}")
    return DimensionTable(factors=factors, divisor=divisor)


def _parse_scale(data: dict) -> ScaleTable:
    return ScaleTable(
        base=float(data.get("base", 1)),
        increment=float(data["increment"]),
        maximum=float(data.get("max", 5)),
        keywords=tuple(str(k).lower() for k in data.get("keywords", [])),
    )


def parse_scoring_tables(data: dict) -> ScoringTables:
    """Build ScoringTables from the parsed YAML document."""
    try:
        business = data["business_value"]
        time_crit = data["time_criticality"]
        job_size = data["job_size"]
        points_boost = business.get("points_boost", {})
        priority_boost = time_crit.get("priority_boost", {})
        dependency = job_size.get("dependency_mentions", {})

        return ScoringTables(
            version=str(data.get("version", "v1")),
            business_value=_parse_dimension("business_value", business),
            time_criticality=_parse_dimension("time_criticality", time_crit),
            risk_reduction=_parse_dimension("risk_reduction", data["risk_reduction"]),
            points_boost_per_point=float(points_boost.get("per_point", 0)),
            points_boost_max=float(points_boost.get("max", 0)),
            priority_boost_pivot=int(priority_boost.get("pivot", 5)),
            priority_boost_per_step=float(priority_boost.get("per_step", 0)),
            complexity=_parse_scale(job_size["complexity"]),
            uncertainty=_parse_scale(job_size["uncertainty"]),
            dependency_weight=float(dependency.get("weight", 0)),
            dependency_keywords=tuple(str(k).lower() for k in dependency.get("keywords", [])),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed scoring tables: {e}") from e


def load_scoring_tables(path: Optional[Path] = None) -> ScoringTables:
    """Load scoring tables from a YAML file (packaged v1 tables by default)."""
    if path is None:
        return default_scoring_tables()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Scoring tables at {path} must be a mapping")
    return parse_scoring_tables(data)


@lru_cache(maxsize=1)
def default_scoring_tables() -> ScoringTables:
    with open(DEFAULT_TABLES_PATH, "r", encoding="utf-8") as f:
        return parse_scoring_tables(yaml.safe_load(f))
