"""
Tier-1 tests for scoring_tables.py.

Covers the packaged v1 tables and loading alternative tables from YAML.
"""

import pytest

from art_planning.core.config import ScoringConfig
from art_planning.domain.models import PlanningWorkItem
from art_planning.domain.scoring_tables import (
    default_scoring_tables,
    load_scoring_tables,
    parse_scoring_tables,
)
from art_planning.domain.services.story_scorer import StoryScorer


CUSTOM_TABLES = """
version: "custom-2"
business_value:
  divisor: 1
  factors:
    only:
      base: 10
      increment: 40
      keywords: [Widget]
time_criticality:
  divisor: 1
  factors:
    only: {base: 0, increment: 0, keywords: []}
risk_reduction:
  divisor: 1
  factors:
    only: {base: 0, increment: 0, keywords: []}
job_size:
  complexity: {increment: 0.5, keywords: []}
  uncertainty: {increment: 0.7, keywords: []}
  dependency_mentions: {weight: 0.5, keywords: []}
"""


class TestDefaultTables:

    def test_version_and_dimensions(self):
        tables = default_scoring_tables()
        assert tables.version == "v1"
        assert [f.name for f in tables.business_value.factors] == [
            "user", "business", "tech_debt", "strategic",
        ]
        assert [f.name for f in tables.time_criticality.factors] == [
            "market", "commitment", "regulatory",
        ]
        assert len(tables.risk_reduction.factors) == 4
        assert tables.business_value.divisor == 5
        assert tables.time_criticality.divisor == 4

    def test_factor_score_capped(self):
        factor = default_scoring_tables().time_criticality.factors[2]  # regulatory
        content = "compliance regulatory legal audit security gdpr hipaa"
        assert factor.matches(content) == 7
        assert factor.score(content) == 100.0

    def test_scale_capped_at_five(self):
        tables = default_scoring_tables()
        content = "research investigate explore unknown unclear tbd"
        assert tables.uncertainty.score(content) == 5.0

    def test_default_loader_returns_cached_tables(self):
        assert load_scoring_tables() is default_scoring_tables()


class TestCustomTables:

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "tables.yaml"
        path.write_text(CUSTOM_TABLES)

        tables = load_scoring_tables(path)
        assert tables.version == "custom-2"
        # keywords are lower-cased on load
        assert tables.business_value.factors[0].keywords == ("widget",)

    def test_scorer_uses_configured_path(self, tmp_path):
        path = tmp_path / "tables.yaml"
        path.write_text(CUSTOM_TABLES)

        scorer = StoryScorer(ScoringConfig(keyword_tables_path=path))
        scored = scorer.score_story(PlanningWorkItem(id="S1", title="New widget", story_points=1))
        assert scored.business_value == pytest.approx(50.0)

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "tables.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_scoring_tables(path)

    def test_missing_section_rejected(self):
        with pytest.raises(ValueError, match="Malformed scoring tables"):
            parse_scoring_tables({"version": "x"})

    def test_dimension_without_factors_rejected(self):
        with pytest.raises(ValueError, match="has no factors"):
            parse_scoring_tables({
                "business_value": {"factors": {}},
                "time_criticality": {"factors": {}},
                "risk_reduction": {"factors": {}},
                "job_size": {},
            })
