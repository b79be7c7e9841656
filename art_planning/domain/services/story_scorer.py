"""
WSJF story scoring.

Four sub-scores come from the versioned keyword tables
(scoring_tables.v1.yaml) matched against lower-cased title + description:
business value, time criticality and risk reduction (each 0-100) plus a
job size scaled by story points. wsjf = weighted numerator / job size, or 0
when job size is 0.

Batch scoring isolates failures per story: a story that cannot be scored
becomes a ScoringError in the result and the rest of the batch proceeds.
"""

import logging
import re
import time
from functools import cmp_to_key
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from art_planning.core.config import PlanningConfig, ScoringConfig
from art_planning.domain.errors import ScoringError
from art_planning.domain.models.scoring import (
    PriorityTier,
    PriorityUpdate,
    ScoredStory,
    ScoringResult,
    ScoringSummary,
    ValueOptimizationRecommendation,
)
from art_planning.domain.models.work_items import PlanningWorkItem
from art_planning.domain.scoring_tables import (
    DimensionTable,
    ScoringTables,
    load_scoring_tables,
)

logger = logging.getLogger(__name__)

StoryInput = Union[PlanningWorkItem, Mapping[str, Any]]

# Optimization recommendation cut-offs
QUICK_WIN_MIN_WSJF = 6.0
QUICK_WIN_MAX_JOB_SIZE = 3.0
SPLIT_MIN_WSJF = 5.0
SPLIT_MIN_JOB_SIZE = 8.0
DELAY_MAX_WSJF = 2.0
DELAY_MIN_JOB_SIZE = 5.0
COMBINE_MAX_JOB_SIZE = 2.0
COMBINE_MIN_SIMILARITY = 0.7

# prioritize_stories: differences within these bands fall through to the next key
WSJF_BAND = 0.1
BUSINESS_VALUE_BAND = 5.0
JOB_SIZE_BAND = 1.0


class StoryScorer:
    """Scores stories with WSJF. Stateless apart from its config and tables."""

    def __init__(
        self,
        config: Optional[Union[PlanningConfig, ScoringConfig]] = None,
        tables: Optional[ScoringTables] = None,
    ):
        if isinstance(config, PlanningConfig):
            config = config.scoring
        self.config: ScoringConfig = config or ScoringConfig()
        self.tables = tables or load_scoring_tables(self.config.keyword_tables_path)

    # ------------------------------------------------------------------
    # Single story
    # ------------------------------------------------------------------

    def score_story(self, story: StoryInput) -> ScoredStory:
        """
        Score one story and return a new ScoredStory.

        Raises:
            ScoringError: if the story is malformed or scoring fails
        """
        item = _coerce_story(story)
        try:
            content = item.content
            business_value = self._business_value(item, content)
            time_criticality = self._time_criticality(item, content)
            risk_reduction = self._dimension(self.tables.risk_reduction, content)
            job_size = self._job_size(item, content)

            weights = self.config.weights
            numerator = (
                business_value * weights.business_value
                + time_criticality * weights.time_criticality
                + risk_reduction * weights.risk_reduction
            )
            wsjf = numerator / job_size if job_size > 0 else 0.0

            # a ScoredStory input is rescored from its work-item fields only
            return ScoredStory(
                **item.model_dump(include=set(PlanningWorkItem.model_fields)),
                business_value=business_value,
                time_criticality=time_criticality,
                risk_reduction=risk_reduction,
                job_size=job_size,
                wsjf_score=wsjf,
                priority_score=min(100.0, wsjf * 10),
                recommended_priority=self.priority_for(wsjf),
                scoring_version=self.config.scoring_version,
            )
        except (ValueError, TypeError, ArithmeticError) as e:
            raise ScoringError(f"Failed to score story {item.id}: {e}", story_id=item.id) from e

    def priority_for(self, wsjf_score: float) -> PriorityTier:
        thresholds = self.config.thresholds
        if wsjf_score >= thresholds.urgent:
            return PriorityTier.URGENT
        if wsjf_score >= thresholds.high:
            return PriorityTier.HIGH
        if wsjf_score >= thresholds.medium:
            return PriorityTier.MEDIUM
        return PriorityTier.LOW

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def score_stories(self, stories: Sequence[StoryInput]) -> ScoringResult:
        """
        Score a batch. One bad story never aborts the batch.

        Stories are sorted by WSJF descending only after every story has
        been scored. Equal scores go by business value, then smaller job
        size, then time criticality, then input order.
        """
        started = time.perf_counter()
        scored: list[ScoredStory] = []
        errors: list[ScoringError] = []

        for story in stories or []:
            try:
                scored.append(self.score_story(story))
            except ScoringError as e:
                logger.warning(f"[SCORING] {e}")
                errors.append(e)

        scored = sorted(scored, key=_rank_key)

        priority_updates = self._priority_updates(scored)
        recommendations = self._recommendations(scored)

        summary = ScoringSummary(
            total_stories=len(scored),
            average_wsjf_score=(
                sum(s.wsjf_score for s in scored) / len(scored) if scored else 0.0
            ),
            high_priority_count=sum(
                1 for s in scored if s.recommended_priority <= PriorityTier.HIGH
            ),
            recommendations_count=len(recommendations),
            error_count=len(errors),
        )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"[SCORING] Scored {len(scored)} stories ({len(errors)} errors) "
            f"in {elapsed_ms:.1f}ms, tables {self.tables.version}"
        )

        return ScoringResult(
            scored_stories=scored,
            priority_updates=priority_updates,
            recommendations=recommendations,
            summary=summary,
            processing_time_ms=elapsed_ms,
            errors=errors,
        )

    def prioritize_stories(self, scored: Sequence[ScoredStory]) -> list[ScoredStory]:
        """
        Backlog order for already-scored stories.

        WSJF differences within WSJF_BAND are treated as ties and settled by
        business value (beyond BUSINESS_VALUE_BAND), then smaller job size
        (beyond JOB_SIZE_BAND), then time criticality. Stable otherwise.
        """
        prioritized = sorted(scored, key=cmp_to_key(_compare_banded))
        if prioritized:
            logger.info(
                f"[SCORING] Prioritized {len(prioritized)} stories: "
                f"top {prioritized[0].id} ({prioritized[0].wsjf_score:.2f}), "
                f"bottom {prioritized[-1].id} ({prioritized[-1].wsjf_score:.2f})"
            )
        return prioritized

    # ------------------------------------------------------------------
    # Sub-scores
    # ------------------------------------------------------------------

    def _dimension(self, table: DimensionTable, content: str, extra: float = 0.0) -> float:
        total = sum(factor.score(content) for factor in table.factors) + extra
        return min(100.0, total / table.divisor)

    def _business_value(self, item: PlanningWorkItem, content: str) -> float:
        boost = min(
            self.tables.points_boost_max,
            item.points * self.tables.points_boost_per_point,
        )
        return self._dimension(self.tables.business_value, content, boost)

    def _time_criticality(self, item: PlanningWorkItem, content: str) -> float:
        boost = 0.0
        if item.priority:
            boost = max(
                0.0,
                (self.tables.priority_boost_pivot - item.priority)
                * self.tables.priority_boost_per_step,
            )
        return self._dimension(self.tables.time_criticality, content, boost)

    def _job_size(self, item: PlanningWorkItem, content: str) -> float:
        complexity = self.tables.complexity.score(content)
        uncertainty = self.tables.uncertainty.score(content)
        mentions = self.tables.count_dependency_mentions(content)

        scale = 1 + 0.2 * (complexity - 1) + 0.2 * (uncertainty - 1)
        return item.points * scale + self.tables.dependency_weight * mentions

    # ------------------------------------------------------------------
    # Result assembly
    # ------------------------------------------------------------------

    def _priority_updates(self, scored: list[ScoredStory]) -> list[PriorityUpdate]:
        return [
            PriorityUpdate(
                story_id=s.id,
                current_priority=s.priority or int(PriorityTier.MEDIUM),
                recommended_priority=s.recommended_priority,
                wsjf_score=s.wsjf_score,
                rationale=(
                    f"WSJF Score: {s.wsjf_score:.2f} "
                    f"(Business Value: {s.business_value:.1f}, "
                    f"Time Criticality: {s.time_criticality:.1f}, "
                    f"Risk Reduction: {s.risk_reduction:.1f}, "
                    f"Job Size: {s.job_size:.1f})"
                ),
            )
            for s in scored
        ]

    def _recommendations(self, scored: list[ScoredStory]) -> list[ValueOptimizationRecommendation]:
        recommendations: list[ValueOptimizationRecommendation] = []

        quick_wins = [
            s.id for s in scored
            if s.wsjf_score > QUICK_WIN_MIN_WSJF and s.job_size <= QUICK_WIN_MAX_JOB_SIZE
        ]
        if quick_wins:
            recommendations.append(ValueOptimizationRecommendation(
                recommendation_type="PRIORITIZE",
                affected_stories=quick_wins,
                rationale="High WSJF score with low job size - excellent value delivery opportunity",
                expected_impact="Quick delivery of high business value",
                confidence=0.9,
            ))

        split_candidates = [
            s.id for s in scored
            if s.wsjf_score > SPLIT_MIN_WSJF and s.job_size > SPLIT_MIN_JOB_SIZE
        ]
        if split_candidates:
            recommendations.append(ValueOptimizationRecommendation(
                recommendation_type="SPLIT",
                affected_stories=split_candidates,
                rationale="High business value but large job size - consider story decomposition",
                expected_impact="Earlier value delivery through incremental implementation",
                confidence=0.7,
            ))

        delay_candidates = [
            s.id for s in scored
            if s.wsjf_score < DELAY_MAX_WSJF and s.job_size > DELAY_MIN_JOB_SIZE
        ]
        if delay_candidates:
            recommendations.append(ValueOptimizationRecommendation(
                recommendation_type="DELAY",
                affected_stories=delay_candidates,
                rationale=(
                    f"Low WSJF score (<{DELAY_MAX_WSJF:g}) with high effort "
                    f"(>{DELAY_MIN_JOB_SIZE:g}) - may not provide optimal value"
                ),
                expected_impact="Focus team capacity on higher-value work",
                confidence=0.6,
            ))

        similar = _similar_small_stories(scored)
        if len(similar) > 1:
            recommendations.append(ValueOptimizationRecommendation(
                recommendation_type="COMBINE",
                affected_stories=similar,
                rationale=f"{len(similar)} small, related stories could be combined for efficiency",
                expected_impact="Reduced overhead and improved implementation efficiency",
                confidence=0.5,
            ))

        return recommendations


def _rank_key(story: ScoredStory) -> tuple[float, float, float, float]:
    return (-story.wsjf_score, -story.business_value, story.job_size, -story.time_criticality)


def _compare_banded(a: ScoredStory, b: ScoredStory) -> int:
    if abs(a.wsjf_score - b.wsjf_score) > WSJF_BAND:
        return -1 if a.wsjf_score > b.wsjf_score else 1
    if abs(a.business_value - b.business_value) > BUSINESS_VALUE_BAND:
        return -1 if a.business_value > b.business_value else 1
    if abs(a.job_size - b.job_size) > JOB_SIZE_BAND:
        return -1 if a.job_size < b.job_size else 1
    if a.time_criticality != b.time_criticality:
        return -1 if a.time_criticality > b.time_criticality else 1
    return 0


def _title_keywords(title: str) -> set[str]:
    words = re.sub(r"[^\w\s]", "", title.lower()).split()
    return {w for w in words if len(w) > 3}


def _jaccard(a: set[str], b: set[str]) -> float:
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def _similar_small_stories(scored: Sequence[ScoredStory]) -> list[str]:
    """Ids of small stories whose title keywords overlap another small story's."""
    small = [s for s in scored if s.job_size <= COMBINE_MAX_JOB_SIZE]
    keywords = {s.id: _title_keywords(s.title) for s in small}
    similar: list[str] = []
    grouped: set[str] = set()

    for i, first in enumerate(small):
        if first.id in grouped:
            continue
        for second in small[i + 1:]:
            if second.id in grouped:
                continue
            if _jaccard(keywords[first.id], keywords[second.id]) >= COMBINE_MIN_SIMILARITY:
                if first.id not in grouped:
                    similar.append(first.id)
                    grouped.add(first.id)
                similar.append(second.id)
                grouped.add(second.id)

    return similar


def _coerce_story(story: StoryInput) -> PlanningWorkItem:
    if isinstance(story, PlanningWorkItem):
        return story
    story_id = story.get("id") if isinstance(story, Mapping) else None
    try:
        return PlanningWorkItem.model_validate(story)
    except ValidationError as e:
        raise ScoringError(
            f"Invalid story {story_id or '<unknown>'}: {e.error_count()} validation error(s)",
            story_id=story_id,
            phase="validation",
        ) from e


def score_stories(
    stories: Sequence[StoryInput],
    config: Optional[Union[PlanningConfig, ScoringConfig]] = None,
) -> ScoringResult:
    """Score a batch of stories with a fresh StoryScorer."""
    return StoryScorer(config).score_stories(stories)
