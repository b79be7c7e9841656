"""
Input models for ART planning.

These are caller-owned and frozen: the planner reads them and never
mutates them. camelCase aliases are accepted so payloads marshalled by
the surrounding CLI/webhook layers validate without renaming.
"""

from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


_INPUT_MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


class WorkItemType(str, Enum):
    """Kind of backlog item."""
    STORY = "story"
    ENABLER = "enabler"
    FEATURE = "feature"
    EPIC = "epic"


class EnablerType(str, Enum):
    """Enabler categories (only valid on enabler items)."""
    ARCHITECTURE = "architecture"
    INFRASTRUCTURE = "infrastructure"
    TECHNICAL_DEBT = "technical_debt"
    RESEARCH = "research"


class DependencyType(str, Enum):
    """Relationship kind between two work items."""
    REQUIRES = "requires"
    BLOCKED_BY = "blocked_by"
    BLOCKS = "blocks"
    ENABLES = "enables"
    RELATED = "related"
    CONFLICTS = "conflicts"


class DependencyStrength(str, Enum):
    """Only HARD dependencies constrain ordering."""
    HARD = "hard"
    SOFT = "soft"
    OPTIONAL = "optional"


class PIStatus(str, Enum):
    PLANNING = "planning"
    EXECUTION = "execution"
    COMPLETED = "completed"


class PlanningWorkItem(BaseModel):
    """
    A unit of backlog work: story, enabler, feature or epic.

    priority follows the tracker convention 1 (urgent) .. 4 (low);
    0 or None means "not set".
    """
    model_config = _INPUT_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    type: WorkItemType = WorkItemType.STORY
    title: str = ""
    description: str = ""
    story_points: Optional[int] = Field(None, ge=0)
    priority: Optional[int] = Field(None, ge=0, le=4)
    parent_id: Optional[str] = None
    acceptance_criteria: Tuple[str, ...] = ()
    enabler_type: Optional[EnablerType] = None
    team_id: Optional[str] = None

    @field_validator("acceptance_criteria", mode="before")
    @classmethod
    def _none_criteria_to_empty(cls, v):
        return () if v is None else v

    @model_validator(mode="after")
    def _enabler_type_only_on_enablers(self) -> "PlanningWorkItem":
        if self.enabler_type is not None and self.type != WorkItemType.ENABLER:
            raise ValueError(
                f"enabler_type is only valid for enabler items, got type '{self.type.value}' on {self.id}"
            )
        return self

    @property
    def points(self) -> int:
        """Story points with missing treated as zero."""
        return self.story_points or 0

    @property
    def content(self) -> str:
        """Lower-cased title + description, the text keyword heuristics run against."""
        return f"{self.title} {self.description or ''}".lower()


class DependencyEdge(BaseModel):
    """Directed relation: source depends on target (target must be available first)."""
    model_config = _INPUT_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)
    type: DependencyType = DependencyType.REQUIRES
    strength: DependencyStrength = DependencyStrength.HARD
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    rationale: str = ""
    detected_at: Optional[datetime] = None

    @property
    def is_hard(self) -> bool:
        return self.strength == DependencyStrength.HARD


class ARTTeam(BaseModel):
    """
    A team on the release train. Used only for capacity arithmetic.

    average_velocity / capacity_factor of None means capacity data is
    missing; the planner then treats the team as zero-capacity.
    """
    model_config = _INPUT_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    name: str = ""
    member_count: int = 0
    average_velocity: Optional[float] = None
    specializations: FrozenSet[str] = frozenset()
    capacity_factor: Optional[float] = None
    timezone: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def has_capacity_data(self) -> bool:
        return self.average_velocity is not None and self.capacity_factor is not None


class ProgramIncrement(BaseModel):
    """Planning horizon. Dates are inclusive calendar days."""
    model_config = _INPUT_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    name: str = ""
    start_date: date
    end_date: date
    description: Optional[str] = None
    status: PIStatus = PIStatus.PLANNING

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1
