"""
Iteration structure builder.

Slices a PI's inclusive date range into fixed-length iterations. The
last iteration is clamped to the PI end date and may be partial.
"""

import logging
import math
from datetime import timedelta
from typing import Optional, Sequence

from art_planning.core.config import PlanningConfig
from art_planning.domain.errors import PlanningValidationError
from art_planning.domain.models.plan import Iteration
from art_planning.domain.models.work_items import ARTTeam, ProgramIncrement
from art_planning.domain.services.capacity import team_capacity

logger = logging.getLogger(__name__)


def validate_program_increment(pi: ProgramIncrement) -> None:
    if pi is None:
        raise PlanningValidationError("Program increment is required (got None)")
    if pi.end_date <= pi.start_date:
        raise PlanningValidationError(
            f"Program increment {pi.id} ends on {pi.end_date.isoformat()}, "
            f"which is not after its start {pi.start_date.isoformat()}",
            item_ids=[pi.id],
        )


def build_iterations(
    pi: ProgramIncrement,
    teams: Sequence[ARTTeam],
    config: Optional[PlanningConfig] = None,
) -> list[Iteration]:
    """
    Build contiguous iterations covering the PI.

    count = ceil(duration_days / iteration_length). Iteration i starts at
    start_date + i * length and ends the day before the next one starts,
    never after pi.end_date. Every iteration carries a fresh TeamCapacity
    per team.

    Raises:
        PlanningValidationError: if the PI does not end after it starts
    """
    validate_program_increment(pi)
    config = config or PlanningConfig()
    length = config.default_iteration_length

    count = math.ceil(pi.duration_days / length)
    iterations: list[Iteration] = []

    for index in range(count):
        start = pi.start_date + timedelta(days=index * length)
        end = min(start + timedelta(days=length - 1), pi.end_date)
        duration = (end - start).days + 1
        iterations.append(Iteration(
            index=index,
            id=f"{pi.id}-iteration-{index + 1}",
            name=f"Iteration {index + 1}",
            start_date=start,
            end_date=end,
            duration_days=duration,
            is_partial=duration < length,
            team_capacities=[team_capacity(team, config) for team in teams],
        ))

    logger.debug(
        f"[PLANNER] Built {count} iterations of {length} days for PI {pi.id} "
        f"({pi.start_date.isoformat()} - {pi.end_date.isoformat()})"
    )
    return iterations
