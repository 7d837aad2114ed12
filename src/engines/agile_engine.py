"""
Agile Metrics Engine.

Sprint and team metrics derived from task lists: velocity, committed
points, sprint progress, cycle time, completion rate and individual KPIs,
plus the risk score used by the risk register.
"""

from typing import Dict, Any, Optional, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging

from .errors import ValidationError
from .period_engine import parse_record_date

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 60 * 60 * 24


class TaskStatus(Enum):
    """Kanban column of a task."""
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"


class SprintStatus(Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"


# ==============================================================================
# DATA STRUCTURES
# ==============================================================================

@dataclass(frozen=True)
class Task:
    """A unit of work on the board."""
    id: str
    status: str
    story_points: float
    created_at: Any
    estimated_date: str = ""
    sprint_id: Optional[str] = None
    assigned_to: Optional[str] = None

    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE.value


@dataclass(frozen=True)
class Sprint:
    """A time-boxed iteration."""
    id: str
    name: str
    start_date: Any = None
    end_date: Any = None
    status: str = SprintStatus.PLANNED.value


# ==============================================================================
# SPRINT METRICS
# ==============================================================================

def calculate_sprint_committed_points(tasks: Iterable[Task], sprint_id: str) -> float:
    """Total story points of every task assigned to the sprint."""
    return sum(task.story_points for task in tasks if task.sprint_id == sprint_id)


def calculate_sprint_velocity(tasks: Iterable[Task], sprint_id: str) -> float:
    """
    Sprint velocity: total story points of the sprint's done tasks.

    Example:
        >>> tasks = [Task("1", "done", 5, "2024-01-01", sprint_id="s1"),
        ...          Task("2", "todo", 8, "2024-01-01", sprint_id="s1")]
        >>> calculate_sprint_velocity(tasks, "s1")
        5
    """
    return sum(
        task.story_points for task in tasks
        if task.sprint_id == sprint_id and task.is_done()
    )


def calculate_sprint_progress(tasks: Iterable[Task], sprint_id: str) -> Dict[str, float]:
    """
    Remaining points and completion percentage of a sprint.

    Returns:
        Dictionary with 'committed_points', 'completed_points',
        'remaining_points' and 'progress_percentage' (0 for an empty sprint)
    """
    tasks = list(tasks)
    committed = calculate_sprint_committed_points(tasks, sprint_id)
    completed = calculate_sprint_velocity(tasks, sprint_id)

    return {
        "committed_points": committed,
        "completed_points": completed,
        "remaining_points": committed - completed,
        "progress_percentage": (completed / committed) * 100 if committed > 0 else 0
    }


def calculate_team_velocity(tasks: Iterable[Task], sprints: Iterable[Sprint]) -> float:
    """Average sprint velocity across all sprints, 0 when there are none."""
    tasks = list(tasks)
    sprints = list(sprints)
    if not sprints:
        return 0

    total = sum(calculate_sprint_velocity(tasks, sprint.id) for sprint in sprints)
    return total / len(sprints)


# ==============================================================================
# FLOW METRICS
# ==============================================================================

def calculate_cycle_time(tasks: Iterable[Task], now: Optional[datetime] = None) -> float:
    """
    Average cycle time of done tasks, in days.

    Tasks carry no completion timestamp, so each done task is measured from
    its creation to `now` (the current time by default). The result is an
    approximation that keeps growing for old tasks. Both ends are compared
    as UTC; a naive `now` is taken to be UTC already.

    Args:
        tasks: Task objects
        now: Stand-in completion time, naive UTC or timezone-aware

    Returns:
        Mean days from creation to `now` over done tasks, 0 if none are done
    """
    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
    else:
        now = parse_record_date(now)

    durations = []
    for task in tasks:
        if not task.is_done():
            continue
        created_at = parse_record_date(task.created_at)
        if created_at is None:
            logger.debug(f"Task {task.id} has no usable creation date")
            continue
        durations.append((now - created_at).total_seconds() / SECONDS_PER_DAY)

    if not durations:
        return 0

    return sum(durations) / len(durations)


def _has_estimate(task: Task) -> bool:
    return bool(task.estimated_date and task.estimated_date.strip())


def calculate_completion_rate(tasks: Iterable[Task]) -> float:
    """
    Percentage of estimated tasks completed on time.

    Only tasks with a non-empty estimated date count. Completion dates are
    not tracked, so every done task is treated as on time.
    """
    estimated = [task for task in tasks if _has_estimate(task)]
    if not estimated:
        return 0

    on_time = [task for task in estimated if task.is_done()]
    return (len(on_time) / len(estimated)) * 100


def calculate_individual_kpis(tasks: Iterable[Task], member_name: str) -> Dict[str, float]:
    """
    Velocity, completed-task count and completion rate for one team member.

    Tasks are matched on the assignee's name.
    """
    member_tasks = [task for task in tasks if task.assigned_to == member_name]
    done = [task for task in member_tasks if task.is_done()]

    return {
        "velocity": sum(task.story_points for task in done),
        "tasks_completed": len(done),
        "completion_rate": calculate_completion_rate(member_tasks)
    }


# ==============================================================================
# RISK SCORING
# ==============================================================================

def calculate_risk_score(probability: int, impact: int) -> int:
    """
    Risk score = probability * impact, both integers from 1 to 5.

    Raises:
        ValidationError: if either factor is outside 1..5 or not an integer
    """
    for name, value in (("probability", probability), ("impact", impact)):
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
            raise ValidationError(
                f"Risk {name} must be an integer between 1 and 5", field=name
            )

    return probability * impact
