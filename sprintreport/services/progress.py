"""Story-point based sprint progress."""

import math
from typing import Sequence

from sprintreport.models import Issue, SprintStats


def _points(issues: Sequence[Issue]) -> float:
    return sum(i.story_points or 0 for i in issues)


def calculate_progress_percent(issues: Sequence[Issue]) -> int:
    """
    Percentage of story points that are done, rounded half up.

    Returns 0 when no issue carries story points.
    """
    total = _points(issues)
    if total <= 0:
        return 0
    completed = _points([i for i in issues if i.is_done])
    return int(math.floor(completed / total * 100 + 0.5))


def calculate_sprint_stats(issues: Sequence[Issue]) -> SprintStats:
    done = [i for i in issues if i.is_done]
    return SprintStats(
        total_issues=len(issues),
        done_issues=len(done),
        not_done_issues=len(issues) - len(done),
        total_story_points=_points(issues),
        completed_story_points=_points(done),
        progress_percent=calculate_progress_percent(issues),
    )
