"""Pick the done issues most worth demonstrating to stakeholders."""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from sprintreport.models import Issue

logger = logging.getLogger(__name__)

ARTIFACT_WEIGHT = 100
STORY_POINT_WEIGHT = 10
ASSIGNEE_WEIGHT = 5


@dataclass(frozen=True)
class DemoSelectorOptions:
    """Options for demo selection."""
    max_demos: int = 3
    prefer_with_artifact: bool = True
    prefer_high_points: bool = True


def score_issue(issue: Issue, options: DemoSelectorOptions = DemoSelectorOptions()) -> float:
    score = 0.0
    if options.prefer_with_artifact and issue.artifact:
        score += ARTIFACT_WEIGHT
    if options.prefer_high_points and issue.story_points:
        score += issue.story_points * STORY_POINT_WEIGHT
    # Small bonus for having an owner
    if issue.assignee:
        score += ASSIGNEE_WEIGHT
    return score


def select_demo_issues(
    issues: Sequence[Issue],
    options: DemoSelectorOptions = DemoSelectorOptions(),
) -> List[Issue]:
    """
    Select the top done issues for a demo.

    Issues are ranked by score, highest first. Ties keep their input order
    (sorted() is stable).

    Args:
        issues: All sprint issues
        options: Ranking options

    Returns:
        Up to options.max_demos done issues
    """
    done_issues = [i for i in issues if i.is_done]

    if not done_issues:
        logger.warning("No done issues found for demo selection")
        return []

    if options.max_demos <= 0:
        return []

    ranked = sorted(done_issues, key=lambda i: score_issue(i, options), reverse=True)
    selected = ranked[: options.max_demos]

    logger.info(f"Selected {len(selected)} demo issues: {[i.key for i in selected]}")
    return selected
