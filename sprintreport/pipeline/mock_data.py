"""
Mock data generator for the sprint report pipeline.

Provides canned payloads for each pipeline stage:
- Tracker sprint and issue records (in Jira's raw shape)
- A structured report derived from the generation context
- A document page result

The resilient pipeline falls back to these when an integration is not
configured or fails, so a full run works without any real API connection.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sprintreport.ai.prompts import BlockGenerationContext
from sprintreport.config import DEFAULT_STORY_POINT_FIELDS
from sprintreport.models import (
    AchievementItem,
    ArtifactItem,
    BlockerItem,
    NextSprintPlan,
    NotDoneItem,
    PageResult,
    PMQuestion,
    SprintMeta,
    StatusCategory,
    StructuredReport,
    VersionHints,
    VersionMeta,
)
from sprintreport.publish.blocks import Block, describe_blocks
from sprintreport.sync.tracker import TrackerSprintData

logger = logging.getLogger(__name__)

MOCK_PAGE_ID = "test-mode-mock-page-id"
MOCK_PAGE_URL = "https://notion.so/mock-test-page"
MOCK_SPRINT_ID = 1001


@dataclass
class MockIssue:
    """Mock tracker issue."""
    key: str
    summary: str
    status: str
    status_category: StatusCategory
    story_points: Optional[float] = None
    assignee: Optional[str] = None
    artifact: Optional[str] = None

    def to_raw(self, artifact_field_id: str, story_point_field: str) -> Dict[str, Any]:
        """Render as a Jira search result record."""
        fields: Dict[str, Any] = {
            "summary": self.summary,
            "status": {
                "name": self.status,
                "statusCategory": {"key": self.status_category.value},
            },
            "assignee": {"displayName": self.assignee} if self.assignee else None,
            story_point_field: self.story_points,
            artifact_field_id: self.artifact,
        }
        return {"key": self.key, "fields": fields}


class MockDataGenerator:
    """
    Generates canned data for every stage of a sprint report run.

    The issue set is a six-issue sprint: four done issues worth 8, 5, 3 and 5
    points, one 8-point issue in progress and one 5-point issue not started,
    so progress is 62% and three done issues carry artifacts.

    Usage:
        generator = MockDataGenerator()
        data = generator.mock_sprint_data("Sprint 14")
        report = generator.mock_report(ctx)
    """

    def __init__(
        self,
        project_key: str = "PROJ",
        artifact_field_id: str = "customfield_10001",
        story_point_field: str = DEFAULT_STORY_POINT_FIELDS[0],
    ):
        self.project_key = project_key
        self.artifact_field_id = artifact_field_id
        self.story_point_field = story_point_field

    def generate_issues(self) -> List[MockIssue]:
        k = self.project_key
        return [
            MockIssue(
                key=f"{k}-101",
                summary="Implement the main user journey",
                status="Done",
                status_category=StatusCategory.DONE,
                story_points=8,
                assignee="Ivan Petrov",
                artifact="https://figma.com/demo-scenario",
            ),
            MockIssue(
                key=f"{k}-102",
                summary="Improve home page performance",
                status="Done",
                status_category=StatusCategory.DONE,
                story_points=5,
                assignee="Maria Sidorova",
            ),
            MockIssue(
                key=f"{k}-103",
                summary="Add a notification system",
                status="Done",
                status_category=StatusCategory.DONE,
                story_points=3,
                assignee="Ivan Petrov",
                artifact="https://loom.com/notifications-demo",
            ),
            MockIssue(
                key=f"{k}-104",
                summary="Integrate with the partner billing system",
                status="In Progress",
                status_category=StatusCategory.IN_PROGRESS,
                story_points=8,
                assignee="Alexey Kozlov",
            ),
            MockIssue(
                key=f"{k}-105",
                summary="Extended report for administrators",
                status="To Do",
                status_category=StatusCategory.TODO,
                story_points=5,
            ),
            MockIssue(
                key=f"{k}-106",
                summary="Refresh the personal account design",
                status="Done",
                status_category=StatusCategory.DONE,
                story_points=5,
                assignee="Maria Sidorova",
                artifact="https://figma.com/cabinet-redesign",
            ),
        ]

    def generate_raw_issues(self) -> List[Dict[str, Any]]:
        return [issue.to_raw(self.artifact_field_id, self.story_point_field) for issue in self.generate_issues()]

    def generate_sprint(self, sprint_ref: str) -> Dict[str, Any]:
        name = sprint_ref if not sprint_ref.isdigit() else f"Sprint {sprint_ref}"
        return {
            "id": MOCK_SPRINT_ID,
            "name": name,
            "state": "closed",
            "startDate": "2025-01-06T09:00:00.000Z",
            "endDate": "2025-01-19T18:00:00.000Z",
            "goal": "Launch the core user journey and prepare the partner integration",
        }

    # -------------------------------------------------------------------------
    # Stage payloads
    # -------------------------------------------------------------------------

    def mock_sprint_data(self, sprint_ref: str) -> TrackerSprintData:
        logger.info(f"[MOCK] Using canned sprint data for: {sprint_ref}")
        return TrackerSprintData(
            sprint=self.generate_sprint(sprint_ref),
            raw_issues=self.generate_raw_issues(),
        )

    def mock_report(self, ctx: BlockGenerationContext) -> StructuredReport:
        """
        Build a report from the context without a generator.

        Every issue reference comes from the context's own issues.
        """
        logger.info("[MOCK] Building report from sprint data")
        hints = ctx.version_hints or VersionHints()
        progress = ctx.stats.progress_percent
        done = ctx.done_issues
        not_done = ctx.not_done_issues
        next_number = ctx.next_sprint_number

        blockers = []
        if not_done:
            blockers = [
                BlockerItem(
                    title=f"Carry-over of {len(not_done)} unfinished issue(s)",
                    description="Unfinished work reduces capacity for new scope in the next sprint.",
                    resolution_proposal="Prioritise carried-over issues at sprint planning.",
                )
            ]

        return StructuredReport(
            version=VersionMeta(
                number=hints.number or "1",
                deadline=hints.deadline or "",
                goal=hints.goal or "Deliver the product increment planned for this version.",
                progress_percent=hints.progress_percent if hints.progress_percent is not None else progress,
            ),
            sprint=SprintMeta(
                number=ctx.sprint.number,
                start_date=ctx.sprint.start_date or "",
                end_date=ctx.sprint.end_date or "",
                goal=ctx.sprint.goal or "",
                progress_percent=progress,
            ),
            overview=(
                f"The team completed {ctx.stats.done_issues} of {ctx.stats.total_issues} planned issues, "
                f"reaching {progress}% of the planned scope."
            ),
            not_done=[
                NotDoneItem(
                    title=i.summary,
                    reason=i.status,
                    required_for_completion="More time to finish the work",
                    new_deadline=f"Sprint {next_number}",
                    issue_key=i.key,
                )
                for i in not_done
            ],
            achievements=[
                AchievementItem(title=i.summary, description="Delivered in this sprint.")
                for i in done
            ],
            artifacts=[
                ArtifactItem(
                    title=i.summary,
                    description="Demonstration material for this issue.",
                    issue_key=i.key,
                    issue_link=i.artifact,
                )
                for i in ctx.demo_issues
                if i.artifact
            ],
            next_sprint=NextSprintPlan(
                sprint_number=next_number,
                goal="Finish carried-over work and continue the current roadmap.",
            ),
            blockers=blockers,
            pm_questions=[
                PMQuestion(
                    title="Priorities for the next sprint",
                    description="Please confirm the priorities of the carried-over issues.",
                )
            ] if not_done else [],
        )

    def mock_page(self, title: str, blocks: Sequence[Block]) -> PageResult:
        logger.info(f"[MOCK] Would create Notion page: {title}")
        for line in describe_blocks(blocks):
            logger.info(f"[MOCK] {line}")
        return PageResult(id=MOCK_PAGE_ID, url=MOCK_PAGE_URL, blocks_written=len(blocks))
