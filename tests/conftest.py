"""
Pytest Configuration and Fixtures

Shared fixtures for the sprint report tests. Nothing here touches the
network: adapters get httpx.MockTransport, the generator is an AsyncMock.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from sprintreport.ai.prompts import BlockGenerationContext
from sprintreport.config import Settings
from sprintreport.models import Issue, SprintInfo, StatusCategory
from sprintreport.pipeline.mock_data import MockDataGenerator
from sprintreport.services.demo_selector import select_demo_issues
from sprintreport.services.progress import calculate_sprint_stats

ARTIFACT_FIELD = "customfield_10001"


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """
    Build Settings without reading .env or credential env vars.

    Every credential defaults to "" (unconfigured); pass overrides to
    configure an integration.
    """

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "jira_base_url": "",
            "jira_email": "",
            "jira_api_token": "",
            "jira_board_id": "",
            "jira_artifact_field_id": ARTIFACT_FIELD,
            "jira_story_point_fields": "",
            "openai_api_key": "",
            "notion_api_key": "",
            "notion_parent_page_id": "",
            "mock_mode": False,
            "report_language": "en",
            "max_demos": 3,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def jira_settings() -> Dict[str, str]:
    return {
        "jira_base_url": "https://example.atlassian.net",
        "jira_email": "pm@example.com",
        "jira_api_token": "jira-token",
        "jira_board_id": "42",
    }


@pytest.fixture
def openai_settings() -> Dict[str, str]:
    return {"openai_api_key": "sk-test"}


@pytest.fixture
def notion_settings() -> Dict[str, str]:
    return {"notion_api_key": "secret_test", "notion_parent_page_id": "parent-page-id"}


@pytest.fixture
def make_issue() -> Callable[..., Issue]:
    def _make(
        key: str,
        points: Optional[float] = None,
        category: StatusCategory = StatusCategory.DONE,
        assignee: Optional[str] = None,
        artifact: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Issue:
        status = {
            StatusCategory.DONE: "Done",
            StatusCategory.IN_PROGRESS: "In Progress",
            StatusCategory.TODO: "To Do",
        }[category]
        return Issue(
            key=key,
            summary=summary or f"Summary of {key}",
            status=status,
            status_category=category,
            story_points=points,
            assignee=assignee,
            artifact=artifact,
        )

    return _make


@pytest.fixture
def make_raw_issue() -> Callable[..., Dict[str, Any]]:
    """Build a raw Jira search record."""

    def _make(
        key: Optional[str] = "PROJ-1",
        category: Optional[str] = "done",
        status_name: Optional[str] = "Done",
        **fields: Any,
    ) -> Dict[str, Any]:
        record_fields: Dict[str, Any] = {"summary": f"Summary of {key}"}
        if status_name is not None or category is not None:
            status: Dict[str, Any] = {}
            if status_name is not None:
                status["name"] = status_name
            if category is not None:
                status["statusCategory"] = {"key": category}
            record_fields["status"] = status
        record_fields.update(fields)
        record: Dict[str, Any] = {"fields": record_fields}
        if key is not None:
            record["key"] = key
        return record

    return _make


@pytest.fixture
def scenario_issues(make_issue) -> List[Issue]:
    """Six issues worth {8, 5, 3, 8, 5, 5}; the 8, 5, 3 and last 5 are done."""
    return [
        make_issue("PROJ-101", 8, assignee="Ivan", artifact="https://figma.com/demo"),
        make_issue("PROJ-102", 5, assignee="Maria"),
        make_issue("PROJ-103", 3, assignee="Ivan", artifact="https://loom.com/demo"),
        make_issue("PROJ-104", 8, StatusCategory.IN_PROGRESS, assignee="Alexey"),
        make_issue("PROJ-105", 5, StatusCategory.TODO),
        make_issue("PROJ-106", 5, assignee="Maria", artifact="https://figma.com/cabinet"),
    ]


@pytest.fixture
def sprint_info() -> SprintInfo:
    return SprintInfo(
        id="1001",
        name="Sprint 14",
        number="14",
        start_date="January 6, 2025",
        end_date="January 19, 2025",
        goal="Launch the core user journey for partners",
    )


@pytest.fixture
def make_context(sprint_info, scenario_issues) -> Callable[..., BlockGenerationContext]:
    def _make(issues: Optional[List[Issue]] = None, **overrides: Any) -> BlockGenerationContext:
        issues = scenario_issues if issues is None else issues
        values: Dict[str, Any] = {
            "sprint": sprint_info,
            "issues": issues,
            "demo_issues": select_demo_issues(issues),
            "stats": calculate_sprint_stats(issues),
        }
        values.update(overrides)
        return BlockGenerationContext(**values)

    return _make


@pytest.fixture
def mock_data() -> MockDataGenerator:
    return MockDataGenerator(artifact_field_id=ARTIFACT_FIELD)


@pytest.fixture
def section_replies() -> Dict[str, Dict[str, Any]]:
    """A valid reply per section for the scenario issues, keyed by section."""
    return {
        "version": {"number": "2", "deadline": "March 1, 2025", "goal": "Partner launch", "progressPercent": 40},
        "sprint": {
            "number": "14",
            "startDate": "January 6, 2025",
            "endDate": "January 19, 2025",
            "goal": "Launch the core user journey",
            "progressPercent": 62,
        },
        "overview": {"overview": "The team delivered most of the planned scope."},
        "not_done": {
            "notDone": [
                {
                    "title": "Partner billing integration",
                    "reason": "In Progress",
                    "requiredForCompletion": "Finish testing",
                    "newDeadline": "Sprint 15",
                    "issueKey": "PROJ-104",
                },
                {
                    "title": "Administrator report",
                    "reason": "Not started",
                    "requiredForCompletion": "Start the work",
                    "newDeadline": "Sprint 15",
                    "issueKey": "PROJ-105",
                },
            ]
        },
        "achievements": {"achievements": [{"title": "Core journey live", "description": "Users can complete it."}]},
        "artifacts": {
            "artifacts": [
                {
                    "title": "Main journey demo",
                    "description": "Clickable prototype",
                    "issueKey": "PROJ-101",
                    "issueLink": "https://figma.com/demo",
                    "attachmentsNote": "mockups",
                }
            ]
        },
        "next_sprint": {"nextSprint": {"sprintNumber": "15", "goal": "Finish the billing integration"}},
        "blockers": {
            "blockers": [
                {
                    "title": "Billing access",
                    "description": "Waiting for partner credentials",
                    "resolutionProposal": "Escalate to the partner",
                }
            ]
        },
        "pm_questions": {"pmQuestions": [{"title": "Priorities", "description": "Confirm next priorities"}]},
    }


@pytest.fixture
def reply_for(section_replies) -> Callable[[Any], str]:
    """Generator side effect answering each prompt with its section's valid reply."""

    def _reply(prompt) -> str:
        return json.dumps(section_replies[prompt.section])

    return _reply
