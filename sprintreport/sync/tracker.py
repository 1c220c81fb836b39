"""
Jira tracker adapter - fetches a sprint and its issues from the Jira REST API.

Sprints are looked up by id (agile sprint endpoint) or by name (paging
through the configured board's sprints). Issues come from the JQL search
endpoint, which paginates with an opaque nextPageToken cursor.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from sprintreport.config import Settings
from sprintreport.exceptions import ConfigurationError, SprintNotFoundError, TransportError
from sprintreport.models import SprintInfo
from sprintreport.services.dates import format_report_date

logger = logging.getLogger(__name__)

SERVICE = "tracker"
SPRINT_PAGE_SIZE = 50
ISSUE_PAGE_SIZE = 100


@dataclass
class TrackerSprintData:
    """A sprint record and its raw issue records, as returned by Jira."""
    sprint: Dict[str, Any]
    raw_issues: List[Dict[str, Any]] = field(default_factory=list)


def extract_sprint_number(sprint_name: Optional[str]) -> str:
    """First run of digits in the sprint name, "1" if there is none."""
    match = re.search(r"(\d+)", sprint_name or "")
    return match.group(1) if match else "1"


def to_sprint_info(sprint: Dict[str, Any], language: str = "en") -> SprintInfo:
    name = sprint.get("name") or ""
    return SprintInfo(
        id=str(sprint["id"]) if sprint.get("id") is not None else None,
        name=name,
        number=extract_sprint_number(name),
        start_date=format_report_date(sprint.get("startDate"), language),
        end_date=format_report_date(sprint.get("endDate"), language),
        goal=sprint.get("goal") or None,
    )


class JiraTrackerClient:
    """
    Async client for the Jira Cloud REST API.

    Usage:
        tracker = JiraTrackerClient(settings)
        data = await tracker.get_sprint_data("Sprint 14")
        await tracker.close()
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.base_url = settings.jira_base_url or ""
        self.board_id = settings.jira_board_id
        self.artifact_field_id = settings.jira_artifact_field_id
        self.story_point_fields = settings.get_story_point_fields()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.settings.jira_email or "", self.settings.jira_api_token or ""),
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=self.settings.http_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Jira API error ({status}) for {method} {url}: {e.response.text[:200]}")
            raise TransportError(SERVICE, f"HTTP {status} for {method} {url}", status_code=status) from e
        except httpx.RequestError as e:
            logger.error(f"Jira request failed for {method} {url}: {e}")
            raise TransportError(SERVICE, f"Request failed for {method} {url}: {e}") from e
        except ValueError as e:
            raise TransportError(SERVICE, f"Invalid JSON from {method} {url}") from e

    async def find_sprint(self, sprint_ref: str) -> Dict[str, Any]:
        """
        Find a sprint by id or by name.

        Args:
            sprint_ref: Numeric sprint id, or sprint name (case-insensitive)

        Returns:
            Raw sprint record

        Raises:
            SprintNotFoundError: nothing matched
            ConfigurationError: a name lookup without a configured board
        """
        sprint_ref = sprint_ref.strip()

        if sprint_ref.isdigit():
            try:
                return await self._request("GET", f"/rest/agile/1.0/sprint/{sprint_ref}")
            except TransportError as e:
                if e.status_code == 404:
                    raise SprintNotFoundError(sprint_ref) from e
                raise

        if not self.board_id:
            raise ConfigurationError(
                "JIRA_BOARD_ID is required when searching by sprint name",
                missing=["JIRA_BOARD_ID"],
            )

        wanted = sprint_ref.lower()
        start_at = 0
        while True:
            page = await self._request(
                "GET",
                f"/rest/agile/1.0/board/{self.board_id}/sprint",
                params={"startAt": start_at, "maxResults": SPRINT_PAGE_SIZE},
            )
            values = page.get("values", [])
            for sprint in values:
                if (sprint.get("name") or "").lower() == wanted:
                    return sprint

            if page.get("isLast", True) or not values:
                break
            start_at += SPRINT_PAGE_SIZE

        raise SprintNotFoundError(sprint_ref)

    def _requested_fields(self) -> List[str]:
        fields = ["summary", "status", "assignee", *self.story_point_fields, self.artifact_field_id]
        return list(dict.fromkeys(fields))

    async def get_issues_for_sprint(self, sprint_id: Any) -> List[Dict[str, Any]]:
        """Fetch every issue of a sprint, following the search cursor."""
        issues: List[Dict[str, Any]] = []
        next_page_token: Optional[str] = None

        while True:
            body: Dict[str, Any] = {
                "jql": f"sprint = {sprint_id}",
                "maxResults": ISSUE_PAGE_SIZE,
                "fields": self._requested_fields(),
            }
            if next_page_token:
                body["nextPageToken"] = next_page_token

            logger.debug(f"Fetching issues for sprint {sprint_id} (cursor: {bool(next_page_token)})")
            page = await self._request("POST", "/rest/api/3/search/jql", json=body)
            issues.extend(page.get("issues", []))

            next_page_token = page.get("nextPageToken")
            if page.get("isLast") or not next_page_token:
                break

        logger.info(f"Fetched {len(issues)} issues for sprint {sprint_id}")
        return issues

    async def get_sprint_data(self, sprint_ref: str) -> TrackerSprintData:
        logger.info(f"Fetching sprint data for: {sprint_ref}")
        sprint = await self.find_sprint(sprint_ref)
        logger.info(f"Found sprint: {sprint.get('name')} (ID: {sprint.get('id')})")
        raw_issues = await self.get_issues_for_sprint(sprint["id"])
        return TrackerSprintData(sprint=sprint, raw_issues=raw_issues)
