import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sprintreport.config import DEFAULT_STORY_POINT_FIELDS
from sprintreport.exceptions import IssueNormalizationError
from sprintreport.models import Issue, StatusCategory

logger = logging.getLogger(__name__)

ISSUE_KEY_PATTERN = re.compile(r"\b[A-Z][A-Z0-9]{1,9}-\d+\b")
CUSTOM_FIELD_PREFIX = "customfield_"

# Fields consumed into typed Issue attributes; everything else custom is opaque
_KNOWN_FIELDS = {"summary", "status", "assignee"}


def project_prefix(issue_key: str) -> str:
    return issue_key.rsplit("-", 1)[0]


def project_prefixes(issue_keys: Iterable[str]) -> Set[str]:
    """Project prefixes ("PROJ" for "PROJ-12") of a set of issue keys."""
    return {project_prefix(key) for key in issue_keys}


def extract_issue_keys(text: Optional[str], prefixes: Optional[Set[str]] = None) -> List[str]:
    """
    Issue keys mentioned in free text, in order of appearance.

    With prefixes, only keys of those projects count, so terms shaped like
    keys ("UTF-8", "SHA-256") are not mistaken for issue references.
    """
    if not text:
        return []
    seen: List[str] = []
    for match in ISSUE_KEY_PATTERN.finditer(text):
        key = match.group(0)
        if prefixes is not None and project_prefix(key) not in prefixes:
            continue
        if key not in seen:
            seen.append(key)
    return seen


def _as_story_points(value: Any) -> Optional[float]:
    # bool is an int subclass; a checkbox field is not an estimate
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if parsed >= 0 else None
    return None


def resolve_story_points(fields: Dict[str, Any], field_ids: Sequence[str]) -> Tuple[Optional[float], Optional[str]]:
    """Return the first usable story point value and the field it came from."""
    for field_id in field_ids:
        points = _as_story_points(fields.get(field_id))
        if points is not None:
            return points, field_id
    return None, None


def _artifact_from_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        return _artifact_from_value(value.get("value"))
    if isinstance(value, list):
        for item in value:
            artifact = _artifact_from_value(item)
            if artifact:
                return artifact
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def resolve_artifact(fields: Dict[str, Any], artifact_field_id: str) -> Optional[str]:
    return _artifact_from_value(fields.get(artifact_field_id))


def _resolve_assignee(fields: Dict[str, Any]) -> Optional[str]:
    assignee = fields.get("assignee")
    if isinstance(assignee, dict):
        return assignee.get("displayName") or assignee.get("name")
    if isinstance(assignee, str):
        return assignee or None
    return None


def _resolve_status(key: str, fields: Dict[str, Any]) -> Tuple[str, StatusCategory]:
    status = fields.get("status")
    if not isinstance(status, dict):
        raise IssueNormalizationError(f"Issue {key} has no status", issue_key=key)

    name = status.get("name")
    if not name:
        raise IssueNormalizationError(f"Issue {key} has no status name", issue_key=key)

    category = status.get("statusCategory") or {}
    category_key = category.get("key") if isinstance(category, dict) else None
    if not category_key:
        raise IssueNormalizationError(f"Issue {key} has no status category", issue_key=key)

    try:
        return name, StatusCategory(category_key)
    except ValueError:
        raise IssueNormalizationError(
            f"Issue {key} has unknown status category '{category_key}'",
            issue_key=key,
        )


def normalize_tracker_issue(
    raw: Dict[str, Any],
    artifact_field_id: str,
    story_point_fields: Sequence[str] = DEFAULT_STORY_POINT_FIELDS,
) -> Issue:
    """
    Convert a raw tracker record into a canonical Issue.

    Args:
        raw: Record as returned by the tracker search API
        artifact_field_id: Custom field holding the demo artifact
        story_point_fields: Field ids to try for story points, in order

    Returns:
        Issue

    Raises:
        IssueNormalizationError: key or status information is missing
    """
    key = raw.get("key")
    if not key:
        raise IssueNormalizationError("Issue record has no key")

    fields = raw.get("fields")
    if not isinstance(fields, dict):
        raise IssueNormalizationError(f"Issue {key} has no fields", issue_key=key)

    status, status_category = _resolve_status(key, fields)
    story_points, _ = resolve_story_points(fields, story_point_fields)

    consumed = _KNOWN_FIELDS | set(story_point_fields) | {artifact_field_id}
    extra_fields = {
        name: value
        for name, value in sorted(fields.items())
        if name.startswith(CUSTOM_FIELD_PREFIX) and name not in consumed and value is not None
    }

    return Issue(
        key=key,
        summary=fields.get("summary") or "",
        status=status,
        status_category=status_category,
        story_points=story_points,
        assignee=_resolve_assignee(fields),
        artifact=resolve_artifact(fields, artifact_field_id),
        extra_fields=extra_fields,
    )


def normalize_issues(
    raw_issues: List[Dict[str, Any]],
    artifact_field_id: str,
    story_point_fields: Sequence[str] = DEFAULT_STORY_POINT_FIELDS,
    on_error: Optional[Callable[[IssueNormalizationError], None]] = None,
) -> Tuple[List[Issue], List[str]]:
    """
    Normalize a batch of raw records.

    A record that fails normalization is skipped and reported; it does not
    fail the batch.

    Returns:
        Tuple of (issues, rejection messages)
    """
    issues: List[Issue] = []
    rejected: List[str] = []

    for raw in raw_issues:
        try:
            issues.append(normalize_tracker_issue(raw, artifact_field_id, story_point_fields))
        except IssueNormalizationError as e:
            logger.warning(f"Skipping issue: {e}")
            rejected.append(str(e))
            if on_error:
                on_error(e)

    return issues, rejected
