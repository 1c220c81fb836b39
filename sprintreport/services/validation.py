"""
Sprint data and report validation.

Checks run before generation (is the collected data good enough to write a
report from?) and after it (is the report fit to be shown to partners?).
Both return a ValidationResult; errors block the strict pipeline, warnings
are informational.
"""

import logging
import re
from typing import Iterable, List, Optional, Set

from sprintreport.ingest.normalize import extract_issue_keys, project_prefixes
from sprintreport.models import (
    GoalIssueMatch,
    MatchLevel,
    NormalizedSprintData,
    ReportSection,
    StructuredReport,
    ValidationIssue,
    ValidationResult,
)

logger = logging.getLogger(__name__)

MIN_GOAL_LENGTH = 10

PLACEHOLDER_PATTERNS = [
    re.compile(r"TODO", re.IGNORECASE),
    re.compile(r"lorem ipsum", re.IGNORECASE),
    re.compile(r"placeholder", re.IGNORECASE),
]


class DataValidationCodes:
    SPRINT_NAME_MISSING = "SPRINT_NAME_MISSING"
    SPRINT_DATES_MISSING = "SPRINT_DATES_MISSING"
    SPRINT_GOAL_MISSING = "SPRINT_GOAL_MISSING"
    SPRINT_GOAL_TOO_SHORT = "SPRINT_GOAL_TOO_SHORT"
    ISSUES_REJECTED = "ISSUES_REJECTED"
    NO_DONE_ISSUES = "NO_DONE_ISSUES"
    NO_STORY_POINTS = "NO_STORY_POINTS"
    GOAL_ISSUE_MATCH_WEAK = "GOAL_ISSUE_MATCH_WEAK"


class ReportValidationCodes:
    SECTION_EMPTY = "SECTION_EMPTY"
    SECTION_FAILED = "SECTION_FAILED"
    PLACEHOLDER_DETECTED = "PLACEHOLDER_DETECTED"
    SPRINT_NUMBER_MISMATCH = "SPRINT_NUMBER_MISMATCH"
    INVALID_ISSUE_KEY_REFERENCE = "INVALID_ISSUE_KEY_REFERENCE"
    NOT_PARTNER_READY = "NOT_PARTNER_READY"


def validate_sprint_data(
    data: NormalizedSprintData,
    goal_match: Optional[GoalIssueMatch] = None,
) -> ValidationResult:
    """
    Check collected sprint data before generation.

    Args:
        data: Collected and normalized sprint data
        goal_match: Optional assessment of how well issues match the goal

    Returns:
        ValidationResult; only a missing sprint name is an error
    """
    result = ValidationResult()
    sprint = data.sprint

    if not sprint.name:
        result.errors.append(ValidationIssue(
            code=DataValidationCodes.SPRINT_NAME_MISSING,
            message="Sprint name is missing",
            field="sprint.name",
        ))

    if not sprint.start_date or not sprint.end_date:
        result.warnings.append(ValidationIssue(
            code=DataValidationCodes.SPRINT_DATES_MISSING,
            message="Sprint dates are not set",
            field="sprint.start_date/end_date",
        ))

    if not sprint.goal:
        result.warnings.append(ValidationIssue(
            code=DataValidationCodes.SPRINT_GOAL_MISSING,
            message="Sprint goal is not set",
            field="sprint.goal",
        ))
    elif len(sprint.goal) < MIN_GOAL_LENGTH:
        result.warnings.append(ValidationIssue(
            code=DataValidationCodes.SPRINT_GOAL_TOO_SHORT,
            message=f"Sprint goal is too short (under {MIN_GOAL_LENGTH} characters)",
            field="sprint.goal",
            details={"length": len(sprint.goal), "min_length": MIN_GOAL_LENGTH},
        ))

    if data.rejected:
        result.warnings.append(ValidationIssue(
            code=DataValidationCodes.ISSUES_REJECTED,
            message=f"{len(data.rejected)} issue(s) could not be normalized and were skipped",
            field="issues",
            details={"rejected": list(data.rejected)},
        ))

    if data.stats.done_issues == 0:
        result.warnings.append(ValidationIssue(
            code=DataValidationCodes.NO_DONE_ISSUES,
            message="The sprint has no done issues",
        ))

    if data.stats.total_story_points == 0:
        result.warnings.append(ValidationIssue(
            code=DataValidationCodes.NO_STORY_POINTS,
            message="Sprint issues carry no story points",
        ))

    if goal_match and goal_match.match_level == MatchLevel.WEAK:
        result.warnings.append(ValidationIssue(
            code=DataValidationCodes.GOAL_ISSUE_MATCH_WEAK,
            message="Sprint issues weakly match the sprint goal",
            field="sprint.goal",
            details={"comment": goal_match.comment},
        ))

    logger.info(
        f"Sprint data validation: {len(result.errors)} errors, {len(result.warnings)} warnings"
    )
    return result


def _report_text(report: StructuredReport) -> str:
    parts = [report.overview, report.sprint.goal, report.version.goal, report.next_sprint.goal]
    parts += [f"{a.title} {a.description}" for a in report.achievements]
    parts += [f"{n.title} {n.reason} {n.required_for_completion}" for n in report.not_done]
    parts += [f"{a.title} {a.description}" for a in report.artifacts]
    parts += [f"{b.title} {b.description} {b.resolution_proposal}" for b in report.blockers]
    parts += [f"{q.title} {q.description}" for q in report.pm_questions]
    return " ".join(p for p in parts if p)


def referenced_issue_keys(report: StructuredReport, prefixes: Optional[Set[str]] = None) -> List[tuple]:
    """
    (section field, key) pairs for every issue key the report mentions.

    Keys in titles and links are limited to the given project prefixes.
    """
    refs = []

    def add(field_name: str, keys: Iterable[str]):
        for key in keys:
            if (field_name, key) not in refs:
                refs.append((field_name, key))

    for item in report.not_done:
        add("not_done", [item.issue_key] if item.issue_key else [])
        add("not_done", extract_issue_keys(item.title, prefixes))
    for item in report.artifacts:
        add("artifacts", [item.issue_key] if item.issue_key else [])
        add("artifacts", extract_issue_keys(f"{item.title} {item.issue_link or ''}", prefixes))
    for item in report.achievements:
        add("achievements", extract_issue_keys(item.title, prefixes))
    return refs


def validate_report(
    report: StructuredReport,
    data: NormalizedSprintData,
    partner_readiness=None,
) -> ValidationResult:
    """
    Check a generated report against the data it was generated from.

    Args:
        report: Assembled report
        data: The sprint data used for generation
        partner_readiness: Optional PartnerReadiness assessment

    Returns:
        ValidationResult
    """
    result = ValidationResult()

    for failure in report.failed_sections:
        result.errors.append(ValidationIssue(
            code=ReportValidationCodes.SECTION_FAILED,
            message=f"Section '{failure.section.value}' could not be generated: {failure.error}",
            field=failure.section.value,
            details={"attempts": failure.attempts},
        ))

    if not report.overview.strip() and not report.is_failed(ReportSection.OVERVIEW):
        result.errors.append(ValidationIssue(
            code=ReportValidationCodes.SECTION_EMPTY,
            message="Overview section is empty",
            field="overview",
        ))

    text = _report_text(report)
    for pattern in PLACEHOLDER_PATTERNS:
        if pattern.search(text):
            result.warnings.append(ValidationIssue(
                code=ReportValidationCodes.PLACEHOLDER_DETECTED,
                message="Possible placeholder text in the report",
                details={"pattern": pattern.pattern},
            ))
            break

    if not report.is_failed(ReportSection.SPRINT) and report.sprint.number != data.sprint.number:
        result.warnings.append(ValidationIssue(
            code=ReportValidationCodes.SPRINT_NUMBER_MISMATCH,
            message=(
                f"Sprint number in the report ({report.sprint.number}) does not match "
                f"the data ({data.sprint.number})"
            ),
            field="sprint.number",
        ))

    known = data.issue_keys
    for field_name, key in referenced_issue_keys(report, project_prefixes(known)):
        if key not in known:
            result.warnings.append(ValidationIssue(
                code=ReportValidationCodes.INVALID_ISSUE_KEY_REFERENCE,
                message=f"Reference to unknown issue key: {key}",
                field=field_name,
                details={"key": key},
            ))

    if partner_readiness is not None and not partner_readiness.is_partner_ready:
        result.warnings.append(ValidationIssue(
            code=ReportValidationCodes.NOT_PARTNER_READY,
            message="The report is not ready for partners",
            details={"comments": list(partner_readiness.comments)},
        ))

    logger.info(
        f"Report validation: {len(result.errors)} errors, {len(result.warnings)} warnings"
    )
    return result
