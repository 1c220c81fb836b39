"""
Report assembly from per-section generation calls.

Every section prompt is sent concurrently. A reply must parse as a JSON
object and validate against the section's schema; otherwise the prompt is
retried once with a correction appended. A section that still fails is
recorded in the report's failed_sections and left at its empty value.

After validation each reply is checked for issue keys that are not part of
the sprint; keys mentioned in titles only count when they belong to one of
the sprint's projects. An unknown key also earns one corrective re-prompt; if it
survives, the reply is kept and the reference is reported as a
DataIntegrityWarning.
"""

import asyncio
import json
import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from pydantic import BaseModel, ValidationError

from sprintreport.ai.client import TextGenerator
from sprintreport.ai.prompts import (
    BlockGenerationContext,
    PartnerReadiness,
    SectionPrompt,
    build_all_section_prompts,
    build_goal_issue_match_prompt,
    build_partner_readiness_prompt,
)
from sprintreport.exceptions import DataIntegrityWarning, SchemaViolationError, TransportError
from sprintreport.ingest.normalize import extract_issue_keys, project_prefixes
from sprintreport.models import (
    GoalIssueMatch,
    IntegrityFinding,
    Issue,
    NextSprintPlan,
    NormalizedSprintData,
    ReportSection,
    SectionFailure,
    SprintMeta,
    StructuredReport,
    VersionMeta,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

# Fields whose free text may carry issue keys
KEY_BEARING_FIELDS = ("title", "issue_link")

EMPTY_SECTION_VALUES: Dict[ReportSection, Any] = {
    ReportSection.VERSION: VersionMeta(number="", deadline="", goal="", progress_percent=0),
    ReportSection.SPRINT: SprintMeta(number="", start_date="", end_date="", goal="", progress_percent=0),
    ReportSection.OVERVIEW: "",
    ReportSection.NOT_DONE: [],
    ReportSection.ACHIEVEMENTS: [],
    ReportSection.ARTIFACTS: [],
    ReportSection.NEXT_SPRINT: NextSprintPlan(sprint_number="", goal=""),
    ReportSection.BLOCKERS: [],
    ReportSection.PM_QUESTIONS: [],
}


@dataclass
class SectionOutcome:
    """What one section's generation produced."""
    section: ReportSection
    reply: Optional[BaseModel] = None
    failure: Optional[SectionFailure] = None
    findings: List[IntegrityFinding] = field(default_factory=list)
    attempts: int = 0

    @property
    def value(self) -> Any:
        if self.reply is None:
            return EMPTY_SECTION_VALUES[self.section]
        if self.section in (ReportSection.VERSION, ReportSection.SPRINT):
            return self.reply
        return getattr(self.reply, self.section.value)


def parse_reply(prompt: SectionPrompt, text: Optional[str]) -> BaseModel:
    """
    Parse a generator reply into the prompt's schema.

    Raises:
        SchemaViolationError: the reply is not a JSON object or fails validation
    """
    if not text or not text.strip():
        raise SchemaViolationError(prompt.section, "Empty reply", raw_reply=text)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaViolationError(prompt.section, f"Reply is not valid JSON: {e}", raw_reply=text) from e

    if not isinstance(payload, dict):
        raise SchemaViolationError(prompt.section, "Reply is not a JSON object", raw_reply=text)

    try:
        return prompt.schema.model_validate(payload)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise SchemaViolationError(prompt.section, f"Reply does not match the schema: {details}", raw_reply=text) from e


def referenced_keys(reply: BaseModel, prefixes: Optional[Set[str]] = None) -> List[str]:
    """
    Issue keys a validated reply refers to, in order of appearance.

    Explicit issue_key fields always count. Keys found in free text count
    only for the given project prefixes, when they are given.
    """
    keys: List[str] = []

    def walk(value: Any):
        if isinstance(value, dict):
            for name, item in value.items():
                if name == "issue_key" and isinstance(item, str) and item:
                    if item not in keys:
                        keys.append(item)
                elif name in KEY_BEARING_FIELDS and isinstance(item, str):
                    for key in extract_issue_keys(item, prefixes):
                        if key not in keys:
                            keys.append(key)
                else:
                    walk(item)
        elif isinstance(value, list):
            for item in value:
                walk(item)

    walk(reply.model_dump())
    return keys


def correction_for_schema(error: SchemaViolationError) -> str:
    return (
        f"Your previous reply was rejected: {error}\n"
        "Reply again with ONLY a JSON object that matches the declared shape exactly."
    )


def correction_for_keys(unknown: Sequence[str]) -> str:
    return (
        f"Your previous reply referenced issue keys that are not in the supplied list: "
        f"{', '.join(unknown)}\n"
        "Use ONLY issue keys from the supplied list, and reply again with the full JSON object."
    )


class ReportAssembler:
    """
    Generates a StructuredReport section by section.

    Usage:
        assembler = ReportAssembler(generator)
        report = await assembler.generate_report(ctx)
        if not report.is_complete:
            print(report.failed_sections)
    """

    def __init__(self, generator: TextGenerator, max_attempts: int = MAX_ATTEMPTS):
        self.generator = generator
        self.max_attempts = max_attempts

    async def generate_report(self, ctx: BlockGenerationContext) -> StructuredReport:
        """
        Generate every section concurrently and merge them.

        Raises:
            TransportError: the generator could not be reached
        """
        prompts = build_all_section_prompts(ctx)
        known_keys = ctx.issue_keys
        prefixes = project_prefixes(known_keys)

        tasks = [
            asyncio.ensure_future(self._generate_section(prompt, known_keys, prefixes))
            for prompt in prompts
        ]
        try:
            outcomes = await asyncio.gather(*tasks)
        except BaseException:
            # One section failing abandons the report; stop the rest
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        values = {o.section.value: o.value for o in outcomes}
        failures = [o.failure for o in outcomes if o.failure]
        findings = [f for o in outcomes for f in o.findings]

        report = StructuredReport(
            **values,
            failed_sections=failures,
            integrity_warnings=findings,
        )

        if failures:
            logger.error(f"Report assembled with failed sections: {[f.section.value for f in failures]}")
        else:
            logger.info("All report sections generated")
        return report

    async def _generate_section(
        self, prompt: SectionPrompt, known_keys: Set[str], prefixes: Set[str]
    ) -> SectionOutcome:
        section = ReportSection(prompt.section)

        if prompt.short_circuit is not None:
            logger.info(f"Section '{section.value}' short-circuited: no generation needed")
            return SectionOutcome(section=section, reply=prompt.schema.model_validate(prompt.short_circuit))

        current = prompt
        last_error: Optional[SchemaViolationError] = None

        for attempt in range(1, self.max_attempts + 1):
            text = await self.generator.generate(current)

            try:
                reply = parse_reply(current, text)
            except SchemaViolationError as e:
                last_error = e
                logger.warning(f"Section '{section.value}' attempt {attempt} rejected: {e}")
                current = prompt.with_correction(correction_for_schema(e))
                continue

            unknown = [k for k in referenced_keys(reply, prefixes) if k not in known_keys]
            if unknown and attempt < self.max_attempts:
                logger.warning(
                    f"Section '{section.value}' attempt {attempt} references unknown issue keys: {unknown}"
                )
                current = prompt.with_correction(correction_for_keys(unknown))
                continue

            findings = [
                IntegrityFinding(
                    section=section,
                    issue_key=key,
                    message=f"Section '{section.value}' references issue {key}, which is not in the sprint",
                )
                for key in unknown
            ]
            for finding in findings:
                logger.warning(finding.message)
                warnings.warn(finding.message, DataIntegrityWarning, stacklevel=2)

            return SectionOutcome(section=section, reply=reply, findings=findings, attempts=attempt)

        logger.error(f"Section '{section.value}' failed after {self.max_attempts} attempts: {last_error}")
        return SectionOutcome(
            section=section,
            failure=SectionFailure(section=section, error=str(last_error), attempts=self.max_attempts),
            attempts=self.max_attempts,
        )


# =============================================================================
# Assessments
# =============================================================================


async def assess_goal_issue_match(
    generator: TextGenerator,
    sprint_goal: Optional[str],
    issues: List[Issue],
) -> Optional[GoalIssueMatch]:
    """
    Ask the generator how well the issues match the sprint goal.

    The assessment is advisory: a failed call is logged and yields None.
    """
    if not sprint_goal or not issues:
        return None

    prompt = build_goal_issue_match_prompt(sprint_goal, issues)
    try:
        match = parse_reply(prompt, await generator.generate(prompt))
    except (SchemaViolationError, TransportError) as e:
        logger.warning(f"Goal-issue match assessment failed: {e}")
        return None

    logger.info(f"Goal-issue match: {match.match_level.value}")
    return match


async def assess_partner_readiness(
    generator: TextGenerator,
    report: StructuredReport,
    data: NormalizedSprintData,
) -> Optional[PartnerReadiness]:
    """Ask the generator whether the report can go to partners; None on failure."""
    report_json = report.model_dump_json(by_alias=True, indent=2)
    summary = (
        f"Sprint: {data.sprint.name}\n"
        f"Progress: {data.stats.progress_percent}%\n"
        f"Done: {data.stats.done_issues}/{data.stats.total_issues} issues"
    )
    prompt = build_partner_readiness_prompt(report_json, summary)
    try:
        readiness = parse_reply(prompt, await generator.generate(prompt))
    except (SchemaViolationError, TransportError) as e:
        logger.warning(f"Partner readiness assessment failed: {e}")
        return None

    logger.info(f"Partner readiness: {readiness.is_partner_ready}")
    return readiness
