"""
Per-section prompts for sprint report generation.

Each report section is generated by its own request. A request states the
writer's role and hard constraints, lists only the facts that section needs,
and declares the exact JSON shape of the reply. Sections whose answer is
already known from the data (for example "nothing was left undone") carry a
short-circuit reply and never reach the generator.
"""

import enum
import json
import typing
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from sprintreport.models import (
    AchievementItem,
    ArtifactItem,
    BlockerItem,
    GoalIssueMatch,
    Issue,
    MatchLevel,
    NextSprintPlan,
    NotDoneItem,
    PMQuestion,
    ReportSection,
    SprintInfo,
    SprintMeta,
    SprintStats,
    VersionHints,
    VersionMeta,
    WireModel,
)

LANGUAGE_NAMES = {"en": "English", "ru": "Russian"}

# Blockers are not asked for once a sprint is essentially finished
BLOCKERS_PROGRESS_THRESHOLD = 90


# =============================================================================
# Reply Schemas
# =============================================================================


class OverviewReply(WireModel):
    overview: str


class NotDoneReply(WireModel):
    not_done: List[NotDoneItem]


class AchievementsReply(WireModel):
    achievements: List[AchievementItem]


class ArtifactsReply(WireModel):
    artifacts: List[ArtifactItem]


class NextSprintReply(WireModel):
    next_sprint: NextSprintPlan


class BlockersReply(WireModel):
    blockers: List[BlockerItem]


class PMQuestionsReply(WireModel):
    pm_questions: List[PMQuestion]


class PartnerReadiness(WireModel):
    is_partner_ready: bool
    comments: List[str]


SECTION_SCHEMAS: Dict[ReportSection, Type[BaseModel]] = {
    ReportSection.VERSION: VersionMeta,
    ReportSection.SPRINT: SprintMeta,
    ReportSection.OVERVIEW: OverviewReply,
    ReportSection.NOT_DONE: NotDoneReply,
    ReportSection.ACHIEVEMENTS: AchievementsReply,
    ReportSection.ARTIFACTS: ArtifactsReply,
    ReportSection.NEXT_SPRINT: NextSprintReply,
    ReportSection.BLOCKERS: BlockersReply,
    ReportSection.PM_QUESTIONS: PMQuestionsReply,
}


# =============================================================================
# Context and Prompt Types
# =============================================================================


@dataclass
class BlockGenerationContext:
    """Everything a section prompt may draw facts from."""
    sprint: SprintInfo
    issues: List[Issue]
    demo_issues: List[Issue]
    stats: SprintStats
    version_hints: Optional[VersionHints] = None
    goal_match: Optional[GoalIssueMatch] = None
    language: str = "en"

    @property
    def done_issues(self) -> List[Issue]:
        return [i for i in self.issues if i.is_done]

    @property
    def not_done_issues(self) -> List[Issue]:
        return [i for i in self.issues if not i.is_done]

    @property
    def issue_keys(self) -> set:
        return {i.key for i in self.issues}

    @property
    def next_sprint_number(self) -> str:
        return next_sprint_number(self.sprint.number)


@dataclass(frozen=True)
class SectionPrompt:
    """A generation request for one report section."""
    section: str
    system_prompt: str
    user_prompt: str
    schema: Type[BaseModel]
    short_circuit: Optional[Dict[str, Any]] = None
    corrections: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        if not self.corrections:
            return self.user_prompt
        notes = "\n\n".join(self.corrections)
        return f"{self.user_prompt}\n\n---\n\n{notes}"

    def with_correction(self, instruction: str) -> "SectionPrompt":
        return replace(self, corrections=[*self.corrections, instruction])


def next_sprint_number(number: str) -> str:
    try:
        return str(int(number) + 1)
    except (TypeError, ValueError):
        return "—"


# =============================================================================
# System Prompts
# =============================================================================


def build_system_prompt(language: str = "en") -> str:
    """Role and hard constraints shared by every section request."""
    language_name = LANGUAGE_NAMES.get(language, "English")
    return f"""You are an experienced product manager writing sprint reports for partners and stakeholders.

CRITICAL RULES:
1. Write ONLY in {language_name}.
2. Use plain business language that partners and executives understand.
3. Do NOT use implementation jargon: API, backend, frontend, pipeline, DevOps, architecture, microservices, deploy, refactoring and the like.
4. Describe work in terms of its value for users and the business.
5. Be specific but easy to follow.
6. Reply ONLY with a valid JSON object that matches the declared schema, without markdown.

STRICT DATA CONSTRAINTS:
7. Use ONLY facts that are explicitly listed in the input. Do NOT invent issues, artifacts, links or achievements.
8. If there is no data for a field, return an empty array [] or an empty string "".
9. Take issue keys, titles and statuses ONLY from the supplied list.
10. Do NOT make up links to figma.com, loom.com, the tracker or any other resource unless they are listed."""


VALIDATION_SYSTEM_PROMPT = """You are an expert reviewer of reports and documentation.
Assess the supplied data objectively and return a structured result.
Reply ONLY with a valid JSON object without markdown."""


# =============================================================================
# Helper Functions
# =============================================================================


def format_points(points: Optional[float]) -> str:
    if points is None:
        return "0"
    return str(int(points)) if float(points).is_integer() else f"{points:g}"


def format_issues_for_prompt(issues: List[Issue]) -> str:
    """Render issues as one enumerated fact per line."""
    if not issues:
        return "No issues"
    lines = []
    for i in issues:
        line = (
            f"- {i.key}: {i.summary} | Status: {i.status} | "
            f"Story points: {format_points(i.story_points)} | "
            f"Assignee: {i.assignee or 'unassigned'}"
        )
        if i.artifact:
            line += f" | Artifact: {i.artifact}"
        lines.append(line)
    return "\n".join(lines)


def format_sprint_info(sprint: SprintInfo) -> str:
    return f"""- Name: {sprint.name}
- Number: {sprint.number}
- Start date: {sprint.start_date or 'not specified'}
- End date: {sprint.end_date or 'not specified'}
- Sprint goal: {sprint.goal or 'not specified'}"""


def format_stats(stats: SprintStats) -> str:
    return f"""- Total issues: {stats.total_issues}
- Done: {stats.done_issues}
- Not done: {stats.not_done_issues}
- Story points: {format_points(stats.completed_story_points)}/{format_points(stats.total_story_points)}
- Progress: {stats.progress_percent}%"""


def _example_for(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    args = [a for a in typing.get_args(annotation) if a is not type(None)]

    if origin is typing.Union:
        inner = _example_for(args[0]) if args else "null"
        return f"{inner} | null" if isinstance(inner, str) else inner
    if origin in (list, List):
        return [_example_for(args[0])] if args else []
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return schema_example(annotation)
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return " | ".join(m.value for m in annotation)
    if annotation is bool:
        return "boolean"
    if annotation is int:
        return "integer"
    if annotation is float:
        return "number"
    return "string"


def schema_example(schema: Type[BaseModel]) -> Dict[str, Any]:
    """Example JSON object naming every field of the schema and its type."""
    example: Dict[str, Any] = {}
    for name, info in schema.model_fields.items():
        key = info.alias or name
        value = _example_for(info.annotation)
        if info.metadata and value == "integer":
            bounds = [getattr(m, "ge", None) for m in info.metadata] + [getattr(m, "le", None) for m in info.metadata]
            bounds = [b for b in bounds if b is not None]
            if len(bounds) == 2:
                value = f"integer {bounds[0]}-{bounds[1]}"
        example[key] = value
    return example


def render_schema_contract(schema: Type[BaseModel]) -> str:
    return json.dumps(schema_example(schema), indent=2, ensure_ascii=False)


def _reply_contract(schema: Type[BaseModel]) -> str:
    return f"Return a JSON object with exactly this shape:\n{render_schema_contract(schema)}"


def _short_circuit(ctx: BlockGenerationContext, section: ReportSection, reason: str, reply: Dict[str, Any]) -> "SectionPrompt":
    schema = SECTION_SCHEMAS[section]
    user_prompt = f"{reason}\n\nReturn exactly:\n{json.dumps(reply, ensure_ascii=False)}"
    return SectionPrompt(
        section=section.value,
        system_prompt=build_system_prompt(ctx.language),
        user_prompt=user_prompt,
        schema=schema,
        short_circuit=reply,
    )


def _prompt(ctx: BlockGenerationContext, section: ReportSection, body: str) -> SectionPrompt:
    schema = SECTION_SCHEMAS[section]
    return SectionPrompt(
        section=section.value,
        system_prompt=build_system_prompt(ctx.language),
        user_prompt=body,
        schema=schema,
    )


# =============================================================================
# Section Prompt Builders
# =============================================================================


def build_version_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    hints = ctx.version_hints or VersionHints()
    progress = hints.progress_percent if hints.progress_percent is not None else ctx.stats.progress_percent
    body = f"""Describe the product version for the sprint report.

## Input
- Version number: {hints.number or '1'}
- Version deadline: {hints.deadline or 'not specified'}
- Version goal (if any): {hints.goal or 'not specified'}
- Current progress: {progress}%

---

{_reply_contract(VersionMeta)}

IMPORTANT:
- "number" and "progressPercent" must repeat the input values exactly.
- If the deadline is not specified, set "deadline" to "".
- If the version goal is not specified, write a short general goal (1-2 sentences) without inventing features."""
    return _prompt(ctx, ReportSection.VERSION, body)


def build_sprint_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    body = f"""Describe the sprint for the report.

## Input
{format_sprint_info(ctx.sprint)}
- Progress: {ctx.stats.progress_percent}%

---

{_reply_contract(SprintMeta)}

IMPORTANT:
- "number", "startDate", "endDate" and "progressPercent" must repeat the input values exactly ("" when not specified).
- Phrase the goal in 1-2 sentences of business language. If no goal is given, summarise the listed work briefly."""
    return _prompt(ctx, ReportSection.SPRINT, body)


def build_overview_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    goal_match = ""
    if ctx.goal_match:
        goal_match = f"""
## How well the issues match the sprint goal
- Match level: {ctx.goal_match.match_level.value}
- Comment: {ctx.goal_match.comment}
"""

    body = f"""Write a sprint overview for partners (5-10 sentences).

## Sprint
{format_sprint_info(ctx.sprint)}

## Statistics
{format_stats(ctx.stats)}
{goal_match}
## Done issues
{format_issues_for_prompt(ctx.done_issues)}

## Not done issues
{format_issues_for_prompt(ctx.not_done_issues)}

---

{_reply_contract(OverviewReply)}

IMPORTANT:
- The text must be understandable to business partners without technical background.
- Cover what was planned, what was achieved and what was difficult.
- Do not invent facts; rely only on the data above.
- If few or no issues were done, say so honestly."""
    return _prompt(ctx, ReportSection.OVERVIEW, body)


def build_not_done_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    not_done = ctx.not_done_issues
    if not not_done:
        return _short_circuit(ctx, ReportSection.NOT_DONE, "Every sprint issue is done.", {"notDone": []})

    body = f"""Describe the sprint issues that were not finished, for partners.

## Sprint goal
{ctx.sprint.goal or 'not specified'}

## Not done issues
{format_issues_for_prompt(not_done)}

## Next sprint number
{ctx.next_sprint_number}

---

{_reply_contract(NotDoneReply)}

IMPORTANT:
- One item per issue from the list above, and only those issues.
- "issueKey" must be the exact key of the issue from the list.
- "title" is the issue in plain language without technical terms.
- "reason": use the status if it explains the delay, otherwise "Needs more time".
- "newDeadline": "Sprint {ctx.next_sprint_number}" or "—" if unknown."""
    return _prompt(ctx, ReportSection.NOT_DONE, body)


def build_achievements_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    done = ctx.done_issues
    if not done:
        return _short_circuit(ctx, ReportSection.ACHIEVEMENTS, "No sprint issue is done.", {"achievements": []})

    body = f"""Highlight the key achievements of the sprint based on the done issues.

## Sprint goal
{ctx.sprint.goal or 'not specified'}

## Done issues
{format_issues_for_prompt(done)}

## Sprint progress
{ctx.stats.progress_percent}%

---

{_reply_contract(AchievementsReply)}

IMPORTANT:
- Group related issues into one achievement.
- Focus on VALUE for users and the business, not on implementation.
- Do NOT invent achievements that are not in the data."""
    return _prompt(ctx, ReportSection.ACHIEVEMENTS, body)


def build_artifacts_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    with_artifacts = [i for i in ctx.demo_issues if i.artifact]
    if not with_artifacts:
        return _short_circuit(ctx, ReportSection.ARTIFACTS, "No demo issue has an artifact.", {"artifacts": []})

    body = f"""List the artifacts to demonstrate to partners.

## Demo issues with artifacts
{format_issues_for_prompt(with_artifacts)}

---

{_reply_contract(ArtifactsReply)}

IMPORTANT:
- One artifact per issue listed above, and only those issues.
- "issueKey" must be the exact key of the issue from the list.
- "issueLink" must be the artifact value exactly as listed.
- "attachmentsNote" names the kind of material (video, screenshots, mockups) or null.
- Do NOT make up links."""
    return _prompt(ctx, ReportSection.ARTIFACTS, body)


def build_next_sprint_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    number = ctx.next_sprint_number
    body = f"""Formulate the plan for the next sprint.

## Current sprint
- Number: {ctx.sprint.number}
- Goal: {ctx.sprint.goal or 'not specified'}
- Progress: {ctx.stats.progress_percent}%

## Not done issues (carried over)
{format_issues_for_prompt(ctx.not_done_issues)}

## Next sprint number
{number}

---

{_reply_contract(NextSprintReply)}

IMPORTANT:
- "sprintNumber" must be "{number}".
- The goal (1-2 sentences) should account for carried-over issues and continue the current work."""
    return _prompt(ctx, ReportSection.NEXT_SPRINT, body)


def build_blockers_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    not_done = ctx.not_done_issues
    if not not_done and ctx.stats.progress_percent >= BLOCKERS_PROGRESS_THRESHOLD:
        reason = f"The sprint is {ctx.stats.progress_percent}% complete with nothing left undone."
        return _short_circuit(ctx, ReportSection.BLOCKERS, reason, {"blockers": []})

    body = f"""Identify possible blockers for the next sprint.

## Current sprint
- Goal: {ctx.sprint.goal or 'not specified'}
- Progress: {ctx.stats.progress_percent}%

## Not done issues
{format_issues_for_prompt(not_done)}

---

{_reply_contract(BlockersReply)}

IMPORTANT:
- Derive blockers only from the not done issues or low progress.
- If there are no clear blockers, return an empty array.
- Do not invent blockers that are not supported by the data."""
    return _prompt(ctx, ReportSection.BLOCKERS, body)


def build_pm_questions_prompt(ctx: BlockGenerationContext) -> SectionPrompt:
    goal_match = ""
    if ctx.goal_match and ctx.goal_match.match_level == MatchLevel.WEAK:
        goal_match = f"""
## Issues do not match the sprint goal
- Match level: {ctx.goal_match.match_level.value}
- Comment: {ctx.goal_match.comment}
"""

    body = f"""Formulate questions and proposals from the product manager to partners and stakeholders.

## Sprint context
- Goal: {ctx.sprint.goal or 'not specified'}
- Progress: {ctx.stats.progress_percent}%
- Issues done: {ctx.stats.done_issues}/{ctx.stats.total_issues}
{goal_match}
---

{_reply_contract(PMQuestionsReply)}

Possible topics:
- Feature priorities.
- Clarifying requirements.
- Resources and timelines.
If there are no questions, return an empty array."""
    return _prompt(ctx, ReportSection.PM_QUESTIONS, body)


SECTION_BUILDERS: Dict[ReportSection, Callable[[BlockGenerationContext], SectionPrompt]] = {
    ReportSection.VERSION: build_version_prompt,
    ReportSection.SPRINT: build_sprint_prompt,
    ReportSection.OVERVIEW: build_overview_prompt,
    ReportSection.NOT_DONE: build_not_done_prompt,
    ReportSection.ACHIEVEMENTS: build_achievements_prompt,
    ReportSection.ARTIFACTS: build_artifacts_prompt,
    ReportSection.NEXT_SPRINT: build_next_sprint_prompt,
    ReportSection.BLOCKERS: build_blockers_prompt,
    ReportSection.PM_QUESTIONS: build_pm_questions_prompt,
}


def build_section_prompt(section: ReportSection, ctx: BlockGenerationContext) -> SectionPrompt:
    return SECTION_BUILDERS[section](ctx)


def build_all_section_prompts(ctx: BlockGenerationContext) -> List[SectionPrompt]:
    return [build_section_prompt(section, ctx) for section in ReportSection]


# =============================================================================
# Assessment Prompts
# =============================================================================


def build_goal_issue_match_prompt(sprint_goal: str, issues: List[Issue]) -> SectionPrompt:
    """Ask how well the sprint issues match the stated goal."""
    summaries = "\n".join(f"- {i.key}: {i.summary}" for i in issues) or "No issues"
    body = f"""Assess how well the sprint issues match the stated sprint goal.

## Sprint goal
{sprint_goal}

## Sprint issues
{summaries}

---

{_reply_contract(GoalIssueMatch)}

Criteria:
- "strong": more than 70% of the issues clearly serve the sprint goal
- "medium": 40-70% of the issues serve the goal, the rest are supporting or technical
- "weak": less than 40% of the issues serve the goal, or the goal is too abstract"""
    return SectionPrompt(
        section="goal_issue_match",
        system_prompt=VALIDATION_SYSTEM_PROMPT,
        user_prompt=body,
        schema=GoalIssueMatch,
    )


def build_partner_readiness_prompt(report_json: str, data_summary: str) -> SectionPrompt:
    """Ask whether a finished report can be shown to external partners."""
    body = f"""Assess whether this sprint report is ready to be shown to external partners.

## Report (JSON)
{report_json}

## Sprint data summary
{data_summary}

---

{_reply_contract(PartnerReadiness)}

Criteria:
1. Clarity: is the text understandable without technical knowledge?
2. Consistency: do the sections contradict each other?
3. Professionalism: no risky wording or internal jargon?
4. Completeness: are all key sections filled?

If the report is ready, return isPartnerReady true and an empty comments array."""
    return SectionPrompt(
        section="partner_readiness",
        system_prompt=VALIDATION_SYSTEM_PROMPT,
        user_prompt=body,
        schema=PartnerReadiness,
    )
