"""
Document block builder - turns a StructuredReport into ordered page blocks.

The page layout is fixed: version and sprint callouts, then four numbered
sections (results, artifacts, next sprint plan, PM questions). Blocks are
plain data; Block.to_api() renders the Notion block JSON.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sprintreport.models import ReportSection, StructuredReport
from sprintreport.services.dates import format_report_date

PAGE_BLOCK_LIMIT = 100

# Notion rejects rich text items longer than this
MAX_TEXT_LENGTH = 2000

BLOCK_TYPES = (
    "heading_1",
    "heading_2",
    "heading_3",
    "paragraph",
    "bulleted_list_item",
    "callout",
    "divider",
)


class TextSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    bold: bool = False

    def to_api(self) -> List[Dict[str, Any]]:
        pieces = [
            self.content[i : i + MAX_TEXT_LENGTH]
            for i in range(0, len(self.content), MAX_TEXT_LENGTH)
        ] or [""]
        items = []
        for piece in pieces:
            item: Dict[str, Any] = {"type": "text", "text": {"content": piece}}
            if self.bold:
                item["annotations"] = {"bold": True}
            items.append(item)
        return items


class Block(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    segments: List[TextSegment] = Field(default_factory=list)
    icon: Optional[str] = None

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        if v not in BLOCK_TYPES:
            raise ValueError(f"Unsupported block type: {v}")
        return v

    @property
    def text(self) -> str:
        return "".join(s.content for s in self.segments)

    def to_api(self) -> Dict[str, Any]:
        """Render as a Notion block object."""
        if self.type == "divider":
            return {"object": "block", "type": "divider", "divider": {}}

        body: Dict[str, Any] = {
            "rich_text": [item for s in self.segments for item in s.to_api()],
        }
        if self.type == "callout" and self.icon:
            body["icon"] = {"type": "emoji", "emoji": self.icon}
        return {"object": "block", "type": self.type, self.type: body}


@dataclass(frozen=True)
class Labels:
    """User-facing page text for one report language."""
    page_title: str
    version_line: str
    version_goal: str
    version_progress: str
    sprint_line: str
    sprint_goal: str
    sprint_progress: str
    results_heading: str
    sprint_timeline_placeholder: str
    overview_heading: str
    not_done_label: str
    not_done_item: str
    all_done: str
    achievements_label: str
    nothing: str
    artifacts_heading: str
    artifact_description: str
    artifact_link: str
    artifact_attachments: str
    artifact_placeholder: str
    artifacts_later: str
    next_sprint_heading: str
    next_sprint_number: str
    next_sprint_goal: str
    next_sprint_timeline_placeholder: str
    blockers_label: str
    blocker_item: str
    none: str
    pm_heading: str
    section_failed: str


LABELS: Dict[str, Labels] = {
    "en": Labels(
        page_title="Sprint report",
        version_line="Version #{number} — delivery deadline {deadline}",
        version_goal="Version goal — {goal}",
        version_progress="Version is {progress}% complete",
        sprint_line="Sprint #{number} — from {start} to {end}",
        sprint_goal="Sprint goal — {goal}",
        sprint_progress="Sprint is {progress}% complete",
        results_heading="1. Sprint results:",
        sprint_timeline_placeholder="[Sprint timeline screenshot from Jira will be added manually]",
        overview_heading="Sprint overview:",
        not_done_label="Not completed in the past sprint:",
        not_done_item="{title} — {reason}; needed: {required}; new deadline: {deadline}",
        all_done="All sprint tasks are completed.",
        achievements_label="Key achievements, conclusions and insights of the sprint:",
        nothing="—",
        artifacts_heading="2. Sprint artifacts:",
        artifact_description="Description: {description}",
        artifact_link="Epic / issue in Jira: {link}",
        artifact_attachments="Artifacts: {note}",
        artifact_placeholder="[Screenshots/videos/mockups will be added manually]",
        artifacts_later="Artifacts will be added later.",
        next_sprint_heading="3. Next sprint planning:",
        next_sprint_number="Sprint #{number}",
        next_sprint_goal="Next sprint goal — {goal}",
        next_sprint_timeline_placeholder="[Next sprint timeline screenshot from Jira will be added manually]",
        blockers_label="Blockers for the next sprint:",
        blocker_item="{title} — {description}; proposed solution: {resolution}",
        none="None",
        pm_heading="4. Questions and proposals from the Product Manager:",
        section_failed="[This section could not be generated]",
    ),
    "ru": Labels(
        page_title="Отчёт по спринту",
        version_line="Версия №{number} — дедлайн реализации {deadline}",
        version_goal="Цель версии — {goal}",
        version_progress="Версия реализована на {progress}%",
        sprint_line="Спринт №{number} — срок реализации с {start} по {end}",
        sprint_goal="Цель спринта — {goal}",
        sprint_progress="Спринт реализован на {progress}%",
        results_heading="1. Отчет по итогам реализованного спринта:",
        sprint_timeline_placeholder="[Скриншот timeline спринта из Jira будет добавлен вручную]",
        overview_heading="Overview спринта:",
        not_done_label="Не реализовано в прошедшем спринте:",
        not_done_item="{title} — {reason}; нужно: {required}; новый дедлайн: {deadline}",
        all_done="Все задачи спринта выполнены.",
        achievements_label="Ключевые достижения, выводы и инсайты спринта:",
        nothing="—",
        artifacts_heading="2. Артефакты по итогам реализованного спринта:",
        artifact_description="Описание: {description}",
        artifact_link="Эпик / задача в Jira: {link}",
        artifact_attachments="Артефакты: {note}",
        artifact_placeholder="[Скриншоты/видео/макеты будут добавлены вручную]",
        artifacts_later="Артефакты будут добавлены позже.",
        next_sprint_heading="3. Планирование следующего спринта:",
        next_sprint_number="Спринт №{number}",
        next_sprint_goal="Цель следующего спринта — {goal}",
        next_sprint_timeline_placeholder="[Скриншот timeline следующего спринта из Jira будет добавлен вручную]",
        blockers_label="Блокеры для реализации следующего спринта:",
        blocker_item="{title} — {description}; предложенное решение: {resolution}",
        none="Нет",
        pm_heading="4. Вопросы и предложения от Product Manager:",
        section_failed="[Этот раздел не удалось сгенерировать]",
    ),
}


def get_labels(language: str = "en") -> Labels:
    return LABELS.get(language, LABELS["en"])


# =============================================================================
# Block Helpers
# =============================================================================


def paragraph(text: str, bold: bool = False) -> Block:
    return Block(type="paragraph", segments=[TextSegment(content=text, bold=bold)])


def heading(level: int, text: str) -> Block:
    return Block(type=f"heading_{level}", segments=[TextSegment(content=text)])


def bullet(text: str) -> Block:
    return Block(type="bulleted_list_item", segments=[TextSegment(content=text)])


def divider() -> Block:
    return Block(type="divider")


def callout(lines: Sequence[str], icon: str) -> Block:
    """Callout whose first line is bold, later lines plain, newline-separated."""
    segments: List[TextSegment] = []
    for index, line in enumerate(lines):
        segments.append(TextSegment(content=line, bold=index == 0))
        if index < len(lines) - 1:
            segments.append(TextSegment(content="\n"))
    return Block(type="callout", segments=segments, icon=icon)


# =============================================================================
# Page Sections
# =============================================================================


def _version_callout(report: StructuredReport, labels: Labels) -> Block:
    if report.is_failed(ReportSection.VERSION):
        return callout([labels.section_failed], "🚀")
    v = report.version
    return callout(
        [
            labels.version_line.format(number=v.number, deadline=v.deadline or labels.nothing),
            labels.version_goal.format(goal=v.goal),
            labels.version_progress.format(progress=v.progress_percent),
        ],
        "🚀",
    )


def _sprint_callout(report: StructuredReport, labels: Labels) -> Block:
    if report.is_failed(ReportSection.SPRINT):
        return callout([labels.section_failed], "✅")
    s = report.sprint
    return callout(
        [
            labels.sprint_line.format(
                number=s.number,
                start=s.start_date or labels.nothing,
                end=s.end_date or labels.nothing,
            ),
            labels.sprint_goal.format(goal=s.goal),
            labels.sprint_progress.format(progress=s.progress_percent),
        ],
        "✅",
    )


def _results_section(report: StructuredReport, labels: Labels) -> List[Block]:
    blocks = [
        heading(1, labels.results_heading),
        paragraph(labels.sprint_timeline_placeholder),
        divider(),
        heading(2, labels.overview_heading),
    ]
    if report.is_failed(ReportSection.OVERVIEW):
        blocks.append(paragraph(labels.section_failed))
    else:
        blocks.append(paragraph(report.overview))
    blocks.append(divider())

    blocks.append(paragraph(labels.not_done_label, bold=True))
    if report.is_failed(ReportSection.NOT_DONE):
        blocks.append(paragraph(labels.section_failed))
    elif not report.not_done:
        blocks.append(paragraph(labels.all_done))
    else:
        for item in report.not_done:
            blocks.append(bullet(labels.not_done_item.format(
                title=item.title,
                reason=item.reason,
                required=item.required_for_completion,
                deadline=item.new_deadline,
            )))
    blocks.append(divider())

    blocks.append(paragraph(labels.achievements_label, bold=True))
    if report.is_failed(ReportSection.ACHIEVEMENTS):
        blocks.append(paragraph(labels.section_failed))
    elif not report.achievements:
        blocks.append(paragraph(labels.nothing))
    else:
        for item in report.achievements:
            blocks.append(bullet(f"{item.title} — {item.description}"))
    return blocks


def _artifacts_section(report: StructuredReport, labels: Labels) -> List[Block]:
    blocks = [heading(1, labels.artifacts_heading)]
    if report.is_failed(ReportSection.ARTIFACTS):
        blocks.append(paragraph(labels.section_failed))
        return blocks
    if not report.artifacts:
        blocks.append(paragraph(labels.artifacts_later))
        return blocks

    for artifact in report.artifacts:
        blocks.append(heading(3, artifact.title))
        blocks.append(paragraph(labels.artifact_description.format(description=artifact.description)))
        if artifact.issue_link:
            blocks.append(paragraph(labels.artifact_link.format(link=artifact.issue_link)))
        if artifact.attachments_note:
            blocks.append(paragraph(labels.artifact_attachments.format(note=artifact.attachments_note)))
        blocks.append(paragraph(labels.artifact_placeholder))
        blocks.append(divider())
    return blocks


def _next_sprint_section(report: StructuredReport, labels: Labels) -> List[Block]:
    blocks = [heading(1, labels.next_sprint_heading)]
    if report.is_failed(ReportSection.NEXT_SPRINT):
        blocks.append(paragraph(labels.section_failed))
    else:
        plan = report.next_sprint
        blocks.append(paragraph(labels.next_sprint_number.format(number=plan.sprint_number), bold=True))
        blocks.append(paragraph(labels.next_sprint_goal.format(goal=plan.goal)))
    blocks.append(paragraph(labels.next_sprint_timeline_placeholder))
    blocks.append(divider())

    blocks.append(paragraph(labels.blockers_label, bold=True))
    if report.is_failed(ReportSection.BLOCKERS):
        blocks.append(paragraph(labels.section_failed))
    elif not report.blockers:
        blocks.append(paragraph(labels.none))
    else:
        for blocker in report.blockers:
            blocks.append(bullet(labels.blocker_item.format(
                title=blocker.title,
                description=blocker.description,
                resolution=blocker.resolution_proposal,
            )))
    return blocks


def _pm_questions_section(report: StructuredReport, labels: Labels) -> List[Block]:
    blocks = [heading(1, labels.pm_heading)]
    if report.is_failed(ReportSection.PM_QUESTIONS):
        blocks.append(paragraph(labels.section_failed))
    elif not report.pm_questions:
        blocks.append(paragraph(labels.none))
    else:
        for question in report.pm_questions:
            blocks.append(bullet(f"{question.title} — {question.description}"))
    return blocks


def build_document_blocks(report: StructuredReport, labels: Optional[Labels] = None) -> List[Block]:
    """
    Build the full ordered block list for a report page.

    Pure: the same report always yields the same blocks.
    """
    labels = labels or get_labels("en")
    blocks: List[Block] = [
        _version_callout(report, labels),
        _sprint_callout(report, labels),
        divider(),
    ]
    blocks.extend(_results_section(report, labels))
    blocks.append(divider())
    blocks.extend(_artifacts_section(report, labels))
    blocks.extend(_next_sprint_section(report, labels))
    blocks.append(divider())
    blocks.extend(_pm_questions_section(report, labels))
    return blocks


def chunk_blocks(
    blocks: Sequence[Block],
    size: int = PAGE_BLOCK_LIMIT,
) -> Tuple[List[Block], List[List[Block]]]:
    """
    Split blocks into the page-creation payload and follow-up append batches.

    Order is preserved: first + batches concatenated equals the input.
    """
    if size <= 0:
        raise ValueError("size must be positive")
    blocks = list(blocks)
    first = blocks[:size]
    batches = [blocks[i : i + size] for i in range(size, len(blocks), size)]
    return first, batches


def build_page_title(sprint_name: str, today: Optional[date] = None, language: str = "en") -> str:
    today = today or date.today()
    labels = get_labels(language)
    return f"{labels.page_title}: {sprint_name} ({format_report_date(today.isoformat(), language)})"


def _truncate(text: str, limit: int) -> str:
    return f"{text[:limit]}..." if len(text) > limit else text


def describe_blocks(blocks: Sequence[Block]) -> List[str]:
    """One preview line per block, indented by nesting level."""
    lines = []
    for block in blocks:
        first = block.segments[0].content if block.segments else ""
        if block.type == "heading_1":
            lines.append(f"H1: {first}")
        elif block.type == "heading_2":
            lines.append(f"  H2: {first}")
        elif block.type == "heading_3":
            lines.append(f"    H3: {first}")
        elif block.type == "paragraph":
            lines.append(f"    P: {_truncate(first, 60)}")
        elif block.type == "bulleted_list_item":
            lines.append(f"    • {_truncate(first, 55)}")
        elif block.type == "callout":
            lines.append(f"  📌 Callout: {_truncate(first, 45)}")
        elif block.type == "divider":
            lines.append("  ─────────")
        else:
            lines.append(f"  [{block.type}]")
    lines.append(f"Total blocks: {len(blocks)}")
    return lines
