from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any
from enum import Enum


# Enums
class StatusCategory(str, Enum):
    DONE = "done"
    IN_PROGRESS = "indeterminate"
    TODO = "new"


class ReportSection(str, Enum):
    VERSION = "version"
    SPRINT = "sprint"
    OVERVIEW = "overview"
    NOT_DONE = "not_done"
    ACHIEVEMENTS = "achievements"
    ARTIFACTS = "artifacts"
    NEXT_SPRINT = "next_sprint"
    BLOCKERS = "blockers"
    PM_QUESTIONS = "pm_questions"


class MatchLevel(str, Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"


# Base Models
class WireModel(BaseModel):
    """Frozen model serialized with camelCase keys on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        coerce_numbers_to_str=True,
    )


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    summary: str = ""
    status: str
    status_category: StatusCategory
    story_points: Optional[float] = Field(default=None, ge=0)
    assignee: Optional[str] = None
    artifact: Optional[str] = None
    extra_fields: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_done(self) -> bool:
        return self.status_category == StatusCategory.DONE


class SprintInfo(BaseModel):
    id: Optional[str] = None
    name: str
    number: str = "1"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    goal: Optional[str] = None


class SprintStats(BaseModel):
    total_issues: int = 0
    done_issues: int = 0
    not_done_issues: int = 0
    total_story_points: float = 0
    completed_story_points: float = 0
    progress_percent: int = 0


# Report sections
class VersionMeta(WireModel):
    number: str
    deadline: str
    goal: str
    progress_percent: int = Field(ge=0, le=100)


class VersionHints(WireModel):
    """Caller-supplied, possibly partial, version information."""
    number: Optional[str] = None
    deadline: Optional[str] = None
    goal: Optional[str] = None
    progress_percent: Optional[int] = Field(default=None, ge=0, le=100)


class SprintMeta(WireModel):
    number: str
    start_date: str
    end_date: str
    goal: str
    progress_percent: int = Field(ge=0, le=100)


class NotDoneItem(WireModel):
    title: str
    reason: str
    required_for_completion: str
    new_deadline: str
    issue_key: Optional[str] = None


class AchievementItem(WireModel):
    title: str
    description: str


class ArtifactItem(WireModel):
    title: str
    description: str
    issue_key: Optional[str] = None
    issue_link: Optional[str] = None
    attachments_note: Optional[str] = None


class NextSprintPlan(WireModel):
    sprint_number: str
    goal: str


class BlockerItem(WireModel):
    title: str
    description: str
    resolution_proposal: str


class PMQuestion(WireModel):
    title: str
    description: str


class SectionFailure(WireModel):
    section: ReportSection
    error: str
    attempts: int


class IntegrityFinding(WireModel):
    section: ReportSection
    issue_key: str
    message: str


class StructuredReport(WireModel):
    version: VersionMeta
    sprint: SprintMeta
    overview: str
    not_done: List[NotDoneItem] = Field(default_factory=list)
    achievements: List[AchievementItem] = Field(default_factory=list)
    artifacts: List[ArtifactItem] = Field(default_factory=list)
    next_sprint: NextSprintPlan
    blockers: List[BlockerItem] = Field(default_factory=list)
    pm_questions: List[PMQuestion] = Field(default_factory=list)
    failed_sections: List[SectionFailure] = Field(default_factory=list)
    integrity_warnings: List[IntegrityFinding] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.failed_sections

    def is_failed(self, section: ReportSection) -> bool:
        return any(f.section == section for f in self.failed_sections)


# Collected data
class GoalIssueMatch(WireModel):
    match_level: MatchLevel
    comment: str


class NormalizedSprintData(BaseModel):
    sprint: SprintInfo
    issues: List[Issue] = Field(default_factory=list)
    demo_issues: List[Issue] = Field(default_factory=list)
    version_hints: Optional[VersionHints] = None
    stats: SprintStats = Field(default_factory=SprintStats)
    rejected: List[str] = Field(default_factory=list)  # normalization errors

    @property
    def issue_keys(self) -> set:
        return {i.key for i in self.issues}


class ValidationIssue(BaseModel):
    code: str
    message: str
    field: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class PageResult(BaseModel):
    id: str
    url: str
    blocks_written: int = 0
