"""
Pipeline Orchestrator - ties together the sprint report flow.

Two entry points:
1. ResilientPipeline: Collect → Generate → Publish where every stage falls
   back to canned mock data on its own when its integration is not
   configured or fails. Never raises for a stage failure; reports which
   stages ran for real in a Provenance record.
2. SprintReportPipeline: the strict flow with pre-flight configuration
   checks and data/report validation. Any stage failure propagates.

Between Collect and Generate, demo selection and progress are computed on
whatever issues were collected.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, TypeVar

from sprintreport.ai.client import OpenAIGenerator, TextGenerator
from sprintreport.ai.generation import ReportAssembler, assess_goal_issue_match, assess_partner_readiness
from sprintreport.ai.prompts import BlockGenerationContext, PartnerReadiness
from sprintreport.config import Settings, get_settings
from sprintreport.exceptions import IssueNormalizationError
from sprintreport.ingest.normalize import normalize_issues
from sprintreport.models import (
    GoalIssueMatch,
    Issue,
    NormalizedSprintData,
    PageResult,
    StructuredReport,
    ValidationResult,
    VersionHints,
)
from sprintreport.pipeline.mock_data import MockDataGenerator
from sprintreport.publish.blocks import Block, build_document_blocks, build_page_title, get_labels
from sprintreport.publish.notion import NotionPublisher
from sprintreport.services.demo_selector import DemoSelectorOptions, select_demo_issues
from sprintreport.services.progress import calculate_sprint_stats
from sprintreport.services.validation import validate_report, validate_sprint_data
from sprintreport.sync.tracker import JiraTrackerClient, TrackerSprintData, to_sprint_info

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNCONFIGURED = "unconfigured"


class PipelineStage(str, Enum):
    """Stages of the pipeline."""
    COLLECT = "collect"
    GENERATE = "generate"
    PUBLISH = "publish"


class StageState(str, Enum):
    """How a stage produced its payload."""
    ATTEMPTED_REAL = "attempted_real"
    FELL_BACK_TO_MOCK = "fell_back_to_mock"


@dataclass
class StageOutcome:
    """Result state of one stage."""
    stage: PipelineStage
    state: StageState
    reason: Optional[str] = None

    @property
    def source(self) -> str:
        return "real" if self.state == StageState.ATTEMPTED_REAL else "mock"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "source": self.source,
            "reason": self.reason,
        }


@dataclass
class Provenance:
    """Which stages used real integrations and why the others fell back."""
    outcomes: Dict[PipelineStage, StageOutcome] = field(default_factory=dict)

    def record(self, outcome: StageOutcome) -> None:
        self.outcomes[outcome.stage] = outcome

    def source(self, stage: PipelineStage) -> str:
        return self.outcomes[stage].source

    def reason(self, stage: PipelineStage) -> Optional[str]:
        return self.outcomes[stage].reason

    @property
    def all_real(self) -> bool:
        return all(o.state == StageState.ATTEMPTED_REAL for o in self.outcomes.values())

    def to_dict(self) -> Dict[str, Any]:
        return {stage.value: outcome.to_dict() for stage, outcome in self.outcomes.items()}

    def summary(self) -> str:
        lines = [f"{'stage':<10} {'source':<6} reason"]
        for stage in PipelineStage:
            outcome = self.outcomes.get(stage)
            if outcome is None:
                lines.append(f"{stage.value:<10} {'-':<6} not run")
                continue
            lines.append(f"{stage.value:<10} {outcome.source:<6} {outcome.reason or ''}".rstrip())
        return "\n".join(lines)


class StageMachine:
    """
    Two-state machine for one stage: try the real integration, or fall back.

    Usage:
        machine = StageMachine(PipelineStage.COLLECT)
        data, outcome = await machine.run(configured, real_call, fallback_call)
    """

    def __init__(self, stage: PipelineStage):
        self.stage = stage

    async def run(
        self,
        configured: bool,
        real_call: Callable[[], Awaitable[T]],
        fallback_call: Callable[[], T],
    ) -> Tuple[T, StageOutcome]:
        if not configured:
            logger.warning(f"Stage {self.stage.value}: integration not configured, using mock data")
            return fallback_call(), StageOutcome(self.stage, StageState.FELL_BACK_TO_MOCK, UNCONFIGURED)

        try:
            result = await real_call()
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning(f"Stage {self.stage.value} failed, falling back to mock data: {reason}")
            return fallback_call(), StageOutcome(self.stage, StageState.FELL_BACK_TO_MOCK, reason)

        logger.info(f"Stage {self.stage.value}: completed with real integration")
        return result, StageOutcome(self.stage, StageState.ATTEMPTED_REAL)


class FallbackProvider(Protocol):
    """Canned payloads, one per stage."""

    def mock_sprint_data(self, sprint_ref: str) -> TrackerSprintData:
        ...

    def mock_report(self, ctx: BlockGenerationContext) -> StructuredReport:
        ...

    def mock_page(self, title: str, blocks: Sequence[Block]) -> PageResult:
        ...


@dataclass
class PipelineRun:
    """Result of a resilient pipeline run."""
    report: StructuredReport
    page: PageResult
    provenance: Provenance
    data: NormalizedSprintData


@dataclass
class ReportResult:
    """Result of a strict pipeline run."""
    data: NormalizedSprintData
    data_validation: ValidationResult
    report: Optional[StructuredReport] = None
    report_validation: Optional[ValidationResult] = None
    page: Optional[PageResult] = None
    goal_match: Optional[GoalIssueMatch] = None
    partner_readiness: Optional[PartnerReadiness] = None

    @property
    def published(self) -> bool:
        return self.page is not None


# =============================================================================
# Shared steps
# =============================================================================


def build_sprint_data(
    tracker_data: TrackerSprintData,
    settings: Settings,
    version_hints: Optional[VersionHints] = None,
) -> NormalizedSprintData:
    """
    Normalize raw tracker data and compute demos and stats.

    Raises:
        IssueNormalizationError: the sprint has issues but none could be normalized
    """
    issues, rejected = normalize_issues(
        tracker_data.raw_issues,
        settings.jira_artifact_field_id,
        settings.get_story_point_fields(),
    )
    if tracker_data.raw_issues and not issues:
        raise IssueNormalizationError(
            f"None of the {len(tracker_data.raw_issues)} sprint issues could be normalized"
        )

    demo_issues = select_demo_issues(issues, DemoSelectorOptions(max_demos=settings.max_demos))
    stats = calculate_sprint_stats(issues)
    logger.info(
        f"Sprint data: {stats.total_issues} issues, {stats.done_issues} done, "
        f"{stats.progress_percent}% progress, {len(rejected)} rejected"
    )

    return NormalizedSprintData(
        sprint=to_sprint_info(tracker_data.sprint, settings.report_language),
        issues=issues,
        demo_issues=demo_issues,
        version_hints=version_hints,
        stats=stats,
        rejected=rejected,
    )


def mock_data_for(settings: Settings) -> MockDataGenerator:
    """Canned data shaped like the configured tracker fields."""
    return MockDataGenerator(
        artifact_field_id=settings.jira_artifact_field_id,
        story_point_field=settings.get_story_point_fields()[0],
    )


def build_generation_context(
    data: NormalizedSprintData,
    language: str = "en",
    goal_match: Optional[GoalIssueMatch] = None,
) -> BlockGenerationContext:
    return BlockGenerationContext(
        sprint=data.sprint,
        issues=list(data.issues),
        demo_issues=list(data.demo_issues),
        stats=data.stats,
        version_hints=data.version_hints,
        goal_match=goal_match,
        language=language,
    )


class _Adapters:
    """Lazily built collaborators; only the ones built here are closed here."""

    def __init__(
        self,
        settings: Settings,
        tracker: Optional[JiraTrackerClient] = None,
        generator: Optional[TextGenerator] = None,
        publisher: Optional[NotionPublisher] = None,
    ):
        self.settings = settings
        self._tracker = tracker
        self._generator = generator
        self._publisher = publisher
        self._owned: List[Any] = []

    def tracker(self) -> JiraTrackerClient:
        if self._tracker is None:
            self._tracker = JiraTrackerClient(self.settings)
            self._owned.append(self._tracker)
        return self._tracker

    def generator(self) -> TextGenerator:
        if self._generator is None:
            self._generator = OpenAIGenerator(self.settings)
            self._owned.append(self._generator)
        return self._generator

    def publisher(self) -> NotionPublisher:
        if self._publisher is None:
            self._publisher = NotionPublisher(self.settings)
            self._owned.append(self._publisher)
        return self._publisher

    def has_tracker(self) -> bool:
        return self._tracker is not None or self.settings.is_jira_configured()

    def has_generator(self) -> bool:
        return self._generator is not None or self.settings.is_openai_configured()

    def has_publisher(self) -> bool:
        return self._publisher is not None or self.settings.is_notion_configured()

    async def close(self):
        for adapter in self._owned:
            await adapter.close()
        self._owned = []


# =============================================================================
# Resilient pipeline
# =============================================================================


class ResilientPipeline:
    """
    Runs Collect → Generate → Publish with per-stage mock fallback.

    Usage:
        pipeline = ResilientPipeline(settings)
        run = await pipeline.run("Sprint 14")
        print(run.provenance.summary())
        print(run.page.url)
    """

    def __init__(
        self,
        settings: Settings,
        fallback: Optional[FallbackProvider] = None,
        tracker: Optional[JiraTrackerClient] = None,
        generator: Optional[TextGenerator] = None,
        publisher: Optional[NotionPublisher] = None,
    ):
        self.settings = settings
        self.fallback = fallback or mock_data_for(settings)
        self._adapters = _Adapters(settings, tracker, generator, publisher)

    def _configured(self, has_integration: bool) -> bool:
        return has_integration and not self.settings.mock_mode

    async def run(self, sprint_ref: str, version_hints: Optional[VersionHints] = None) -> PipelineRun:
        """
        Produce a report and page for the sprint, whatever is configured.

        Args:
            sprint_ref: Sprint id or name
            version_hints: Optional partial version information

        Returns:
            PipelineRun with the report, page, provenance and collected data
        """
        provenance = Provenance()
        settings = self.settings
        adapters = self._adapters
        labels = get_labels(settings.report_language)

        try:
            # Stage 1: Collect
            async def collect_real() -> NormalizedSprintData:
                tracker_data = await adapters.tracker().get_sprint_data(sprint_ref)
                return build_sprint_data(tracker_data, settings, version_hints)

            def collect_mock() -> NormalizedSprintData:
                return build_sprint_data(self.fallback.mock_sprint_data(sprint_ref), settings, version_hints)

            data, outcome = await StageMachine(PipelineStage.COLLECT).run(
                self._configured(adapters.has_tracker()), collect_real, collect_mock
            )
            provenance.record(outcome)

            # Stage 2: Generate
            ctx = build_generation_context(data, settings.report_language)

            async def generate_real() -> StructuredReport:
                generator = adapters.generator()
                ctx.goal_match = await assess_goal_issue_match(generator, data.sprint.goal, data.issues)
                return await ReportAssembler(generator).generate_report(ctx)

            report, outcome = await StageMachine(PipelineStage.GENERATE).run(
                self._configured(adapters.has_generator()),
                generate_real,
                lambda: self.fallback.mock_report(ctx),
            )
            provenance.record(outcome)

            # Stage 3: Publish
            title = build_page_title(data.sprint.name or sprint_ref, date.today(), settings.report_language)
            blocks = build_document_blocks(report, labels)

            page, outcome = await StageMachine(PipelineStage.PUBLISH).run(
                self._configured(adapters.has_publisher()),
                lambda: adapters.publisher().create_page(title, blocks),
                lambda: self.fallback.mock_page(title, blocks),
            )
            provenance.record(outcome)
        finally:
            await adapters.close()

        logger.info(f"Pipeline finished:\n{provenance.summary()}")
        return PipelineRun(report=report, page=page, provenance=provenance, data=data)


# =============================================================================
# Strict pipeline
# =============================================================================


class SprintReportPipeline:
    """
    Strict Collect → Validate → Generate → Validate → Publish flow.

    Mock mode swaps every integration for canned data; otherwise all three
    integrations must be configured and any failure propagates.

    Usage:
        pipeline = SprintReportPipeline(settings)
        result = await pipeline.run("Sprint 14", dry_run=True)
        if not result.data_validation.is_valid:
            print(result.data_validation.errors)
    """

    def __init__(
        self,
        settings: Settings,
        fallback: Optional[FallbackProvider] = None,
        tracker: Optional[JiraTrackerClient] = None,
        generator: Optional[TextGenerator] = None,
        publisher: Optional[NotionPublisher] = None,
    ):
        self.settings = settings
        self.fallback = fallback or mock_data_for(settings)
        self._adapters = _Adapters(settings, tracker, generator, publisher)

    async def run(
        self,
        sprint_ref: str,
        dry_run: bool = False,
        version_hints: Optional[VersionHints] = None,
    ) -> ReportResult:
        """
        Run the full workflow.

        Publishing is skipped when dry_run is set or either validation
        reports errors.

        Raises:
            ConfigurationError: credentials missing outside mock mode
            TransportError: a collaborator failed
            IssueNormalizationError: no sprint issue could be normalized
        """
        settings = self.settings
        settings.validate_required()
        mock = settings.mock_mode
        adapters = self._adapters

        try:
            logger.info(f"Step 1: Collecting sprint data for {sprint_ref}")
            if mock:
                tracker_data = self.fallback.mock_sprint_data(sprint_ref)
            else:
                tracker_data = await adapters.tracker().get_sprint_data(sprint_ref)
            data = build_sprint_data(tracker_data, settings, version_hints)

            goal_match = None
            if not mock:
                goal_match = await assess_goal_issue_match(adapters.generator(), data.sprint.goal, data.issues)

            data_validation = validate_sprint_data(data, goal_match)
            result = ReportResult(data=data, data_validation=data_validation, goal_match=goal_match)
            if not data_validation.is_valid:
                logger.error(f"Sprint data validation failed: {[e.code for e in data_validation.errors]}")
                return result

            logger.info("Step 2: Generating report")
            ctx = build_generation_context(data, settings.report_language, goal_match)
            if mock:
                report = self.fallback.mock_report(ctx)
            else:
                report = await ReportAssembler(adapters.generator()).generate_report(ctx)
            result.report = report

            logger.info("Step 3: Validating report")
            if not mock:
                result.partner_readiness = await assess_partner_readiness(adapters.generator(), report, data)
            result.report_validation = validate_report(report, data, result.partner_readiness)
            if not result.report_validation.is_valid:
                logger.error(f"Report validation failed: {[e.code for e in result.report_validation.errors]}")
                return result

            title = build_page_title(data.sprint.name or sprint_ref, date.today(), settings.report_language)
            blocks = build_document_blocks(report, get_labels(settings.report_language))
            if dry_run:
                logger.info(f"Dry run: skipping publish of {len(blocks)} blocks")
                return result

            logger.info("Step 4: Publishing report page")
            if mock:
                result.page = self.fallback.mock_page(title, blocks)
            else:
                result.page = await adapters.publisher().create_page(title, blocks)
            return result
        finally:
            await adapters.close()


# =============================================================================
# Host functions
# =============================================================================


async def collect(
    sprint_ref: str,
    settings: Optional[Settings] = None,
    version_hints: Optional[VersionHints] = None,
) -> NormalizedSprintData:
    """Fetch and normalize a sprint from the tracker; errors propagate."""
    settings = settings or get_settings()
    tracker = JiraTrackerClient(settings)
    try:
        tracker_data = await tracker.get_sprint_data(sprint_ref)
    finally:
        await tracker.close()
    return build_sprint_data(tracker_data, settings, version_hints)


def select_demos(issues: Sequence[Issue], opts: Optional[DemoSelectorOptions] = None) -> List[Issue]:
    return select_demo_issues(issues, opts or DemoSelectorOptions())


async def generate_report(
    context: BlockGenerationContext,
    settings: Optional[Settings] = None,
    generator: Optional[TextGenerator] = None,
) -> StructuredReport:
    """Generate a report for a prepared context with the configured generator."""
    owned = None
    if generator is None:
        owned = generator = OpenAIGenerator(settings or get_settings())
    try:
        return await ReportAssembler(generator).generate_report(context)
    finally:
        if owned is not None:
            await owned.close()


async def run_resilient_pipeline(
    sprint_ref: str,
    settings: Optional[Settings] = None,
    version_hints: Optional[VersionHints] = None,
) -> PipelineRun:
    return await ResilientPipeline(settings or get_settings()).run(sprint_ref, version_hints)
