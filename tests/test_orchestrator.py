"""
Tests for the pipeline orchestrator

Covers:
- Per-stage fallback for every configured/unconfigured combination
- Provenance reasons when a configured stage fails
- The strict pipeline: pre-flight checks, validation gates, dry run
"""

import itertools
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from sprintreport.exceptions import (
    ConfigurationError,
    IssueNormalizationError,
    PartialPageError,
    SprintNotFoundError,
    TransportError,
)
from sprintreport.models import PageResult, VersionHints
from sprintreport.pipeline.mock_data import MOCK_PAGE_URL
from sprintreport.pipeline.orchestrator import (
    PipelineStage,
    ResilientPipeline,
    SprintReportPipeline,
    StageMachine,
    StageState,
    build_sprint_data,
    collect,
    generate_report,
    mock_data_for,
    select_demos,
)
from sprintreport.sync.tracker import TrackerSprintData

REAL_PAGE = PageResult(id="real-page", url="https://www.notion.so/realpage", blocks_written=0)


@pytest.fixture
def generator_reply(reply_for):
    """Answers section prompts and both assessment prompts."""

    def _reply(prompt):
        if prompt.section == "goal_issue_match":
            return json.dumps({"matchLevel": "strong", "comment": "Issues serve the goal"})
        if prompt.section == "partner_readiness":
            return json.dumps({"isPartnerReady": True, "comments": []})
        return reply_for(prompt)

    return _reply


@pytest.fixture
def tracker(mock_data):
    tracker = MagicMock()
    tracker.get_sprint_data = AsyncMock(return_value=mock_data.mock_sprint_data("Sprint 14"))
    return tracker


@pytest.fixture
def generator(generator_reply):
    generator = MagicMock()
    generator.generate = AsyncMock(side_effect=generator_reply)
    return generator


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.create_page = AsyncMock(return_value=REAL_PAGE)
    return publisher


@pytest.fixture
def full_settings(make_settings, jira_settings, openai_settings, notion_settings):
    return make_settings(**jira_settings, **openai_settings, **notion_settings)


# =============================================================================
# Stage Machine Tests
# =============================================================================


class TestStageMachine:
    """Tests for the two-state stage machine."""

    @pytest.mark.asyncio
    async def test_unconfigured_never_calls_real(self):
        real = AsyncMock()

        value, outcome = await StageMachine(PipelineStage.COLLECT).run(False, real, lambda: "mock")

        assert value == "mock"
        assert outcome.state == StageState.FELL_BACK_TO_MOCK
        assert outcome.reason == "unconfigured"
        real.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_falls_back_with_reason(self):
        real = AsyncMock(side_effect=TransportError("tracker", "HTTP 401"))

        value, outcome = await StageMachine(PipelineStage.COLLECT).run(True, real, lambda: "mock")

        assert value == "mock"
        assert outcome.source == "mock"
        assert outcome.reason == "tracker: HTTP 401"

    @pytest.mark.asyncio
    async def test_exception_without_message(self):
        real = AsyncMock(side_effect=RuntimeError())

        _, outcome = await StageMachine(PipelineStage.PUBLISH).run(True, real, lambda: None)

        assert outcome.reason == "RuntimeError"

    @pytest.mark.asyncio
    async def test_success(self):
        _, outcome = await StageMachine(PipelineStage.GENERATE).run(True, AsyncMock(return_value=1), lambda: 0)

        assert outcome.state == StageState.ATTEMPTED_REAL
        assert outcome.reason is None


# =============================================================================
# Resilient Pipeline Tests
# =============================================================================


class TestResilientPipeline:
    """Tests for ResilientPipeline.run."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("has_tracker,has_generator,has_publisher", list(itertools.product([True, False], repeat=3)))
    async def test_every_configuration_produces_a_report(
        self, make_settings, tracker, generator, publisher, has_tracker, has_generator, has_publisher
    ):
        pipeline = ResilientPipeline(
            make_settings(),
            tracker=tracker if has_tracker else None,
            generator=generator if has_generator else None,
            publisher=publisher if has_publisher else None,
        )

        run = await pipeline.run("Sprint 14")

        expected = {
            PipelineStage.COLLECT: has_tracker,
            PipelineStage.GENERATE: has_generator,
            PipelineStage.PUBLISH: has_publisher,
        }
        for stage, real in expected.items():
            assert run.provenance.source(stage) == ("real" if real else "mock")
            assert run.provenance.reason(stage) == (None if real else "unconfigured")

        assert run.provenance.all_real == all(expected.values())
        assert run.report.is_complete
        assert run.report.overview
        assert run.page.url == (REAL_PAGE.url if has_publisher else MOCK_PAGE_URL)
        assert len(run.data.issues) == 6

    @pytest.mark.asyncio
    async def test_failing_tracker_falls_back(self, make_settings, tracker, generator, publisher):
        tracker.get_sprint_data.side_effect = SprintNotFoundError("Sprint 99")
        pipeline = ResilientPipeline(make_settings(), tracker=tracker, generator=generator, publisher=publisher)

        run = await pipeline.run("Sprint 99")

        assert run.provenance.source(PipelineStage.COLLECT) == "mock"
        assert run.provenance.reason(PipelineStage.COLLECT) == "tracker: Sprint not found: Sprint 99"
        assert run.data.sprint.name == "Sprint 99"
        # Later stages still run for real on the fallback data
        assert run.provenance.source(PipelineStage.GENERATE) == "real"
        assert run.provenance.source(PipelineStage.PUBLISH) == "real"

    @pytest.mark.asyncio
    async def test_failing_generator_falls_back(self, make_settings, tracker, generator, publisher):
        generator.generate.side_effect = TransportError("generator", "HTTP 503")
        pipeline = ResilientPipeline(make_settings(), tracker=tracker, generator=generator, publisher=publisher)

        run = await pipeline.run("Sprint 14")

        assert run.provenance.source(PipelineStage.GENERATE) == "mock"
        assert run.provenance.reason(PipelineStage.GENERATE) == "generator: HTTP 503"
        # The canned report only mentions collected issues
        assert {i.issue_key for i in run.report.not_done} <= run.data.issue_keys

    @pytest.mark.asyncio
    async def test_failing_publisher_falls_back(self, make_settings, tracker, generator, publisher):
        publisher.create_page.side_effect = TransportError("document_host", "HTTP 400")
        pipeline = ResilientPipeline(make_settings(), tracker=tracker, generator=generator, publisher=publisher)

        run = await pipeline.run("Sprint 14")

        assert run.page.url == MOCK_PAGE_URL
        assert run.provenance.reason(PipelineStage.PUBLISH) == "document_host: HTTP 400"

    @pytest.mark.asyncio
    async def test_mock_mode_ignores_integrations(self, make_settings, tracker, generator, publisher):
        pipeline = ResilientPipeline(
            make_settings(mock_mode=True), tracker=tracker, generator=generator, publisher=publisher
        )

        run = await pipeline.run("14")

        assert not run.provenance.all_real
        tracker.get_sprint_data.assert_not_awaited()
        generator.generate.assert_not_awaited()
        publisher.create_page.assert_not_awaited()
        assert run.data.sprint.name == "Sprint 14"

    @pytest.mark.asyncio
    async def test_unnormalizable_sprint_falls_back(self, make_settings, make_raw_issue, mock_data, tracker):
        tracker.get_sprint_data.return_value = TrackerSprintData(
            sprint=mock_data.generate_sprint("Sprint 14"),
            raw_issues=[make_raw_issue("PROJ-1", category="blocked"), make_raw_issue("PROJ-2", category="blocked")],
        )
        pipeline = ResilientPipeline(make_settings(), tracker=tracker)

        run = await pipeline.run("Sprint 14")

        assert run.provenance.source(PipelineStage.COLLECT) == "mock"
        assert run.provenance.reason(PipelineStage.COLLECT) == "None of the 2 sprint issues could be normalized"
        assert len(run.data.issues) == 6
        assert run.data.rejected == []

    @pytest.mark.asyncio
    async def test_partial_page_reason_names_the_page(self, make_settings, tracker, generator, publisher):
        cause = TransportError("document_host", "HTTP 502 for PATCH /blocks/real-page/children", status_code=502)
        publisher.create_page.side_effect = PartialPageError("document_host", "real-page", REAL_PAGE.url, cause, 100)
        pipeline = ResilientPipeline(make_settings(), tracker=tracker, generator=generator, publisher=publisher)

        run = await pipeline.run("Sprint 14")

        assert run.provenance.source(PipelineStage.PUBLISH) == "mock"
        assert REAL_PAGE.url in run.provenance.reason(PipelineStage.PUBLISH)

    @pytest.mark.asyncio
    async def test_mock_data_follows_story_point_fields(self, make_settings):
        settings = make_settings(jira_story_point_fields="customfield_10020, story_points")

        run = await ResilientPipeline(settings).run("Sprint 14")

        assert mock_data_for(settings).generate_raw_issues()[0]["fields"]["customfield_10020"] == 8
        assert run.data.stats.progress_percent == 62
        assert [i.key for i in run.data.demo_issues] == ["PROJ-101", "PROJ-106", "PROJ-103"]

    @pytest.mark.asyncio
    async def test_published_blocks_follow_report(self, make_settings, tracker, generator, publisher):
        pipeline = ResilientPipeline(make_settings(), tracker=tracker, generator=generator, publisher=publisher)

        await pipeline.run("Sprint 14")

        title, blocks = publisher.create_page.await_args.args
        assert title.startswith("Sprint report: Sprint 14 (")
        assert blocks[0].type == "callout"

    @pytest.mark.asyncio
    async def test_version_hints_reach_mock_report(self, make_settings):
        hints = VersionHints(number="3", deadline="April 1, 2025")

        run = await ResilientPipeline(make_settings()).run("Sprint 14", hints)

        assert run.report.version.number == "3"
        assert run.report.version.deadline == "April 1, 2025"

    @pytest.mark.asyncio
    async def test_provenance_summary(self, make_settings):
        run = await ResilientPipeline(make_settings()).run("Sprint 14")

        summary = run.provenance.summary()

        assert "collect    mock   unconfigured" in summary
        assert run.provenance.to_dict()["publish"] == {
            "stage": "publish",
            "source": "mock",
            "reason": "unconfigured",
        }


# =============================================================================
# Strict Pipeline Tests
# =============================================================================


class TestSprintReportPipeline:
    """Tests for SprintReportPipeline.run."""

    @pytest.mark.asyncio
    async def test_missing_configuration(self, make_settings):
        with pytest.raises(ConfigurationError) as exc_info:
            await SprintReportPipeline(make_settings()).run("Sprint 14")

        assert "JIRA_BASE_URL" in exc_info.value.missing

    @pytest.mark.asyncio
    async def test_full_run(self, full_settings, tracker, generator, publisher):
        pipeline = SprintReportPipeline(full_settings, tracker=tracker, generator=generator, publisher=publisher)

        result = await pipeline.run("Sprint 14")

        assert result.data_validation.is_valid
        assert result.report_validation.is_valid
        assert result.goal_match.match_level.value == "strong"
        assert result.partner_readiness.is_partner_ready
        assert result.published
        assert result.page == REAL_PAGE

    @pytest.mark.asyncio
    async def test_dry_run_skips_publish(self, full_settings, tracker, generator, publisher):
        pipeline = SprintReportPipeline(full_settings, tracker=tracker, generator=generator, publisher=publisher)

        result = await pipeline.run("Sprint 14", dry_run=True)

        assert result.report is not None
        assert not result.published
        publisher.create_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_data_stops_before_generation(self, full_settings, tracker, generator, publisher, mock_data):
        sprint = dict(mock_data.generate_sprint("Sprint 14"), name="")
        tracker.get_sprint_data.return_value = TrackerSprintData(sprint=sprint, raw_issues=mock_data.generate_raw_issues())
        pipeline = SprintReportPipeline(full_settings, tracker=tracker, generator=generator, publisher=publisher)

        result = await pipeline.run("1001")

        assert not result.data_validation.is_valid
        assert result.report is None
        publisher.create_page.assert_not_awaited()
        # Only the goal match assessment reached the generator
        assert generator.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_section_stops_before_publish(self, full_settings, tracker, generator, publisher, generator_reply):
        def reply(prompt):
            if prompt.section == "overview":
                return "not json"
            return generator_reply(prompt)

        generator.generate.side_effect = reply
        pipeline = SprintReportPipeline(full_settings, tracker=tracker, generator=generator, publisher=publisher)

        result = await pipeline.run("Sprint 14")

        assert not result.report_validation.is_valid
        assert not result.published

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, full_settings, tracker, generator, publisher):
        tracker.get_sprint_data.side_effect = TransportError("tracker", "HTTP 401", status_code=401)
        pipeline = SprintReportPipeline(full_settings, tracker=tracker, generator=generator, publisher=publisher)

        with pytest.raises(TransportError):
            await pipeline.run("Sprint 14")

    @pytest.mark.asyncio
    async def test_mock_mode(self, make_settings):
        result = await SprintReportPipeline(make_settings(mock_mode=True)).run("Sprint 14")

        assert result.report_validation.is_valid
        assert result.page.url == MOCK_PAGE_URL
        assert result.goal_match is None


# =============================================================================
# Shared Step Tests
# =============================================================================


class TestBuildSprintData:
    """Tests for build_sprint_data."""

    def test_all_records_rejected(self, make_settings, make_raw_issue, mock_data):
        tracker_data = TrackerSprintData(
            sprint=mock_data.generate_sprint("Sprint 14"),
            raw_issues=[make_raw_issue("PROJ-1", category="blocked")],
        )

        with pytest.raises(IssueNormalizationError):
            build_sprint_data(tracker_data, make_settings())

    def test_empty_sprint(self, make_settings, mock_data):
        data = build_sprint_data(TrackerSprintData(sprint=mock_data.generate_sprint("Sprint 14")), make_settings())

        assert data.issues == []
        assert data.stats.progress_percent == 0

    def test_partial_rejection(self, make_settings, make_raw_issue, mock_data):
        raw = mock_data.generate_raw_issues() + [make_raw_issue("PROJ-999", category="blocked")]
        tracker_data = TrackerSprintData(sprint=mock_data.generate_sprint("Sprint 14"), raw_issues=raw)

        data = build_sprint_data(tracker_data, make_settings())

        assert len(data.issues) == 6
        assert len(data.rejected) == 1
        assert [i.key for i in data.demo_issues] == ["PROJ-101", "PROJ-106", "PROJ-103"]
        assert data.stats.progress_percent == 62
        assert data.sprint.start_date == "January 6, 2025"


class TestHostFunctions:
    """Tests for the module-level entry points."""

    @pytest.mark.asyncio
    async def test_collect(self, monkeypatch, make_settings, jira_settings, tracker):
        tracker.close = AsyncMock()
        monkeypatch.setattr(
            "sprintreport.pipeline.orchestrator.JiraTrackerClient", lambda settings: tracker
        )

        data = await collect("Sprint 14", make_settings(**jira_settings))

        assert data.sprint.number == "14"
        assert len(data.demo_issues) == 3
        tracker.close.assert_awaited_once()

    def test_select_demos(self, scenario_issues):
        assert [i.key for i in select_demos(scenario_issues)] == ["PROJ-101", "PROJ-106", "PROJ-103"]

    @pytest.mark.asyncio
    async def test_generate_report_with_generator(self, make_context, generator):
        report = await generate_report(make_context(), generator=generator)

        assert report.is_complete
        assert report.sprint.progress_percent == 62
