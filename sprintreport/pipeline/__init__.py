"""
Sprint report pipelines: the resilient per-stage fallback flow and the
strict validated flow, plus canned mock payloads.
"""

from sprintreport.pipeline.mock_data import MockDataGenerator
from sprintreport.pipeline.orchestrator import (
    FallbackProvider,
    PipelineRun,
    PipelineStage,
    Provenance,
    ReportResult,
    ResilientPipeline,
    SprintReportPipeline,
    StageMachine,
    StageOutcome,
    StageState,
    collect,
    generate_report,
    run_resilient_pipeline,
    select_demos,
)
from sprintreport.publish.blocks import build_document_blocks

__all__ = [
    "MockDataGenerator",
    "FallbackProvider",
    "PipelineRun",
    "PipelineStage",
    "Provenance",
    "ReportResult",
    "ResilientPipeline",
    "SprintReportPipeline",
    "StageMachine",
    "StageOutcome",
    "StageState",
    "collect",
    "generate_report",
    "run_resilient_pipeline",
    "select_demos",
    "build_document_blocks",
]
