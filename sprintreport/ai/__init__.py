"""
Report text generation: section prompts, the generator client and assembly.
"""

from sprintreport.ai.client import GenerationResult, OpenAIGenerator, TextGenerator
from sprintreport.ai.generation import (
    ReportAssembler,
    assess_goal_issue_match,
    assess_partner_readiness,
    parse_reply,
)
from sprintreport.ai.prompts import BlockGenerationContext, SectionPrompt, build_section_prompt

__all__ = [
    "GenerationResult",
    "OpenAIGenerator",
    "TextGenerator",
    "ReportAssembler",
    "assess_goal_issue_match",
    "assess_partner_readiness",
    "parse_reply",
    "BlockGenerationContext",
    "SectionPrompt",
    "build_section_prompt",
]
