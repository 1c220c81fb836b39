"""Pure sprint helpers: demo selection, progress, validation and report dates."""

from sprintreport.services.dates import format_report_date
from sprintreport.services.demo_selector import DemoSelectorOptions, select_demo_issues, score_issue
from sprintreport.services.progress import calculate_progress_percent, calculate_sprint_stats
from sprintreport.services.validation import validate_sprint_data, validate_report

__all__ = [
    "DemoSelectorOptions",
    "select_demo_issues",
    "score_issue",
    "calculate_progress_percent",
    "calculate_sprint_stats",
    "validate_sprint_data",
    "validate_report",
    "format_report_date",
]
