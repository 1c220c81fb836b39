"""
Ingestion of raw tracker records into canonical Issue entities.
"""

from sprintreport.ingest.normalize import (
    normalize_tracker_issue,
    normalize_issues,
    extract_issue_keys,
)

__all__ = ["normalize_tracker_issue", "normalize_issues", "extract_issue_keys"]
