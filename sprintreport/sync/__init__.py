"""
Tracker integration: sprint and issue retrieval from Jira.
"""

from sprintreport.sync.tracker import (
    JiraTrackerClient,
    TrackerSprintData,
    extract_sprint_number,
    to_sprint_info,
)

__all__ = [
    "JiraTrackerClient",
    "TrackerSprintData",
    "extract_sprint_number",
    "to_sprint_info",
]
