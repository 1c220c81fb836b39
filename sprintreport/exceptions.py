"""Error taxonomy for the sprint report pipeline."""

from typing import List, Optional


class SprintReportError(Exception):
    """Base error for the sprint report pipeline."""

    pass


class ConfigurationError(SprintReportError):
    """Required credentials or settings are absent."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class TransportError(SprintReportError):
    """Network, HTTP or auth failure while talking to a collaborator."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{service}: {message}")
        self.detail = message
        self.service = service
        self.status_code = status_code


class SprintNotFoundError(TransportError):
    """The sprint reference matched nothing on the tracker."""

    def __init__(self, sprint_ref: str):
        super().__init__("tracker", f"Sprint not found: {sprint_ref}", status_code=404)
        self.sprint_ref = sprint_ref


class PartialPageError(TransportError):
    """A page was created but appending its remaining blocks failed."""

    def __init__(self, service: str, page_id: str, page_url: str, cause: TransportError, blocks_written: int):
        super().__init__(
            service,
            f"Page {page_url} was created but only {blocks_written} block(s) were written: {cause.detail}",
            status_code=cause.status_code,
        )
        self.page_id = page_id
        self.page_url = page_url
        self.blocks_written = blocks_written


class IssueNormalizationError(SprintReportError):
    """A raw tracker record is missing a required field."""

    def __init__(self, message: str, issue_key: Optional[str] = None):
        super().__init__(message)
        self.issue_key = issue_key


class SchemaViolationError(SprintReportError):
    """A generation reply failed to parse as JSON or to match its section schema."""

    def __init__(self, section: str, message: str, raw_reply: Optional[str] = None):
        super().__init__(f"[{section}] {message}")
        self.section = section
        self.raw_reply = raw_reply


class DataIntegrityWarning(UserWarning):
    """Generated content references issue keys absent from the source set."""

    pass
