"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sprintreport.exceptions import ConfigurationError

# Known story point custom fields, tried in order
DEFAULT_STORY_POINT_FIELDS = [
    "customfield_10016",
    "customfield_10004",
    "customfield_10002",
    "customfield_10026",
    "story_points",
]

SUPPORTED_LANGUAGES = ("en", "ru")


class Settings(BaseSettings):
    """Settings loaded from environment variables and the .env file.

    Constructed once by the host application and passed explicitly into the
    tracker, generator and publisher adapters and the pipelines.
    """

    # Tracker (Jira)
    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    jira_board_id: Optional[str] = None
    jira_artifact_field_id: str = "customfield_10001"
    jira_story_point_fields: Optional[str] = None  # comma-separated override

    # Text generation (OpenAI-compatible)
    openai_api_key: Optional[str] = None
    openai_api_base: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 2000

    # Document host (Notion)
    notion_api_key: Optional[str] = None
    notion_parent_page_id: Optional[str] = None
    notion_api_base: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"

    # Behaviour
    mock_mode: bool = False
    report_language: str = "en"
    max_demos: int = 3
    http_timeout: float = 30.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("report_language", mode="before")
    @classmethod
    def normalize_language(cls, v):
        if v is None:
            return "en"
        v = str(v).strip().lower()
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"report_language must be one of {SUPPORTED_LANGUAGES}")
        return v

    @field_validator("jira_base_url", "openai_api_base", "notion_api_base", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/") if v else v

    def get_story_point_fields(self) -> List[str]:
        """Get the ordered story point field ids."""
        fields = [f.strip() for f in (self.jira_story_point_fields or "").split(",") if f.strip()]
        return fields or list(DEFAULT_STORY_POINT_FIELDS)

    def is_jira_configured(self) -> bool:
        return all(_filled(v) for v in (self.jira_base_url, self.jira_email, self.jira_api_token))

    def is_openai_configured(self) -> bool:
        return _filled(self.openai_api_key)

    def is_notion_configured(self) -> bool:
        return _filled(self.notion_api_key) and _filled(self.notion_parent_page_id)

    def missing_required(self) -> List[str]:
        """Env variable names required outside mock mode that are not set."""
        required = [
            ("JIRA_BASE_URL", self.jira_base_url),
            ("JIRA_EMAIL", self.jira_email),
            ("JIRA_API_TOKEN", self.jira_api_token),
            ("OPENAI_API_KEY", self.openai_api_key),
            ("NOTION_API_KEY", self.notion_api_key),
            ("NOTION_PARENT_PAGE_ID", self.notion_parent_page_id),
        ]
        return [name for name, value in required if not _filled(value)]

    def validate_required(self) -> None:
        """Pre-flight check for the strict pipeline.

        Raises:
            ConfigurationError: if any credential is missing and mock mode is off
        """
        if self.mock_mode:
            return
        missing = self.missing_required()
        if missing:
            lines = "\n".join(f"  - {name}" for name in missing)
            raise ConfigurationError(
                f"Required environment variables are not set:\n{lines}\n"
                "Set them in .env or enable MOCK_MODE=true.",
                missing=missing,
            )


def _filled(value: Optional[str]) -> bool:
    return bool(value and value.strip())


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
