"""Application settings loaded from the environment."""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Jira connection, cache and server settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Jira connection
    jira_url: str = Field(default="http://localhost:8080", description="Base URL of the Jira instance")
    jira_username: Optional[str] = None
    jira_password: Optional[str] = None
    jira_token: Optional[str] = Field(default=None, description="Personal access token (bearer auth)")
    jira_rest_path: str = "/rest/api/2"
    jira_agile_path: str = "/rest/agile/1.0"
    jira_max_results: int = Field(default=50, ge=1, le=1000)
    jira_epic_link_field: str = "customfield_10014"
    http_timeout: float = Field(default=30.0, gt=0)

    # Cache
    cache_default_ttl: int = Field(default=300, ge=1)
    cache_max_items: int = Field(default=1000, ge=1)
    cache_search_ttl: int = Field(default=60, ge=1)
    cache_listing_ttl: int = Field(default=300, ge=1)
    cache_reference_ttl: int = Field(default=600, ge=1)
    cache_single_flight: bool = True

    # Server
    enabled_tools: str = Field(default="", description="Comma-separated tool names; empty enables all")
    log_level: str = "INFO"

    @property
    def enabled_tool_names(self) -> set[str]:
        """Parsed enabled_tools; an empty set means every tool is enabled."""
        return {name.strip() for name in self.enabled_tools.split(",") if name.strip()}

    def is_tool_enabled(self, tool_name: str) -> bool:
        enabled = self.enabled_tool_names
        return not enabled or tool_name in enabled


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
