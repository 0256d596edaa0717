from typing import Final

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_PAGE_SIZE, DEFAULT_PORT


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    # Server configuration
    debug: bool = Field(default=True, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Server port")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./allbackups.db", description="Database connection URL"
    )

    # Application configuration
    app_name: str = Field(default="All backups", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")
    page_size: int = Field(
        default=DEFAULT_PAGE_SIZE, ge=1, le=1000, description="Rows per report page"
    )
    session_cookie_name: str = Field(
        default="MoodleSession",
        description="Cookie carrying the host platform session id",
    )

    # Report configuration
    site_report_enabled: bool = Field(
        default=True, description="Enable the site-wide backup report"
    )
    category_backup_management: bool = Field(
        default=False,
        description="Enable backup management on course category pages",
    )
    backup_auto_destination: str | None = Field(
        default=None,
        description="Directory automated backups are written to",
    )
    backup_tool_only: bool = Field(
        default=False,
        description="Category report lists only files created by the backup tool",
    )
    include_activities: bool = Field(
        default=False,
        description="With backup_tool_only, also list activity backups",
    )

    @field_validator("backup_auto_destination")
    @classmethod
    def strip_destination(cls, v: str | None) -> str | None:
        """Treat a blank destination as unset and drop trailing separators."""
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/\\") or "/"

    # Logging configuration
    log_to_file: bool = Field(
        default=False, description="Force logging to file even in debug mode"
    )

    # Pydantic Settings configuration
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug

    @computed_field  # type: ignore[prop-decorator]
    @property
    def autobackup_configured(self) -> bool:
        """Whether an automated backup destination is set."""
        return self.backup_auto_destination is not None


# Global settings instance
settings: Final = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the active settings."""
    return settings
