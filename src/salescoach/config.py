"""
SalesCoach Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for SalesCoach logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/salescoach if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/salescoach if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "salescoach" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "salescoach" / "logs")

    # Fallback for development/testing environments without HOME
    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    postgres_db: str = "salescoach"
    postgres_user: str = "salescoach"
    postgres_password: str = "salescoach_dev_password"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    sqlalchemy_url: str = ""  # Full URL override, e.g. sqlite:///./dev.db

    db_pool_size: int = 5
    db_pool_max_overflow: int = 5
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct database URL from components (or the explicit override)."""
        if self.sqlalchemy_url:
            return self.sqlalchemy_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Auth provider (Supabase GoTrue)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_auth_timeout: float = 10.0

    # Voice provider (ElevenLabs Conversational AI)
    elevenlabs_api_key: str = ""
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_timeout: float = 30.0

    # LLM analysis
    llm_provider: str = "openai"  # openai or anthropic
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250514"
    analysis_temperature: float = 0.3  # Low temperature for consistent scoring
    analysis_max_tokens: int = 1500

    # Demo tier quotas (fixed per deployment, not per profile)
    demo_max_sessions: int = 1
    demo_max_minutes: float = 2.0

    # Transcript polling
    transcript_max_retries: int = 3  # Retries after the first attempt
    transcript_retry_delay_seconds: float = 2.0
    transcript_retry_after_seconds: int = 5  # Hint returned to clients

    # Stored provider API keys
    api_key_encryption_secret: str = ""

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True  # Enable console (stdout/stderr) logging
    log_file_enabled: bool = False  # Enable file-based logging
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5  # Keep 5 backup files
    log_to_stdout: bool = True  # Log INFO/DEBUG to stdout
    log_to_stderr: bool = True  # Log WARNING/ERROR/CRITICAL to stderr

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
