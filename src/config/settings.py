"""
Application settings with Pydantic v2 validation.

Loads configuration from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Extraction backend configuration."""

    model_config = SettingsConfigDict(env_prefix="LLM_")

    provider: Literal["mock", "ollama", "openai", "gemini"] = "mock"
    timeout: int = 300  # seconds, per extraction call
    max_tokens: int = 2000
    temperature: float = 0.1

    # Ollama
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llava:13b"

    # OpenAI
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    openai_api_key: str = ""

    # Gemini
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-pro"
    gemini_api_key: str = ""

    # Mock generator
    mock_delay: float = 0.5  # seconds
    mock_seed: int | None = None

    # Circuit breaker settings
    failure_threshold: int = 3
    cooldown_seconds: int = 60

    # Retry settings
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_multiplier: float = 2.0


class StorageSettings(BaseSettings):
    """Storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_dir: Path = Path("data")
    db_name: str = "billing.db"
    upload_dir_name: str = "uploads"

    # SQLite settings
    pool_size: int = 5
    busy_timeout: int = 30000  # ms

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def upload_dir(self) -> Path:
        return self.data_dir / self.upload_dir_name


class ProcessingSettings(BaseSettings):
    """Batch processing limits."""

    model_config = SettingsConfigDict(env_prefix="PROCESSING_")

    max_files: int = 10
    max_file_size: int = 10 * 1024 * 1024  # 10 MB
    allowed_extensions: list[str] = [".pdf", ".jpg", ".jpeg", ".png", ".tiff", ".bmp"]
    max_concurrency: int = 5

    # Defaults for the upload endpoint
    enable_validation: bool = True
    enable_duplicate_detection: bool = True


class APISettings(BaseSettings):
    """API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = ["*"]
    default_page_size: int = 20
    max_page_size: int = 100


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Billing Extractor"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Sub-settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    api: APISettings = Field(default_factory=APISettings)

    @field_validator("storage", mode="before")
    @classmethod
    def ensure_data_dir(cls, v: Any) -> StorageSettings:
        if isinstance(v, dict):
            settings = StorageSettings(**v)
        else:
            settings = v or StorageSettings()
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        return settings


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
