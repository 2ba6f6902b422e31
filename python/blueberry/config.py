"""Application settings loaded from environment variables.

Environment Configuration:
    BLUEBERRY_ENV: Deployment environment (local | test | prod)
    DATABASE_URL: SQLAlchemy connection string (SQLite by default,
        postgresql+psycopg://... in production)

Storage Configuration:
    UPLOADS_DIR: Directory where uploaded PDFs are written
    MAX_PDF_BYTES: Upload size ceiling

LLM Configuration:
    GEMINI_API_KEY: Provider key. Chat is unavailable when unset.
    GEMINI_MODEL: Model name passed to the provider
    LLM_MAX_OUTPUT_TOKENS: Hard cap on output tokens for every chat turn
    LLM_TIMEOUT_S: Provider request timeout

Note: The deployment is single-tenant. There are no auth settings.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

# Upper bound accepted for LLM_MAX_OUTPUT_TOKENS
MAX_OUTPUT_TOKENS_CEILING = 8192


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - LLM_MAX_OUTPUT_TOKENS must be in [1, 8192]
    - MAX_PDF_BYTES must be positive
    """

    blueberry_env: Environment = Field(default=Environment.LOCAL, alias="BLUEBERRY_ENV")
    database_url: str = Field(default="sqlite:///./blueberry.db", alias="DATABASE_URL")

    # Storage settings
    uploads_dir: str = Field(default="uploads", alias="UPLOADS_DIR")
    max_pdf_bytes: int = Field(default=100 * 1024 * 1024, alias="MAX_PDF_BYTES")  # 100 MB

    # LLM provider settings
    llm_provider: str = Field(default="gemini", alias="LLM_PROVIDER")
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-3-pro-preview", alias="GEMINI_MODEL")
    llm_max_output_tokens: int = Field(default=2000, alias="LLM_MAX_OUTPUT_TOKENS")
    llm_timeout_s: int = Field(default=45, alias="LLM_TIMEOUT_S")

    # Logging
    log_json: bool = Field(default=True, alias="LOG_JSON")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject limits that would make the service unsafe to run."""
        if not 1 <= self.llm_max_output_tokens <= MAX_OUTPUT_TOKENS_CEILING:
            raise ValueError(
                f"LLM_MAX_OUTPUT_TOKENS must be between 1 and {MAX_OUTPUT_TOKENS_CEILING}, "
                f"got {self.llm_max_output_tokens}"
            )
        if self.max_pdf_bytes <= 0:
            raise ValueError("MAX_PDF_BYTES must be positive")
        return self

    @property
    def llm_configured(self) -> bool:
        """Whether an LLM provider key is available."""
        return bool(self.llm_api_key)

    @property
    def llm_api_key(self) -> str | None:
        """API key for the configured provider."""
        if self.llm_provider == "gemini":
            return self.gemini_api_key
        return None

    @property
    def llm_model(self) -> str:
        """Model name for the configured provider."""
        return self.gemini_model


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
