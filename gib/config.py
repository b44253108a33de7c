"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Prefer the project root .env; fall back to one in the CWD
_THIS_DIR = Path(__file__).resolve().parent          # gib/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # xAI
    xai_api_key: str | None = None
    xai_base_url: str = "https://api.x.ai/v1"

    # Default output directory for generated images (OUTPUT_DIR); CWD when unset
    output_dir_override: str | None = Field(
        default=None, validation_alias=AliasChoices("OUTPUT_DIR", "GIB_OUTPUT_DIR")
    )

    # Per-request HTTP timeout for the image API, in seconds
    gib_request_timeout_seconds: float = 120.0

    # Batch defaults, used when neither the config file nor the CLI sets them
    gib_default_max_concurrent: int = Field(default=2, ge=1, le=10)
    gib_default_timeout_ms: int = Field(default=600_000, ge=1000, le=3_600_000)

    # Grace period after a batch timeout before unfinished jobs are swept as cancelled
    gib_grace_period_seconds: float = Field(default=2.0, ge=0.0)

    # Cancel jobs still running after the sweep instead of letting them finish in the background
    gib_cancel_on_timeout: bool = False

    # Logging
    gib_log_level: str = "WARNING"
    debug: bool = False

    @property
    def output_dir(self) -> Path:
        """Default output directory as an absolute Path."""
        if self.output_dir_override:
            return Path(self.output_dir_override).expanduser().resolve()
        return Path.cwd()

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.debug else self.gib_log_level.upper()


def get_settings() -> Settings:
    return Settings()
