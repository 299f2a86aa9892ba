from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-level configuration for the billing exporters.
    Uses Pydantic-Settings for environment variable parsing from .env
    (variables are prefixed with FOCUS_EXPORT_, e.g. FOCUS_EXPORT_CONFIG_DIR).

    Pricing, partitions and PI metadata are not settings: they live in the
    JSON files under CONFIG_DIR and are loaded per run.
    """
    APP_NAME: str = "focus-export"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    TESTING: bool = False
    LOG_FORMAT: Optional[str] = None  # json, console (defaults from DEBUG)

    # Billing config + artifact locations (overridable per run from the CLI)
    CONFIG_DIR: str = "./config"
    OUTPUT_DIR: str = "./output"

    # External accounting commands
    SACCT_BINARY: str = "sacct"
    ISI_BINARY: str = "isi"
    COMMAND_TIMEOUT_SECONDS: int = 300

    model_config = SettingsConfigDict(
        env_prefix="FOCUS_EXPORT_",
        env_file=".env",
        env_ignore_empty=True,
    )

    @model_validator(mode='after')
    def validate_runtime_config(self) -> 'Settings':
        if self.COMMAND_TIMEOUT_SECONDS <= 0:
            raise ValueError("COMMAND_TIMEOUT_SECONDS must be a positive number of seconds.")

        if self.LOG_FORMAT is None:
            self.LOG_FORMAT = "console" if self.DEBUG else "json"
        elif self.LOG_FORMAT not in ("json", "console"):
            raise ValueError(f"LOG_FORMAT must be 'json' or 'console'. Current: {self.LOG_FORMAT}")

        return self


@lru_cache
def get_settings():
    """Returns a singleton instance of the application settings."""
    return Settings()
