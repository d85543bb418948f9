"""
config.py — pydantic-settings Settings class.

All environment variables for the housedata pipeline are declared here.
Every module imports `settings` from this module.

Usage:
    from housedata_shared.config import settings
    print(settings.supabase_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DerivationMode = Literal["ordinal", "calendar"]


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Supabase
    # -------------------------------------------------------------------------
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Data sources
    # -------------------------------------------------------------------------
    zillow_base_url: str = Field(
        default="https://files.zillowstatic.com/research/public_csvs"
    )
    http_timeout: float = Field(default=180.0)

    # -------------------------------------------------------------------------
    # Local artifacts
    # -------------------------------------------------------------------------
    data_dir: Path = Field(default=Path("./data"))
    reports_dir: Path | None = Field(default=None)

    # -------------------------------------------------------------------------
    # ETL behaviour
    # -------------------------------------------------------------------------
    batch_size: int = Field(default=1000, ge=1)
    derivation_mode: DerivationMode = Field(default="ordinal")

    # Phase timeouts in seconds
    retrieve_timeout_s: float = Field(default=600.0, gt=0)
    load_timeout_s: float = Field(default=1800.0, gt=0)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def raw_dir(self) -> Path:
        return self.data_dir / "raw"

    @property
    def report_dir(self) -> Path:
        return self.reports_dir or self.data_dir / "reports"

    @field_validator("supabase_url", "zillow_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton: import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
