"""
Runtime settings.

Values come from environment variables prefixed with COURSEMATCH_
(e.g. COURSEMATCH_ORACLE_API_KEY) or from a local .env file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COURSEMATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Generative oracle (Gemini generateContent API)
    oracle_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta/models")
    oracle_model: str = Field(default="gemini-1.5-flash")
    oracle_api_key: Optional[str] = Field(default=None)
    oracle_timeout_s: float = Field(default=30.0)
    oracle_temperature: float = Field(default=0.3)
    oracle_max_tokens: int = Field(default=1024)

    # Data
    data_dir: Path = Field(default=PACKAGE_DIR / "data" / "catalog")
    state_dir: Path = Field(default=PACKAGE_DIR / "data" / "state")

    # Recommendations
    recommendation_size: int = Field(default=3)
    # Fill a short fallback set with conflicting courses (marked degraded)
    relax_conflicts: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")

    @property
    def oracle_enabled(self) -> bool:
        return bool(self.oracle_api_key)


settings = Settings()
