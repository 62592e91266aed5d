import os
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from repo_tracker.domain.exceptions import ConfigurationException

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///github_data.db"

_NO_TTL = {"", "none", "never", "off"}


class Settings(BaseModel):
    """
    Process-wide configuration, read once at startup and passed to the components that need it.
    """
    model_config = ConfigDict(frozen=True)

    github_token: Optional[str] = Field(None, description="Bearer token for the GitHub REST API")
    database_url: str = DEFAULT_DATABASE_URL
    repositories_file: Path = Path("repositories.json")
    html_output_path: Path = Path("output/index.html")
    markdown_output_path: Path = Path("output/README.md")
    cache_ttl_hours: Optional[float] = Field(24.0, allow_inf_nan=False, description="None keeps stored records forever")
    request_timeout_seconds: float = Field(30.0, gt=0, allow_inf_nan=False)
    max_concurrent_fetches: int = Field(1, ge=1)

    @staticmethod
    def _parse_ttl(raw: str) -> Optional[float]:
        if raw.strip().lower() in _NO_TTL:
            return None
        try:
            hours = float(raw)
        except ValueError:
            raise ConfigurationException(f"CACHE_TTL_HOURS must be a number of hours, got {raw!r}") from None
        return hours

    @field_validator("cache_ttl_hours")
    @classmethod
    def _ttl_fits_timedelta(cls, value: Optional[float]) -> Optional[float]:
        if value is None or value < 0:
            return None
        try:
            timedelta(hours=value)
        except OverflowError:
            raise ValueError(f"CACHE_TTL_HOURS is too large: {value}") from None
        return value

    @property
    def cache_ttl(self) -> Optional[timedelta]:
        return None if self.cache_ttl_hours is None else timedelta(hours=self.cache_ttl_hours)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Builds settings from environment variables; unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        values = {}

        mapping = {
            "GITHUB_TOKEN": "github_token",
            "DATABASE_URL": "database_url",
            "REPOSITORIES_FILE": "repositories_file",
            "HTML_OUTPUT_PATH": "html_output_path",
            "MARKDOWN_OUTPUT_PATH": "markdown_output_path",
            "REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
            "MAX_CONCURRENT_FETCHES": "max_concurrent_fetches",
        }
        for variable, field in mapping.items():
            raw = env.get(variable)
            if raw is not None and raw.strip():
                values[field] = raw.strip()

        if "CACHE_TTL_HOURS" in env:
            values["cache_ttl_hours"] = cls._parse_ttl(env["CACHE_TTL_HOURS"])

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationException(f"Invalid configuration: {e}") from e
