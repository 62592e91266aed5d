from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse
from pydantic import BaseModel, Field, ConfigDict, field_validator

GITHUB_HOSTS = {"github.com", "www.github.com"}


def normalize_identifier(value: str) -> str:
    """
    Reduces a repository reference to its canonical ``owner/repo`` form.

    Accepts ``owner/repo``, ``github.com/owner/repo`` and full https URLs,
    with or without a trailing ``.git`` or slash.
    """
    text = value.strip()
    if "://" not in text and text.split("/", 1)[0].lower() in GITHUB_HOSTS:
        text = f"https://{text}"
    if "://" in text:
        parsed = urlparse(text)
        if parsed.netloc.lower() not in GITHUB_HOSTS:
            raise ValueError(f"Not a GitHub repository URL: {value!r}")
        text = parsed.path

    parts = [part for part in text.strip("/").split("/") if part]
    if len(parts) != 2:
        raise ValueError(f"Expected 'owner/repo', got {value!r}")

    owner, repo = parts
    if repo.endswith(".git"):
        repo = repo[:-4]
    if not owner or not repo:
        raise ValueError(f"Expected 'owner/repo', got {value!r}")
    return f"{owner}/{repo}"


class RepositoryConfig(BaseModel):
    """A tracked repository as declared in the catalogue file."""
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Repository URL or owner/repo, normalized to owner/repo")
    dependencies: str = Field("", description="Free-text tag shown in the Dependencies column")
    name: Optional[str] = Field(None, description="Display name overriding the GitHub repository name")

    @field_validator("identifier")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_identifier(value)


class RepositoryRecord(BaseModel):
    """
    Immutable record of the metadata collected for one repository.
    This is the row type of the record store and the input of the reports.
    """
    # Enforces immutability: once created, fields cannot be modified.
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Primary key, owner/repo")
    display_name: Optional[str] = None
    full_name: Optional[str] = None
    homepage_url: Optional[str] = None
    html_url: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    issues_count: Optional[int] = Field(None, ge=0)
    stargazers_count: Optional[int] = Field(None, ge=0)
    watchers_count: Optional[int] = Field(None, ge=0)
    forks_count: Optional[int] = Field(None, ge=0)
    language: Optional[str] = None
    license: Optional[str] = Field(None, description="SPDX id, None when GitHub reports no license")
    last_commit_date: Optional[datetime] = None
    dependencies: str = ""
    fetch_error: Optional[str] = Field(None, description="Set only on sentinel records for failed fetches")
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("created_at", "updated_at", "last_commit_date", "fetched_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored as UTC wall time; SQLite hands datetimes back without tzinfo
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def is_error(self) -> bool:
        return self.fetch_error is not None

    @property
    def repo_path(self) -> str:
        return self.full_name or self.identifier

    @classmethod
    def sentinel(
        cls,
        config: RepositoryConfig,
        reason: str,
        fetched_at: Optional[datetime] = None,
    ) -> "RepositoryRecord":
        """Builds the placeholder stored when fetching ``config`` failed."""
        return cls(
            identifier=config.identifier,
            display_name=config.name or config.identifier.split("/")[-1],
            full_name=config.identifier,
            dependencies=config.dependencies,
            fetch_error=reason or "Unknown error",
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )


class FetchResult(BaseModel):
    """Outcome of fetching one repository: a record plus why it failed, if it did."""
    model_config = ConfigDict(frozen=True)

    record: RepositoryRecord
    error: Optional[str] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None
