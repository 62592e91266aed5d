from datetime import datetime, timezone
from typing import Any, Dict, Optional

from repo_tracker.domain.age import parse_timestamp
from repo_tracker.domain.models import RepositoryConfig, RepositoryRecord


def _count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON responses into RepositoryRecord instances.
    """

    @staticmethod
    def license_id(raw_repo: Dict[str, Any]) -> Optional[str]:
        license_data = raw_repo.get('license')
        if not isinstance(license_data, dict):
            return None
        return _text(license_data.get('spdx_id')) or _text(license_data.get('name'))

    @staticmethod
    def commit_date(raw_commit: Optional[Dict[str, Any]]) -> Optional[datetime]:
        """
        Extracts the committer date of a commit object, falling back to the author date.
        Returns None for repositories without commits or malformed payloads.
        """
        if not isinstance(raw_commit, dict):
            return None
        commit = raw_commit.get('commit')
        if not isinstance(commit, dict):
            return None
        for role in ('committer', 'author'):
            person = commit.get(role)
            if isinstance(person, dict):
                moment = parse_timestamp(person.get('date'))
                if moment is not None:
                    return moment
        return None

    @staticmethod
    def to_domain(
        config: RepositoryConfig,
        raw_repo: Dict[str, Any],
        raw_commit: Optional[Dict[str, Any]],
        fetched_at: Optional[datetime] = None,
    ) -> RepositoryRecord:
        """
        Merges the repository and latest-commit payloads into a RepositoryRecord.

        Args:
            config (RepositoryConfig): The catalogue entry; supplies the key and dependency tag.
            raw_repo (Dict[str, Any]): JSON body of ``GET /repos/{owner}/{repo}``.
            raw_commit (Optional[Dict[str, Any]]): First element of ``GET /repos/{owner}/{repo}/commits``,
                or None when the repository has no commits.
            fetched_at (Optional[datetime]): When the payloads were fetched; defaults to now.

        Returns:
            RepositoryRecord: The record to upsert into the store.
        """
        if not isinstance(raw_repo, dict):
            raise ValueError("Repository payload must be a JSON object.")

        return RepositoryRecord(
            identifier=config.identifier,
            display_name=config.name or _text(raw_repo.get('name')) or config.identifier.split('/')[-1],
            full_name=_text(raw_repo.get('full_name')) or config.identifier,
            homepage_url=_text(raw_repo.get('homepage')),
            html_url=_text(raw_repo.get('html_url')),
            description=_text(raw_repo.get('description')),
            created_at=parse_timestamp(raw_repo.get('created_at')),
            updated_at=parse_timestamp(raw_repo.get('updated_at')),
            issues_count=_count(raw_repo.get('open_issues_count')),
            stargazers_count=_count(raw_repo.get('stargazers_count')),
            watchers_count=_count(raw_repo.get('watchers_count')),
            forks_count=_count(raw_repo.get('forks_count')),
            language=_text(raw_repo.get('language')),
            license=GitHubTranslator.license_id(raw_repo),
            last_commit_date=GitHubTranslator.commit_date(raw_commit),
            dependencies=config.dependencies,
            fetch_error=None,
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )
