import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import aiohttp

from repo_tracker.domain.exceptions import DatabaseException, GitHubRequestException
from repo_tracker.domain.models import FetchResult, RepositoryConfig, RepositoryRecord
from repo_tracker.infrastructure.acl import GitHubTranslator
from repo_tracker.infrastructure.database import SqlRecordStore
from repo_tracker.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)


class MetadataFetcher:
    """
    Produces the record for one repository, from the store when it is fresh
    enough and from GitHub otherwise.

    ``cache_ttl`` of None means a stored record never goes stale. Records of
    failed fetches are never served from the store.
    """

    def __init__(
            self,
            github_client: GitHubRestClient,
            record_store: SqlRecordStore,
            cache_ttl: Optional[timedelta] = timedelta(hours=24),
    ):
        self.github_client = github_client
        self.record_store = record_store
        self.cache_ttl = cache_ttl

    def _is_fresh(self, record: RepositoryRecord, now: datetime) -> bool:
        if record.is_error:
            return False
        if self.cache_ttl is None:
            return True
        return now - record.fetched_at < self.cache_ttl

    async def _cached(self, identifier: str, now: datetime) -> Optional[RepositoryRecord]:
        try:
            record = await self.record_store.get(identifier)
        except DatabaseException as e:
            logger.error(f"Cache lookup for {identifier} failed: {e}. Fetching from GitHub.")
            return None
        if record is not None and self._is_fresh(record, now):
            return record
        return None

    async def fetch(
            self,
            session: aiohttp.ClientSession,
            config: RepositoryConfig,
            now: Optional[datetime] = None,
    ) -> FetchResult:
        """
        Returns a FetchResult for ``config``. Never raises for network or data errors:
        those come back as a failed result carrying a sentinel record.
        """
        now = now or datetime.now(timezone.utc)
        identifier = config.identifier

        async with self.record_store.lock_for(identifier):
            cached = await self._cached(identifier, now)
            if cached is not None:
                logger.info(f"Using stored data for {identifier}.")
                return FetchResult(record=cached, from_cache=True)

            try:
                raw_repo = await self.github_client.get_repository(session, identifier)
                raw_commit = await self.github_client.get_latest_commit(session, identifier)
                record = GitHubTranslator.to_domain(config, raw_repo, raw_commit, fetched_at=now)
            except (GitHubRequestException, ValueError) as e:
                logger.error(f"Error fetching repository data for {identifier}: {e}")
                return FetchResult(
                    record=RepositoryRecord.sentinel(config, str(e), fetched_at=now),
                    error=str(e),
                )

            try:
                await self.record_store.upsert(record)
            except DatabaseException as e:
                logger.error(f"Fetched {identifier} but could not store it: {e}")

            logger.info(f"Fetched {identifier}: {record.stargazers_count} stars, {record.issues_count} open issues.")
            return FetchResult(record=record)
