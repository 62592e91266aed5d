import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import aiohttp

from repo_tracker.application.fetcher_service import MetadataFetcher
from repo_tracker.application.report_generator import render_html, render_markdown
from repo_tracker.domain.exceptions import DatabaseException
from repo_tracker.domain.models import FetchResult, RepositoryConfig, RepositoryRecord
from repo_tracker.domain.ordering import sort_records
from repo_tracker.infrastructure.database import SqlRecordStore
from repo_tracker.infrastructure.file_writer import write_text

logger = logging.getLogger(__name__)

# Seconds between requests to stay clear of secondary rate limits
INTER_REQUEST_DELAY = 0.5
# Limit concurrent connections to GitHub
CONNECTOR_LIMIT = 10


class TrackerService:
    """
    Runs one collection pass: fetches every configured repository, then
    renders the HTML and Markdown reports from the record store.

    Reports are only rendered after every repository has been processed,
    and one repository failing never stops the others.
    """

    def __init__(
            self,
            fetcher: MetadataFetcher,
            record_store: SqlRecordStore,
            repositories: Sequence[RepositoryConfig],
            html_output_path: Path,
            markdown_output_path: Path,
            max_concurrent_fetches: int = 1,
            inter_request_delay: float = INTER_REQUEST_DELAY,
    ):
        self.fetcher = fetcher
        self.record_store = record_store
        self.repositories = list(repositories)
        self.html_output_path = html_output_path
        self.markdown_output_path = markdown_output_path
        self.max_concurrent_fetches = max_concurrent_fetches
        self.inter_request_delay = inter_request_delay

    async def _store_failure(self, result: FetchResult) -> None:
        try:
            await self.record_store.upsert(result.record)
        except DatabaseException as e:
            logger.error(f"Could not store failure record for {result.record.identifier}: {e}")

    async def _fetch_one(
        self, session: aiohttp.ClientSession, semaphore: asyncio.Semaphore, config: RepositoryConfig, now: datetime,
    ) -> FetchResult:
        async with semaphore:
            result = await self.fetcher.fetch(session, config, now=now)
            if not result.ok:
                await self._store_failure(result)
            if not result.from_cache and self.inter_request_delay > 0:
                await asyncio.sleep(self.inter_request_delay)
            return result

    async def collect(self, now: Optional[datetime] = None) -> List[FetchResult]:
        """
        Fetches every configured repository, at most ``max_concurrent_fetches`` at a time.
        Results come back in catalogue order.
        """
        now = now or datetime.now(timezone.utc)
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        logger.info(f"Collecting metadata for {len(self.repositories)} repositories.")

        async with aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
        ) as session:
            tasks = [self._fetch_one(session, semaphore, config, now) for config in self.repositories]
            results = await asyncio.gather(*tasks, return_exceptions=True)

        collected: List[FetchResult] = []
        for config, result in zip(self.repositories, results):
            if isinstance(result, Exception):
                logger.error(f"Unexpected error while processing {config.identifier}: {result!r}")
                result = FetchResult(
                    record=RepositoryRecord.sentinel(config, str(result) or type(result).__name__, fetched_at=now),
                    error=repr(result),
                )
                await self._store_failure(result)
            collected.append(result)

        failures = sum(1 for result in collected if not result.ok)
        cached = sum(1 for result in collected if result.from_cache)
        logger.info(
            f"Collection completed. {len(collected)} repositories, "
            f"{cached} from the store, {failures} failed."
        )
        return collected

    async def _report_records(self, results: Sequence[FetchResult]) -> List[RepositoryRecord]:
        try:
            return await self.record_store.list_all()
        except DatabaseException as e:
            logger.error(f"Could not read the record store: {e}. Rendering this run's results instead.")
            return sort_records(result.record for result in results)

    async def run(self, now: Optional[datetime] = None) -> List[FetchResult]:
        """
        Collects all repositories, then writes both reports.
        Returns the per-repository results of this run.
        """
        now = now or datetime.now(timezone.utc)
        results = await self.collect(now=now)

        records = await self._report_records(results)
        write_text(self.html_output_path, render_html(records, now))
        write_text(self.markdown_output_path, render_markdown(records, now))
        return results
