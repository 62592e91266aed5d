import asyncio
import unittest
from datetime import datetime, timedelta, timezone

from repo_tracker.application.fetcher_service import MetadataFetcher
from repo_tracker.domain.exceptions import DatabaseException, RepositoryNotFoundException
from repo_tracker.domain.models import RepositoryConfig, RepositoryRecord


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

RAW_REPO = {
    "name": "table",
    "full_name": "tanstack/table",
    "html_url": "https://github.com/tanstack/table",
    "created_at": "2016-10-19T12:00:00Z",
    "open_issues_count": 4,
    "stargazers_count": 25000,
    "license": {"spdx_id": "MIT"},
}
RAW_COMMIT = {"commit": {"committer": {"date": "2026-10-09T12:00:00Z"}}}


class _FakeGitHubClient:
    def __init__(self, error=None) -> None:
        self.error = error
        self.calls = []

    async def get_repository(self, session, full_name):
        self.calls.append(("repo", full_name))
        if self.error:
            raise self.error
        return RAW_REPO

    async def get_latest_commit(self, session, full_name):
        self.calls.append(("commit", full_name))
        return RAW_COMMIT


class _FakeStore:
    def __init__(self, records=None, fail_reads=False, fail_writes=False) -> None:
        self.records = dict(records or {})
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.upserts = 0
        self._locks = {}

    def lock_for(self, identifier):
        return self._locks.setdefault(identifier, asyncio.Lock())

    async def get(self, identifier):
        if self.fail_reads:
            raise DatabaseException("disk I/O error")
        return self.records.get(identifier)

    async def upsert(self, record):
        if self.fail_writes:
            raise DatabaseException("database is locked")
        self.upserts += 1
        self.records[record.identifier] = record


CONFIG = RepositoryConfig(identifier="tanstack/table", dependencies="React", name="TanStack Table")


class TestMetadataFetcher(unittest.IsolatedAsyncioTestCase):
    async def test_miss_fetches_both_endpoints_and_stores(self) -> None:
        client = _FakeGitHubClient()
        store = _FakeStore()
        fetcher = MetadataFetcher(client, store)

        result = await fetcher.fetch(None, CONFIG, now=NOW)

        self.assertTrue(result.ok)
        self.assertFalse(result.from_cache)
        self.assertEqual(client.calls, [("repo", "tanstack/table"), ("commit", "tanstack/table")])
        self.assertEqual(store.records["tanstack/table"], result.record)
        self.assertEqual(result.record.stargazers_count, 25000)
        self.assertEqual(result.record.dependencies, "React")

    async def test_fresh_record_is_served_without_network(self) -> None:
        cached = RepositoryRecord(identifier="tanstack/table", stargazers_count=1, fetched_at=NOW - timedelta(hours=1))
        client = _FakeGitHubClient()
        fetcher = MetadataFetcher(client, _FakeStore({"tanstack/table": cached}), cache_ttl=timedelta(hours=24))

        result = await fetcher.fetch(None, CONFIG, now=NOW)

        self.assertTrue(result.from_cache)
        self.assertEqual(result.record, cached)
        self.assertEqual(client.calls, [])

    async def test_stale_record_is_refetched(self) -> None:
        cached = RepositoryRecord(identifier="tanstack/table", stargazers_count=1, fetched_at=NOW - timedelta(days=2))
        client = _FakeGitHubClient()
        fetcher = MetadataFetcher(client, _FakeStore({"tanstack/table": cached}), cache_ttl=timedelta(hours=24))

        result = await fetcher.fetch(None, CONFIG, now=NOW)

        self.assertFalse(result.from_cache)
        self.assertEqual(result.record.stargazers_count, 25000)

    async def test_without_ttl_cache_hits_are_permanent(self) -> None:
        cached = RepositoryRecord(identifier="tanstack/table", fetched_at=NOW - timedelta(days=3650))
        client = _FakeGitHubClient()
        fetcher = MetadataFetcher(client, _FakeStore({"tanstack/table": cached}), cache_ttl=None)

        result = await fetcher.fetch(None, CONFIG, now=NOW)

        self.assertTrue(result.from_cache)
        self.assertEqual(client.calls, [])

    async def test_stored_failure_is_never_a_cache_hit(self) -> None:
        failed = RepositoryRecord(identifier="tanstack/table", fetch_error="timeout", fetched_at=NOW)
        client = _FakeGitHubClient()
        fetcher = MetadataFetcher(client, _FakeStore({"tanstack/table": failed}), cache_ttl=None)

        result = await fetcher.fetch(None, CONFIG, now=NOW)

        self.assertTrue(result.ok)
        self.assertEqual(len(client.calls), 2)

    async def test_network_failure_returns_sentinel_without_raising(self) -> None:
        store = _FakeStore()
        fetcher = MetadataFetcher(_FakeGitHubClient(error=RepositoryNotFoundException("tanstack/table")), store)

        result = await fetcher.fetch(None, CONFIG, now=NOW)

        self.assertFalse(result.ok)
        self.assertIn("not found", result.error)
        self.assertTrue(result.record.is_error)
        self.assertEqual(result.record.identifier, "tanstack/table")
        self.assertEqual(store.upserts, 0)

    async def test_store_errors_do_not_fail_the_fetch(self) -> None:
        fetcher = MetadataFetcher(_FakeGitHubClient(), _FakeStore(fail_reads=True, fail_writes=True))

        result = await fetcher.fetch(None, CONFIG, now=NOW)

        self.assertTrue(result.ok)
        self.assertEqual(result.record.stargazers_count, 25000)
