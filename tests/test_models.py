import unittest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from repo_tracker.domain.models import RepositoryConfig, RepositoryRecord, normalize_identifier
from repo_tracker.domain.ordering import SortOrder, sort_records


NOW = datetime(2026, 10, 19, tzinfo=timezone.utc)


class TestNormalizeIdentifier(unittest.TestCase):
    def test_accepts_owner_repo_and_urls(self) -> None:
        for value in (
            "grid-js/gridjs",
            "https://github.com/grid-js/gridjs",
            "https://github.com/grid-js/gridjs.git",
            "github.com/grid-js/gridjs/",
        ):
            self.assertEqual(normalize_identifier(value), "grid-js/gridjs")

    def test_rejects_other_hosts_and_shapes(self) -> None:
        for value in ("https://gitlab.com/a/b", "just-a-name", "a/b/c"):
            with self.assertRaises(ValueError):
                normalize_identifier(value)

    def test_config_normalizes_identifier(self) -> None:
        config = RepositoryConfig(identifier="https://github.com/tanstack/table", dependencies="React")

        self.assertEqual(config.identifier, "tanstack/table")

    def test_config_rejects_bad_identifier(self) -> None:
        with self.assertRaises(ValidationError):
            RepositoryConfig(identifier="nope")


class TestRepositoryRecord(unittest.TestCase):
    def test_sentinel_has_no_fetched_values(self) -> None:
        config = RepositoryConfig(identifier="tanstack/table", dependencies="React", name="TanStack Table")

        record = RepositoryRecord.sentinel(config, "connection reset", fetched_at=NOW)

        self.assertTrue(record.is_error)
        self.assertEqual(record.fetch_error, "connection reset")
        self.assertEqual(record.display_name, "TanStack Table")
        self.assertEqual(record.dependencies, "React")
        self.assertIsNone(record.stargazers_count)
        self.assertIsNone(record.license)

    def test_records_are_frozen(self) -> None:
        record = RepositoryRecord(identifier="a/b", fetched_at=NOW)

        with self.assertRaises(ValidationError):
            record.stargazers_count = 3

    def test_negative_counts_are_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            RepositoryRecord(identifier="a/b", stargazers_count=-1)


class TestSortRecords(unittest.TestCase):
    def test_recent_commit_order_puts_missing_dates_last(self) -> None:
        records = [
            RepositoryRecord(identifier="a/old", last_commit_date=NOW - timedelta(days=400)),
            RepositoryRecord(identifier="b/never"),
            RepositoryRecord(identifier="c/new", last_commit_date=NOW - timedelta(days=1)),
        ]

        ordered = [r.identifier for r in sort_records(records, SortOrder.RECENT_COMMIT)]

        self.assertEqual(ordered, ["c/new", "a/old", "b/never"])

    def test_stars_order_is_stable_across_input_permutations(self) -> None:
        records = [
            RepositoryRecord(identifier="x/one", stargazers_count=7, issues_count=2),
            RepositoryRecord(identifier="y/two", stargazers_count=7, issues_count=2),
            RepositoryRecord(identifier="z/three", stargazers_count=9, issues_count=5),
        ]

        forward = sort_records(records)
        backward = sort_records(list(reversed(records)))

        self.assertEqual(forward, backward)
        self.assertEqual([r.identifier for r in forward], ["z/three", "x/one", "y/two"])
