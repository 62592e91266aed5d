from enum import Enum
from typing import Iterable, List, Tuple

from repo_tracker.domain.models import RepositoryRecord


class SortOrder(str, Enum):
    STARS = "stars"
    RECENT_COMMIT = "recent_commit"
    IDENTIFIER = "identifier"


def _stars_key(record: RepositoryRecord) -> Tuple:
    # Records without numbers (failed fetches) sort after every real one
    stars = record.stargazers_count
    issues = record.issues_count
    return (
        stars is None,
        -(stars or 0),
        issues is None,
        issues or 0,
        record.identifier,
    )


def _recent_commit_key(record: RepositoryRecord) -> Tuple:
    commit = record.last_commit_date
    return (
        commit is None,
        -commit.timestamp() if commit is not None else 0.0,
        record.identifier,
    )


def _identifier_key(record: RepositoryRecord) -> Tuple:
    return (record.identifier,)


_SORT_KEYS = {
    SortOrder.STARS: _stars_key,
    SortOrder.RECENT_COMMIT: _recent_commit_key,
    SortOrder.IDENTIFIER: _identifier_key,
}


def sort_records(
    records: Iterable[RepositoryRecord],
    order: SortOrder = SortOrder.STARS,
) -> List[RepositoryRecord]:
    """
    Orders records for display.

    Every key ends with the identifier, so the order is total and the same
    set of records always comes back in the same sequence.
    """
    return sorted(records, key=_SORT_KEYS[SortOrder(order)])
