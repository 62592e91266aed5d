import asyncio
import logging
import os
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DatabaseError, SQLAlchemyError
from sqlalchemy import Table, Column, String, Integer, Text, DateTime, MetaData, select

from repo_tracker.domain.exceptions import DatabaseException
from repo_tracker.domain.models import RepositoryRecord
from repo_tracker.domain.ordering import SortOrder, sort_records

logger = logging.getLogger(__name__)

# SQLAlchemy core Table definition
metadata = MetaData()
records_table = Table(
    'repository_records', metadata,
    Column('identifier', String, primary_key=True),
    Column('display_name', String),
    Column('full_name', String),
    Column('homepage_url', String),
    Column('html_url', String),
    Column('description', Text),
    Column('created_at', DateTime(timezone=True)),
    Column('updated_at', DateTime(timezone=True)),
    Column('issues_count', Integer),
    Column('stargazers_count', Integer),
    Column('watchers_count', Integer),
    Column('forks_count', Integer),
    Column('language', String),
    Column('license', String),
    Column('last_commit_date', DateTime(timezone=True)),
    Column('dependencies', String, nullable=False, server_default=''),
    Column('fetch_error', Text),
    Column('fetched_at', DateTime(timezone=True), nullable=False),
)

RECORD_COLUMNS = [column.name for column in records_table.columns]
MUTABLE_COLUMNS = [name for name in RECORD_COLUMNS if name != 'identifier']

_INSERT_BY_DIALECT = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


def build_upsert(record: RepositoryRecord, dialect_name: str):
    """
    Builds an INSERT ... ON CONFLICT (identifier) DO UPDATE statement for ``record``.
    Every column except the key is replaced, so no value of an earlier version survives.
    """
    try:
        insert = _INSERT_BY_DIALECT[dialect_name]
    except KeyError:
        raise DatabaseException(f"Upsert is not supported for the '{dialect_name}' dialect.") from None

    stmt = insert(records_table).values(record.model_dump(include=set(RECORD_COLUMNS)))
    return stmt.on_conflict_do_update(
        index_elements=['identifier'],
        set_={name: stmt.excluded[name] for name in MUTABLE_COLUMNS},
    )


class SqlRecordStore:
    """
    Record store backed by a single SQL table.
    Supports point lookup, keyed upsert and full listing in display order.
    """

    def __init__(self, db_url: str):
        self.db_url = db_url
        self.engine: AsyncEngine = create_async_engine(db_url, echo=False)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, identifier: str) -> asyncio.Lock:
        """Lock serializing read-fetch-write sequences for one identifier."""
        return self._locks[identifier]

    def _sqlite_path(self) -> Optional[str]:
        url = make_url(self.db_url)
        if url.get_backend_name() != 'sqlite' or not url.database or url.database == ':memory:':
            return None
        return url.database

    async def _create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def initialize(self) -> None:
        """
        Creates the table if it does not exist yet. Safe to call on every start.

        A SQLite file that cannot be read as a database is moved aside to
        ``<path>.corrupt`` and replaced by an empty store.
        """
        path = self._sqlite_path()
        if path:
            directory = os.path.dirname(os.path.abspath(path))
            os.makedirs(directory, exist_ok=True)

        try:
            await self._create_schema()
            return
        except DatabaseError as e:
            if not path:
                raise DatabaseException(f"Could not initialize record store: {e}") from e
            logger.error(f"Record store at {path} is unreadable ({e.orig}). Starting with an empty store.")

        await self.engine.dispose()
        try:
            os.replace(path, f"{path}.corrupt")
        except OSError as e:
            raise DatabaseException(f"Could not move corrupt record store aside: {e}") from e
        self.engine = create_async_engine(self.db_url, echo=False)
        try:
            await self._create_schema()
        except SQLAlchemyError as e:
            raise DatabaseException(f"Could not initialize record store: {e}") from e

    async def get(self, identifier: str) -> Optional[RepositoryRecord]:
        """
        Returns the stored record for ``identifier``, or None if it was never stored.
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(
                    select(records_table).where(records_table.c.identifier == identifier)
                )
                row = result.mappings().first()
        except SQLAlchemyError as e:
            raise DatabaseException(f"Could not read record '{identifier}': {e}") from e

        if row is None:
            return None
        return RepositoryRecord.model_validate(dict(row))

    async def upsert(self, record: RepositoryRecord) -> None:
        """
        Inserts ``record`` or replaces every field of the stored record with the same identifier.
        The write runs in one transaction, so a failure leaves the previous row untouched.

        Args:
            record (RepositoryRecord): The record to store.
        """
        stmt = build_upsert(record, self.engine.dialect.name)
        try:
            async with self.engine.begin() as conn:
                await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseException(f"Could not store record '{record.identifier}': {e}") from e

    async def list_all(self, order: SortOrder = SortOrder.STARS) -> List[RepositoryRecord]:
        """
        Returns every stored record, ordered by ``order``.
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(select(records_table))
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise DatabaseException(f"Could not list records: {e}") from e

        return sort_records((RepositoryRecord.model_validate(dict(row)) for row in rows), order)

    async def close(self) -> None:
        await self.engine.dispose()
