"""
Forward-only row streams over ERP database queries.

Rows are fetched one at a time with cursor.fetchone(), so memory use does not
depend on the size of the result set. Works with any DB-API 2.0 driver; the
CLI uses sqlite3.
"""

import logging
import sqlite3
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Returns a new DB-API connection to the ERP database
ConnectionFactory = Callable[[], Any]

SourceRow = dict[str, Any]


class SourceError(Exception):
    """Raised when the ERP source cannot be opened."""

    pass


def iter_cursor_rows(cursor: Any) -> Iterator[SourceRow]:
    """
    Yield rows of an executed cursor as column -> value dictionaries.

    Column order follows the query's select list.
    """
    columns = [description[0] for description in cursor.description or ()]
    while True:
        row = cursor.fetchone()
        if row is None:
            return
        yield dict(zip(columns, row))


class QuerySource:
    """
    Iterable result set of one query against the ERP database.

    Each iteration opens its own connection and closes it when the rows are
    exhausted or the iterator is abandoned.

    Usage:
        source = QuerySource(sqlite_connector("/srv/erp/export.db"),
                             "SELECT * FROM FIRMA ORDER BY ID_FIRMY")
        for row in source:
            ...
    """

    def __init__(
        self, connect: ConnectionFactory, query: str, params: Sequence[Any] = ()
    ):
        self.connect = connect
        self.query = query
        self.params = tuple(params)

    def __iter__(self) -> Iterator[SourceRow]:
        conn = self.connect()
        try:
            cursor = conn.cursor()
            try:
                logger.debug(f"Executing source query: {self.query}")
                cursor.execute(self.query, self.params)
                yield from iter_cursor_rows(cursor)
            finally:
                cursor.close()
        finally:
            conn.close()

    def __repr__(self) -> str:
        return f"QuerySource(query={self.query!r})"


def sqlite_connector(path: Path | str) -> ConnectionFactory:
    """
    Build a connection factory for an ERP database exported to SQLite.

    The database is opened read-only.

    Raises:
        SourceError: If the file does not exist
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise SourceError(f"Source database not found: {path}")

    uri = f"{path.resolve().as_uri()}?mode=ro"

    def connect() -> sqlite3.Connection:
        return sqlite3.connect(uri, uri=True)

    return connect
