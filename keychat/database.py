"""Persistence layer for keychat.

Two stores sit behind one :class:`Database` interface: an embedded SQLite
file for local runs and a PostgreSQL server reached through a connection
pool when ``DATABASE_URL`` is set. Callers write SQL with ``?`` placeholders
and get plain ``dict`` rows back from either backend.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Type

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from . import config

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Params = Sequence[Any]


class DatabaseError(RuntimeError):
    """Raised when a store call fails (bad SQL, lost connection, ...)."""


class IntegrityError(DatabaseError):
    """Raised when a statement violates a constraint, e.g. a duplicate username."""


@dataclass
class ExecuteResult:
    rowcount: int
    lastrowid: Optional[int] = None


def to_numbered_placeholders(sql: str) -> str:
    """Rewrite ``?`` placeholders as PostgreSQL's ``$1, $2, ...``.

    Question marks inside quoted literals or identifiers are left alone.
    """

    out: List[str] = []
    quote: Optional[str] = None
    index = 0
    for char in sql:
        if quote is not None:
            if char == quote:
                quote = None
            out.append(char)
        elif char in ("'", '"'):
            quote = char
            out.append(char)
        elif char == "?":
            index += 1
            out.append(f"${index}")
        else:
            out.append(char)
    return "".join(out)


@contextmanager
def _driver_errors(
    integrity: Tuple[Type[BaseException], ...],
    general: Tuple[Type[BaseException], ...],
) -> Iterator[None]:
    try:
        yield
    except integrity as exc:
        raise IntegrityError(str(exc)) from exc
    except general as exc:
        raise DatabaseError(str(exc)) from exc


class Database(ABC):
    """Backend-agnostic query surface used by the request handlers."""

    name = "abstract"
    SCHEMA_STATEMENTS: Tuple[str, ...] = ()

    @abstractmethod
    def query(self, sql: str, params: Params = ()) -> List[Row]:
        """Run a read statement; returns ``[]`` when nothing matches."""

    @abstractmethod
    def execute(self, sql: str, params: Params = ()) -> ExecuteResult:
        """Run a mutating statement."""

    def ensure_schema(self) -> bool:
        """Create the ``users`` and ``messages`` tables if they are missing."""

        try:
            for stmt in self.SCHEMA_STATEMENTS:
                self.execute(stmt)
        except DatabaseError:
            logger.exception("Could not initialise %s schema", self.name)
            return False
        return True

    def ping(self) -> bool:
        try:
            return bool(self.query("SELECT 1 AS ok"))
        except DatabaseError:
            return False

    def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class SQLiteDatabase(Database):
    """Embedded single-file store; a fresh connection per call."""

    name = "sqlite"
    SCHEMA_STATEMENTS = (
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE,
            password TEXT,
            profile_pic TEXT,
            usb_key TEXT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sender TEXT,
            message TEXT,
            timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """,
    )

    def __init__(self, db_path: Path = config.DB_PATH) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _errors(self):
        return _driver_errors((sqlite3.IntegrityError,), (sqlite3.Error,))

    def query(self, sql: str, params: Params = ()) -> List[Row]:
        with self._errors(), closing(self._connect()) as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()
        return [dict(row) for row in rows]

    def execute(self, sql: str, params: Params = ()) -> ExecuteResult:
        with self._errors(), closing(self._connect()) as conn:
            with conn:
                cursor = conn.execute(sql, tuple(params))
            return ExecuteResult(rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)

    def __repr__(self) -> str:
        return f"<SQLiteDatabase {self.db_path}>"


class PostgresDatabase(Database):
    """Networked store reached through a ``psycopg_pool`` connection pool.

    Connections run in autocommit mode with a raw cursor so that statements
    are bound server side with ``$n`` placeholders.
    """

    name = "postgres"
    SCHEMA_STATEMENTS = (
        """
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            username TEXT UNIQUE,
            password TEXT,
            profile_pic TEXT,
            usb_key TEXT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS messages (
            id SERIAL PRIMARY KEY,
            sender TEXT,
            message TEXT,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """,
    )

    def __init__(
        self,
        connection_string: Optional[str] = None,
        *,
        pool: Optional[ConnectionPool] = None,
        sslmode: Optional[str] = config.PG_SSLMODE,
        min_size: int = config.PG_POOL_MIN,
        max_size: int = config.PG_POOL_MAX,
        timeout: float = config.PG_TIMEOUT,
    ) -> None:
        if pool is None:
            if not connection_string:
                raise ValueError("PostgresDatabase requires 'connection_string' or 'pool'")
            kwargs: Dict[str, Any] = {
                "autocommit": True,
                "row_factory": dict_row,
                "cursor_factory": psycopg.RawCursor,
            }
            if sslmode and "sslmode" not in connection_string:
                kwargs["sslmode"] = sslmode
            pool = ConnectionPool(
                connection_string,
                kwargs=kwargs,
                min_size=min_size,
                max_size=max_size,
                timeout=timeout,
                open=True,
            )
        self._pool = pool

    def _errors(self):
        return _driver_errors((psycopg.IntegrityError,), (psycopg.Error,))

    def query(self, sql: str, params: Params = ()) -> List[Row]:
        with self._errors(), self._pool.connection() as conn:
            cursor = conn.execute(to_numbered_placeholders(sql), list(params))
            rows = cursor.fetchall() if cursor.description else []
        return [dict(row) for row in rows]

    def execute(self, sql: str, params: Params = ()) -> ExecuteResult:
        with self._errors(), self._pool.connection() as conn:
            cursor = conn.execute(to_numbered_placeholders(sql), list(params))
            rows = cursor.fetchall() if cursor.description else []
        lastrowid = rows[0].get("id") if rows else None
        return ExecuteResult(rowcount=cursor.rowcount, lastrowid=lastrowid)

    def close(self) -> None:
        self._pool.close()


def create_database(
    database_url: Optional[str] = config.DATABASE_URL,
    db_path: Path = config.DB_PATH,
) -> Database:
    """Pick the store for this process and make sure its schema exists.

    A connection string selects PostgreSQL, otherwise the SQLite file at
    ``db_path`` is used. Connectivity problems are logged, never raised.
    """

    db: Database
    if database_url:
        logger.info("Using PostgreSQL backend")
        db = PostgresDatabase(database_url)
        if db.ping():
            logger.info("PostgreSQL connected")
        else:
            logger.error("PostgreSQL connectivity probe failed")
    else:
        logger.info("Using SQLite backend at %s", db_path)
        db = SQLiteDatabase(db_path)
        if db.ping():
            logger.info("SQLite connected")
        else:
            logger.error("Could not open SQLite database %s", db_path)

    db.ensure_schema()
    return db
