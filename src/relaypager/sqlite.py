"""
Module to paginate rows of tables in a SQLite database.

Example:

database = Database("app.db")
async with database.transaction():
    await users.create()
"""

import aiosqlite
import asyncio
import contextvars
import logging
import relaypager.sql
import sqlite3
import typing

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from relaypager.sql import Expression, Param, is_optional, strip_optional
from types import NoneType
from typing import Any


_logger = logging.getLogger(__name__)


class SQLiteCodec:
    """
    Base class for codecs that convert Python values to and from SQLite storage values.

    Attributes:
    • python_type: Python type the codec was selected for
    • sql_type: column type that stores values of the Python type
    """

    _cache: dict[Any, "SQLiteCodec"] = {}

    sql_type: str
    accepts: tuple[type, ...] = ()

    def __init__(self, python_type: Any):
        self.python_type = python_type

    @classmethod
    def handles(cls, python_type: Any) -> bool:
        """Return if the codec converts values of the specified Python type."""
        return isinstance(python_type, type) and issubclass(python_type, cls.accepts)

    @staticmethod
    def get(python_type: Any) -> "SQLiteCodec":
        """Return the codec that converts values of the specified Python type."""
        with suppress(KeyError, TypeError):
            return SQLiteCodec._cache[python_type]
        codec_class = next((c for c in _codecs if c.handles(python_type)), None)
        if codec_class is None:
            raise TypeError(f"no SQLite codec for {python_type}")
        codec = codec_class(python_type)
        with suppress(TypeError):
            SQLiteCodec._cache[python_type] = codec
        return codec

    def encode(self, value: Any) -> Any:
        if not isinstance(value, self.accepts):
            raise TypeError(f"expecting {self.python_type.__name__}: {value!r}")
        return value

    def decode(self, value: Any) -> Any:
        return self.python_type(value)


class BlobCodec(SQLiteCodec):
    """Stores bytes and bytearray values as BLOB."""

    sql_type = "BLOB"
    accepts = (bytes, bytearray)

    def encode(self, value: bytes | bytearray) -> bytes:
        return bytes(super().encode(value))


class IntegerCodec(SQLiteCodec):
    """Stores int and bool values as INTEGER."""

    sql_type = "INTEGER"
    accepts = (int,)

    def encode(self, value: int) -> int:
        return int(super().encode(value))


class RealCodec(SQLiteCodec):
    """Stores float values as REAL; int values are accepted when encoding."""

    sql_type = "REAL"
    accepts = (float,)

    def encode(self, value: float) -> float:
        if isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        return super().encode(value)


class TextCodec(SQLiteCodec):
    """Stores str values as TEXT."""

    sql_type = "TEXT"
    accepts = (str,)

    def decode(self, value: str) -> str:
        return value


class OptionalCodec(SQLiteCodec):
    """Stores optional values as NULL, or with the codec of the type they wrap."""

    @classmethod
    def handles(cls, python_type: Any) -> bool:
        return python_type is not NoneType and is_optional(python_type)

    def __init__(self, python_type: Any):
        super().__init__(python_type)
        self.codec = SQLiteCodec.get(strip_optional(python_type))
        self.sql_type = self.codec.sql_type

    def encode(self, value: Any) -> Any:
        return None if value is None else self.codec.encode(value)

    def decode(self, value: Any) -> Any:
        return None if value is None else self.codec.decode(value)


_codecs = (OptionalCodec, BlobCodec, IntegerCodec, RealCodec, TextCodec)


async def _rows(cursor: aiosqlite.Cursor, row_type: Any) -> AsyncIterator[Any]:
    codecs = {k: SQLiteCodec.get(t) for k, t in typing.get_type_hints(row_type).items()}
    async for row in cursor:
        yield row_type(**{k: codec.decode(row[k]) for k, codec in codecs.items()})




@dataclass
class _Session:
    task: asyncio.Task | None
    connection: aiosqlite.Connection
    depth: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class Database(relaypager.sql.Database):
    """
    A SQLite database, accessed through aiosqlite.

    Parameter:
    • path: path to the database file

    A task opens a connection upon entering its outermost transaction, and closes it upon
    exiting. Nested transactions are scoped by savepoints. A task created while a transaction
    is open (for example, to load a page) joins that transaction on the same connection:
    its transactions are savepoints that hold the connection until they exit, so statements
    of concurrent tasks are never interleaved within them.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._session = contextvars.ContextVar("relaypager_sqlite_session", default=None)

    @asynccontextmanager
    async def _connect(self):
        _logger.debug("opening connection to %s", self.path)
        connection = await aiosqlite.connect(self.path)
        connection.row_factory = sqlite3.Row
        session = _Session(task=asyncio.current_task(), connection=connection)
        token = self._session.set(session)
        try:
            yield session
        finally:
            self._session.reset(token)
            _logger.debug("closing connection to %s", self.path)
            try:
                await connection.close()
            except Exception:
                _logger.exception("failed to close connection to %s", self.path)

    @asynccontextmanager
    async def _join(self, parent: _Session):
        async with parent.lock:
            _logger.debug("joining transaction at depth %d", parent.depth)
            session = _Session(
                task=asyncio.current_task(), connection=parent.connection, depth=parent.depth
            )
            token = self._session.set(session)
            try:
                yield session
            finally:
                self._session.reset(token)

    @asynccontextmanager
    async def _savepoint(self, session: _Session):
        savepoint = f"relaypager_{session.depth}"
        _logger.debug("begin %s", savepoint)
        async with session.lock:
            await session.connection.execute(f"SAVEPOINT {savepoint};")
        session.depth += 1
        try:
            yield
        except Exception:
            _logger.debug("rollback %s", savepoint)
            async with session.lock:
                await session.connection.execute(f"ROLLBACK TO SAVEPOINT {savepoint};")
                await session.connection.execute(f"RELEASE SAVEPOINT {savepoint};")
            raise
        else:
            _logger.debug("commit %s", savepoint)
            async with session.lock:
                await session.connection.execute(f"RELEASE SAVEPOINT {savepoint};")
        finally:
            session.depth -= 1

    @asynccontextmanager
    async def transaction(self):
        session = self._session.get()
        if session is None or session.depth == 0:
            async with self._connect() as session, self._savepoint(session):
                yield
        elif session.task is asyncio.current_task():
            async with self._savepoint(session):
                yield
        else:
            async with self._join(session) as session, self._savepoint(session):
                yield

    async def execute(
        self, statement: Expression, result: type | None = None
    ) -> AsyncIterator[Any] | None:
        session = self._session.get()
        if session is None or session.depth == 0 or session.task is not asyncio.current_task():
            raise RuntimeError("statement must be executed within a transaction")
        text = []
        params = []
        for fragment in statement:
            match fragment:
                case str():
                    text.append(fragment)
                case Param():
                    text.append("?")
                    params.append(SQLiteCodec.get(fragment.type).encode(fragment.value))
        _logger.debug("execute %s", statement)
        async with session.lock:
            cursor = await session.connection.execute("".join(text), params)
        if result is not None:
            return _rows(cursor, result)

    def sql_type(self, python_type: Any) -> str:
        return SQLiteCodec.get(python_type).sql_type
