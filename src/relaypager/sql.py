"""
Module to paginate rows of a table in a SQL database.

Statements are composed as expressions: sequences of SQL text and parameters. Parameter
values never appear in statement text; each database renders them with its own placeholder
syntax.

Example:

users = Table("users", database, User, pk="id")
load = connection_loader(TableAdapter(users))
"""

from __future__ import annotations

import builtins
import logging
import typing

from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import AbstractAsyncContextManager, aclosing
from dataclasses import fields, is_dataclass
from relaypager.adapter import (
    AdapterOptions,
    AnchorType,
    CountInput,
    Edge,
    LoadInput,
    LoadOrder,
)
from relaypager.error import CursorError, FieldError
from types import NoneType, UnionType
from typing import Any, Generic, TypedDict, TypeVar


_logger = logging.getLogger(__name__)


# type variables
F = TypeVar("F")  # filter type variable
R = TypeVar("R")  # row type variable
C = TypeVar("C")  # context type variable
T = TypeVar("T")  # result type variable


def _union_args(python_type: Any) -> tuple[Any, ...] | None:
    if typing.get_origin(python_type) in {typing.Union, UnionType}:
        return typing.get_args(python_type)
    return None


def strip_optional(python_type: Any) -> Any:
    """Return the type that an optional type hint wraps; other hints are returned as is."""
    args = _union_args(python_type)
    if args is not None:
        others = [a for a in args if a is not NoneType]
        if len(others) == 1:
            return others[0]
    return python_type


def is_optional(python_type: Any) -> bool:
    """Return if a column of the type hint accepts NULL values."""
    args = _union_args(python_type)
    return NoneType in args if args is not None else python_type is NoneType


class Param:
    """
    A value to be passed to the database as a statement parameter.

    Parameters and attributes:
    • value: value of the parameter
    • type: Python type the value is encoded as  [type of value]
    """

    __slots__ = {"value", "type"}

    def __init__(self, value: Any, type: Any = None):
        self.value = value
        self.type = type or builtins.type(value)

    def __repr__(self) -> str:
        return f"Param({self.value!r}, {self.type!r})"

    def __str__(self) -> str:
        return f"«{self.value}»"


Fragment = str | Param


class Expression(Iterable[Fragment]):
    """
    SQL text interleaved with parameters.

    An expression is constructed from, or extended (+=) with, strings, parameters, other
    expressions, or iterables of these; nested values are flattened into fragments.
    """

    def __init__(self, *args):
        self.fragments: list[Fragment] = []
        for arg in args:
            self += arg

    def __repr__(self):
        return f"Expression({self.fragments!r})"

    def __str__(self):
        return "".join(map(str, self.fragments))

    def __iter__(self):
        return iter(self.fragments)

    def __bool__(self):
        return len(self.fragments) > 0

    def __iadd__(self, value):
        match value:
            case str() | Param():
                self.fragments.append(value)
            case Iterable():
                for fragment in value:
                    self += fragment
            case _:
                raise ValueError(f"unsupported fragment: {value!r}")
        return self

    @staticmethod
    def join(values: Iterable[Expression | Fragment], sep: str | None = None) -> Expression:
        """Return an expression of values, with an optional separator between each."""
        result = Expression()
        for value in values:
            if sep and result:
                result += sep
            result += value
        return result


class Database:
    """
    Base class for a SQL database.

    Statements are executed within a transaction; the database decides how connections are
    acquired for the transaction.
    """

    async def execute(
        self, statement: Expression, result: type[T] | None = None
    ) -> AsyncIterator[T] | None:
        """
        Execute a statement within the current transaction.

        Parameters:
        • statement: statement to execute
        • result: TypedDict type of each row returned by a query; None for no rows

        Returns an asynchronous iterator of rows if a result type is specified.
        """
        raise NotImplementedError

    def transaction(self) -> AbstractAsyncContextManager:
        """
        Return an asynchronous context manager that scopes a transaction. Changes are
        committed when the context exits normally, and rolled back if it exits with an
        exception.
        """
        raise NotImplementedError

    def sql_type(self, python_type: Any) -> str:
        """Return the column type to store values of a Python type."""
        raise NotImplementedError


class Table(Generic[R]):
    """
    A table whose rows are described by a dataclass.

    Parameters and attributes:
    • name: name of the table in the database
    • database: database the table is stored in
    • schema: dataclass whose fields are the columns of the table
    • pk: name of the primary key column

    Attributes:
    • columns: mapping of column name to Python type

    Statements issued by a table must be executed within a database transaction.
    """

    __slots__ = {"name", "database", "schema", "columns", "pk"}

    def __init__(self, name: str, database: Database, schema: type[R], pk: str):
        if not is_dataclass(schema):
            raise TypeError(f"table schema is not a dataclass: {schema}")
        hints = typing.get_type_hints(schema)
        columns = {f.name: hints[f.name] for f in fields(schema)}
        if pk not in columns:
            raise ValueError(f"primary key is not a column of {name}: {pk}")
        self.name = name
        self.database = database
        self.schema = schema
        self.columns = columns
        self.pk = pk

    def __repr__(self):
        return f"Table({self.name!r}, pk={self.pk!r})"

    def _column_definition(self, name: str, python_type: Any) -> str:
        definition = f"{name} {self.database.sql_type(python_type)}"
        if name == self.pk:
            definition += " PRIMARY KEY"
        if not is_optional(python_type):
            definition += " NOT NULL"
        return definition

    async def create(self) -> None:
        """Create the table in the database."""
        definitions = ", ".join(self._column_definition(n, t) for n, t in self.columns.items())
        await self.database.execute(Expression(f"CREATE TABLE {self.name} ({definitions});"))

    async def drop(self) -> None:
        """Drop the table from the database."""
        await self.database.execute(Expression(f"DROP TABLE {self.name};"))

    async def insert(self, row: R) -> None:
        """Insert a row into the table."""
        values = (Param(getattr(row, n), t) for n, t in self.columns.items())
        await self.database.execute(
            Expression(
                f"INSERT INTO {self.name} ({', '.join(self.columns)}) VALUES (",
                Expression.join(values, ", "),
                ");",
            )
        )

    async def select(
        self,
        *,
        columns: Iterable[str] | None = None,
        where: Expression | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Return an asynchronous iterator of rows, each a dict of column name to value.

        Parameters:
        • columns: names of columns to select  [all]
        • where: condition that selected rows must match  [all rows]
        • order_by: ORDER BY clause text
        • limit: maximum number of rows to select  [no limit]
        """
        names = list(self.columns if columns is None else columns)
        if unknown := [n for n in names if n not in self.columns]:
            raise ValueError(f"not columns of {self.name}: {', '.join(unknown)}")
        stmt = Expression(f"SELECT {', '.join(names)} FROM {self.name}")
        if where:
            stmt += Expression(" WHERE ", where)
        if order_by:
            stmt += f" ORDER BY {order_by}"
        if limit is not None:
            stmt += f" LIMIT {limit}"
        stmt += ";"
        row_type = TypedDict("Row", {n: self.columns[n] for n in names})
        async for row in await self.database.execute(stmt, row_type):
            yield row

    async def count(self, where: Expression | None = None) -> int:
        """Return the number of rows that match an optional condition."""
        stmt = Expression(f"SELECT COUNT(*) AS count FROM {self.name}")
        if where:
            stmt += Expression(" WHERE ", where)
        stmt += ";"
        rows = await self.database.execute(stmt, TypedDict("Count", {"count": int}))
        async with aclosing(rows):
            return (await anext(rows))["count"]


_comparisons = {
    AnchorType.GT: ">",
    AnchorType.GTE: ">=",
    AnchorType.LT: "<",
    AnchorType.LTE: "<=",
}


# maps filter, primary field and context to a WHERE condition, or None to match all rows
WhereMapper = Callable[[Any, str, Any], Expression | None]


class TableAdapter(Generic[F, R, C]):
    """
    Adapter that paginates rows of a database table.

    Parameters:
    • table: table to paginate rows from
    • mapper: function of filter, primary field and context returning a WHERE condition
    • options: page sizes and cursor generator  [defaults]

    Cursors are decoded to the type of the primary column before being compared. The primary
    field is not required to be the primary key of the table. Loaded rows are instances of
    the table schema; only requested fields (and the primary field) are populated.
    """

    def __init__(
        self,
        table: Table[R],
        mapper: WhereMapper | None = None,
        options: AdapterOptions[C] | None = None,
    ):
        self.table = table
        self.mapper = mapper
        self.options = options or AdapterOptions()

    def limit(self, context: C) -> int:
        return self.options.resolve_limit(context)

    def default(self, context: C) -> int:
        return self.options.resolve_default(context)

    def _check_fields(self, primary: str, fields: Iterable[str] = ()) -> None:
        unknown = [f for f in (primary, *fields) if f not in self.table.columns]
        if unknown:
            raise FieldError(f"not columns of {self.table.name}: {', '.join(unknown)}")

    def _conditions(self, filter: F, primary: str, context: C) -> list[Expression]:
        where = self.mapper(filter, primary, context) if self.mapper else None
        return [Expression("(", where, ")")] if where else []

    def _param(self, primary: str, cursor: str) -> Param:
        python_type = strip_optional(self.table.columns[primary])
        try:
            value = cursor if python_type is str else python_type(cursor)
        except (TypeError, ValueError) as e:
            raise CursorError(f"invalid cursor: {cursor!r}") from e
        return Param(value, python_type)

    async def load(self, input: LoadInput[F], context: C) -> list[Edge[R]]:
        self._check_fields(input.primary, input.fields)
        conditions = self._conditions(input.filter, input.primary, context)
        conditions.extend(
            Expression(
                f"{input.primary} {_comparisons[anchor.type]} ",
                self._param(input.primary, anchor.cursor),
            )
            for anchor in input.anchors
        )
        columns = None
        if input.fields:
            columns = [input.primary, *(f for f in input.fields if f != input.primary)]
        direction = "DESC" if input.order == LoadOrder.DESC else "ASC"
        _logger.debug("loading up to %d rows from %s", input.max, self.table.name)
        async with self.table.database.transaction():
            rows = [
                self.table.schema(**{c: row.get(c) for c in self.table.columns})
                async for row in self.table.select(
                    columns=columns,
                    where=Expression.join(conditions, " AND "),
                    order_by=f"{input.primary} {direction}",
                    limit=input.max,
                )
            ]
        cursor = self.options.cursor
        return [
            Edge(node=row, cursor=lambda r=row: cursor(r, input.primary, context))
            for row in rows
        ]

    async def count(self, input: CountInput[F], context: C) -> int:
        self._check_fields(input.primary)
        conditions = self._conditions(input.filter, input.primary, context)
        async with self.table.database.transaction():
            return await self.table.count(Expression.join(conditions, " AND "))
