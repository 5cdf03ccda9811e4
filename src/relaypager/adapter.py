"""
Module that defines the contract between the pagination engine and a data source.

An adapter exposes a data source to the engine through four operations:

  • limit: the maximum number of items that can be fetched in a page
  • default: the number of items fetched in a page if none is requested
  • load: fetch the records that match a filter, bounded by anchors
  • count: estimate the total number of records that match a filter

The engine never constructs an adapter; it is supplied once per data domain and must be
stateless across calls.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable


# type variables
F = TypeVar("F")  # filter type variable
D = TypeVar("D")  # record type variable
C = TypeVar("C")  # context type variable


class LoadOrder(StrEnum):
    """Order in which records are loaded over the primary field."""

    ASC = "ASC"
    DESC = "DESC"


class AnchorType(StrEnum):
    """Comparison that an anchor applies to the primary field."""

    GT = "GT"
    GTE = "GTE"
    LT = "LT"
    LTE = "LTE"


@dataclass(frozen=True)
class Anchor:
    """
    A bound on the records a load may return.

    Parameters and attributes:
    • type: comparison to apply between the primary field and the cursor
    • cursor: cursor to compare against
    """

    type: AnchorType
    cursor: str


@dataclass
class Edge(Generic[D]):
    """
    A record returned by an adapter load, with the function that produces its cursor.

    Parameters and attributes:
    • node: the record
    • cursor: no-argument function that returns the cursor of the record
    """

    node: D
    cursor: Callable[[], str]


@dataclass
class CountInput(Generic[F]):
    """
    Arguments passed to an adapter count.

    Parameters and attributes:
    • filter: value describing the records to count
    • primary: name of the primary field
    """

    filter: F
    primary: str


@dataclass
class LoadInput(Generic[F]):
    """
    Arguments passed to an adapter load.

    Parameters and attributes:
    • filter: value describing the records to load
    • primary: name of the field records are ordered by and cursors are generated from
    • max: maximum number of records to return
    • order: order of returned records over the primary field
    • fields: names of fields that must at least be populated; empty for all fields
    • anchors: bounds that all returned records must satisfy

    The primary field is not necessarily the primary key of a database; for pagination
    over a creation timestamp, the timestamp field is the primary.

    A load must return at most "max" records, but is not required to return that many.
    """

    filter: F
    primary: str
    max: int
    order: LoadOrder
    fields: list[str] = field(default_factory=list)
    anchors: Sequence[Anchor] = ()


@runtime_checkable
class Adapter(Protocol[F, D, C]):
    """Prototype connection adapter."""

    def limit(self, context: C) -> int:
        """Return the maximum number of records that can be fetched in a page."""
        ...

    def default(self, context: C) -> int:
        """Return the number of records fetched in a page if none is requested."""
        ...

    async def load(self, input: LoadInput[F], context: C) -> Sequence[Edge[D]]:
        """Return records that match the filter and anchors, in the requested order."""
        ...

    async def count(self, input: CountInput[F], context: C) -> int:
        """Return the upper bound of records that match the filter."""
        ...


def default_cursor(record: Any, primary: str, context: Any) -> str:
    """Return the string value of the primary field of a record as its cursor."""
    if isinstance(record, Mapping):
        return str(record[primary])
    return str(getattr(record, primary))


@dataclass
class AdapterOptions(Generic[C]):
    """
    Options for the adapters provided in this package.

    Parameters and attributes:
    • limit: maximum page size, or function of the context returning it  [100]
    • default: default page size, or function of the context returning it  [20]
    • cursor: function of record, primary field and context returning a cursor
    """

    limit: int | Callable[[C], int] = 100
    default: int | Callable[[C], int] = 20
    cursor: Callable[[Any, str, C], str] = default_cursor

    def resolve_limit(self, context: C) -> int:
        """Return the maximum page size for the context."""
        return self.limit if isinstance(self.limit, int) else self.limit(context)

    def resolve_default(self, context: C) -> int:
        """Return the default page size for the context."""
        return self.default if isinstance(self.default, int) else self.default(context)
