"""
Module to resolve connections: pages of records with opaque cursors, fetched in either
direction from an adapter.

A connection is requested with connection arguments:

  • first: number of records to return from the start of the page window
  • last: number of records to return from the end of the page window
  • after: cursor that all returned records must come after, in page order
  • before: cursor that all returned records must come before, in page order
  • primary: field that records are ordered by and cursors are generated from
  • order: order in which the page is displayed

Example:

load = connection_loader(adapter)
connection = load(filter, ConnectionArgs(primary="id", order=LoadOrder.ASC, first=10), ctx)
edges = await connection.edges()
more = await connection.page_info.has_next_page()

Resolving a connection performs no work until one of its coroutines is awaited. However many
of edges, has_next_page and has_previous_page are awaited, and in whatever order, the page
is loaded from the adapter exactly once.
"""

from __future__ import annotations

import dataclasses
import logging

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from relaypager.adapter import (
    Adapter,
    Anchor,
    AnchorType,
    CountInput,
    Edge,
    LoadInput,
    LoadOrder,
)
from relaypager.error import ConnectionArgsError
from relaypager.loader import PageLoader
from relaypager.orientation import FetchPlan, adapt_anchor_type, compute_orientation
from typing import Any, Generic, TypeVar


_logger = logging.getLogger(__name__)


# type variables
F = TypeVar("F")  # filter type variable
D = TypeVar("D")  # record type variable
C = TypeVar("C")  # context type variable


@dataclass
class ConnectionArgs:
    """
    Arguments of a connection request.

    Parameters and attributes:
    • primary: name of the field records are ordered by and cursors are generated from
    • order: order in which the page is displayed
    • fields: names of fields to fetch for each record  [all]
    • first: number of records to fetch from the start of the window
    • last: number of records to fetch from the end of the window
    • before: cursor that fetched records must come before, relative to the page
    • after: cursor that fetched records must come after, relative to the page

    "first" and "last" are mutually exclusive.
    """

    primary: str
    order: LoadOrder
    fields: list[str] | None = None
    first: int | None = None
    last: int | None = None
    before: str | None = None
    after: str | None = None

    def __post_init__(self):
        self.order = LoadOrder(self.order)


class PageInfo(Generic[F, D, C]):
    """Information about the position of a connection in the entire result set."""

    def __init__(self, connection: ConnectionData[F, D, C]):
        self._connection = connection

    async def count(self) -> int:
        """Return the estimated, or upper bound, number of records in the result set."""
        c = self._connection
        input = CountInput(filter=c.filter, primary=c.args.primary)
        return await c.adapter.count(input, c.context)

    async def has_next_page(self) -> bool:
        """Return if records exist after the last record of the page."""
        return await self._connection._probe(AnchorType.GT)

    async def has_previous_page(self) -> bool:
        """Return if records exist before the first record of the page."""
        return await self._connection._probe(AnchorType.LT)


class ConnectionData(Generic[F, D, C]):
    """
    A connection resolved for a single request.

    Parameters:
    • adapter: adapter to load records from
    • filter: value describing the records of the result set
    • args: connection arguments
    • context: context of the request

    Attributes:
    • plan: plan the data store fetches the page with
    • page_info: information about the position of the page

    Raises ConnectionArgsError if the connection arguments are invalid.
    """

    def __init__(self, adapter: Adapter[F, D, C], filter: F, args: ConnectionArgs, context: C):
        self.adapter = adapter
        self.filter = filter
        self.args = args
        self.context = context
        self.plan: FetchPlan = compute_orientation(adapter, args, context)
        self.page_info: PageInfo[F, D, C] = PageInfo(self)
        self._results = PageLoader(self._load)

    async def _load(self, _key: int) -> tuple[Edge[D], ...]:
        _logger.debug("loading page %s", self.plan)
        return tuple(
            await self.adapter.load(
                LoadInput(
                    filter=self.filter,
                    primary=self.args.primary,
                    max=self.plan.limit,
                    order=self.plan.order,
                    fields=list(self.args.fields or []),
                    anchors=self.plan.anchors,
                ),
                self.context,
            )
        )

    async def edges(self) -> list[Edge[D]]:
        """Return a new list of the edges of the page, in display order."""
        results = await self._results.get()
        if self.plan.order == self.args.order:
            return list(results)
        return list(reversed(results))

    async def _probe(self, anchor_type: AnchorType) -> bool:
        edges = await self.edges()
        if not edges:
            return False
        edge = edges[-1] if anchor_type == AnchorType.GT else edges[0]
        anchor = Anchor(
            type=adapt_anchor_type(anchor_type, self.args.order), cursor=edge.cursor()
        )
        _logger.debug("probing beyond page with %s", anchor)
        results = await self.adapter.load(
            LoadInput(
                filter=self.filter,
                primary=self.args.primary,
                max=1,
                order=self.args.order,
                fields=[self.args.primary],
                anchors=(anchor,),
            ),
            self.context,
        )
        return len(results) > 0


ConnectionLoader = Callable[[F, ConnectionArgs, C], ConnectionData[F, D, C]]


def connection_loader(adapter: Adapter[F, D, C]) -> ConnectionLoader:
    """
    Return a function that resolves connections from an adapter.

    Parameters:
    • adapter: adapter to load records from

    The returned function accepts a filter, connection arguments and request context, and
    returns the connection data; it raises ConnectionArgsError if arguments are invalid.
    """

    def load(filter: F, args: ConnectionArgs, context: C) -> ConnectionData[F, D, C]:
        return ConnectionData(adapter, filter, args, context)

    return load


async def paginate(
    load: ConnectionLoader, filter: Any, args: ConnectionArgs, context: Any = None
) -> AsyncIterator[Any]:
    """
    Iterate through all records of a connection, page by page, in display order.

    Parameters:
    • load: function that resolves connections, as returned by connection_loader
    • filter: value describing the records of the result set
    • args: connection arguments of the first page
    • context: context of the request

    Iteration begins after the "after" cursor, if supplied. Each subsequent page is
    requested after the cursor of the last record of the previous page.
    """

    if args.last or args.before:
        raise ConnectionArgsError("'last' and 'before' keys are not supported when paginating")
    while True:
        connection = load(filter, args, context)
        edges = await connection.edges()
        for edge in edges:
            yield edge.node
        if not edges or not await connection.page_info.has_next_page():
            break
        args = dataclasses.replace(args, after=edges[-1].cursor())
