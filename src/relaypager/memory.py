"""Module to paginate records held in memory."""

from __future__ import annotations

import operator

from collections.abc import Callable, Iterable, Mapping
from relaypager.adapter import (
    AdapterOptions,
    Anchor,
    AnchorType,
    CountInput,
    Edge,
    LoadInput,
    LoadOrder,
)
from relaypager.error import CursorError
from typing import Any, Generic, TypeVar


F = TypeVar("F")
D = TypeVar("D")
C = TypeVar("C")


_operators = {
    AnchorType.GT: operator.gt,
    AnchorType.GTE: operator.ge,
    AnchorType.LT: operator.lt,
    AnchorType.LTE: operator.le,
}


def _value(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record[name]
    return getattr(record, name)


def _decode_cursor(cursor: str, like: Any) -> Any:
    """Decode cursor into a value of the same type as the specified value."""
    if isinstance(like, str):
        return cursor
    try:
        return type(like)(cursor)
    except (TypeError, ValueError) as e:
        raise CursorError(f"invalid cursor: {cursor!r}") from e


class MemoryAdapter(Generic[F, D, C]):
    """
    Adapter that paginates a collection of records held in memory.

    Parameters:
    • records: records to paginate; each a mapping or an object with attributes
    • predicate: function of record, filter and context returning if the record matches
    • options: page sizes and cursor generator  [defaults]

    Cursors are compared to the primary value of each record by converting the cursor to the
    type of that value. Records are copied upon initialization; the adapter does not observe
    subsequent changes to the collection.
    """

    def __init__(
        self,
        records: Iterable[D],
        predicate: Callable[[D, F, C], bool] | None = None,
        options: AdapterOptions[C] | None = None,
    ):
        self.records = list(records)
        self.predicate = predicate
        self.options = options or AdapterOptions()

    def limit(self, context: C) -> int:
        return self.options.resolve_limit(context)

    def default(self, context: C) -> int:
        return self.options.resolve_default(context)

    def _matches(self, record: D, filter: F, context: C) -> bool:
        return self.predicate is None or self.predicate(record, filter, context)

    def _bounded(self, record: D, primary: str, anchors: Iterable[Anchor]) -> bool:
        value = _value(record, primary)
        return all(
            _operators[anchor.type](value, _decode_cursor(anchor.cursor, value))
            for anchor in anchors
        )

    async def load(self, input: LoadInput[F], context: C) -> list[Edge[D]]:
        records = sorted(
            (
                record
                for record in self.records
                if self._matches(record, input.filter, context)
                and self._bounded(record, input.primary, input.anchors)
            ),
            key=lambda record: _value(record, input.primary),
            reverse=input.order == LoadOrder.DESC,
        )
        cursor = self.options.cursor
        return [
            Edge(node=record, cursor=lambda r=record: cursor(r, input.primary, context))
            for record in records[: input.max]
        ]

    async def count(self, input: CountInput[F], context: C) -> int:
        return sum(1 for record in self.records if self._matches(record, input.filter, context))
