"""
Module to translate connection arguments into the plan a data store must fetch.

A page is requested in a display order, but the records are not necessarily fetched from the
data store in that order: to fetch the last N records of a page, the store is asked for the
first N records in the inverse order, and the result is reversed before being displayed.
"""

from __future__ import annotations

import logging

from dataclasses import dataclass
from relaypager.adapter import Adapter, Anchor, AnchorType, LoadOrder
from relaypager.error import ConnectionArgsError
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from relaypager.connection import ConnectionArgs


_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchPlan:
    """
    What the data store must fetch for a page.

    Parameters and attributes:
    • limit: maximum number of records to fetch
    • anchors: bounds that all fetched records must satisfy
    • order: order the data store must fetch records in, which can be the inverse of the
      order the page is displayed in
    """

    limit: int
    anchors: tuple[Anchor, ...]
    order: LoadOrder


def invert_order(order: LoadOrder) -> LoadOrder:
    """Return the inverse of a load order."""
    match order:
        case LoadOrder.ASC:
            return LoadOrder.DESC
        case LoadOrder.DESC:
            return LoadOrder.ASC
    raise ValueError(f"unknown load order: {order}")


def adapt_anchor_type(anchor_type: AnchorType, order: LoadOrder) -> AnchorType:
    """
    Return the anchor type the data store must apply for an anchor expressed relative to a
    page.

    Parameters:
    • anchor_type: anchor type relative to the page; GT means further along the page
    • order: order of the page over the primary field

    In an ascending page, "further along" is greater than in the data store; in a descending
    page, it is less than.
    """
    match anchor_type:
        case AnchorType.GT:
            return AnchorType.GT if order == LoadOrder.ASC else AnchorType.LT
        case AnchorType.LT:
            return AnchorType.LT if order == LoadOrder.ASC else AnchorType.GT
        case AnchorType.GTE:
            return AnchorType.GTE if order == LoadOrder.ASC else AnchorType.LTE
        case AnchorType.LTE:
            return AnchorType.LTE if order == LoadOrder.ASC else AnchorType.GTE
    raise ValueError(f"unknown anchor type: {anchor_type}")


def compute_orientation(adapter: Adapter, args: ConnectionArgs, context: Any) -> FetchPlan:
    """
    Return the plan to fetch the records of a page from the data store.

    Parameters:
    • adapter: adapter that provides default and maximum page sizes
    • args: connection arguments of the page
    • context: context of the request

    Raises ConnectionArgsError if both "first" and "last" are requested.
    """

    if args.first and args.last:
        raise ConnectionArgsError("'first' and 'last' keys are not supported at the same time")

    limit = adapter.default(context)

    # the last N of a page are the first N of the store in inverse order
    order = invert_order(args.order) if args.last else args.order

    if args.first:
        limit = min(args.first, adapter.limit(context))

    if args.last:
        limit = min(args.last, adapter.limit(context))

    anchors = []

    if args.after:
        anchors.append(
            Anchor(type=adapt_anchor_type(AnchorType.GT, args.order), cursor=args.after)
        )

    if args.before:
        anchors.append(
            Anchor(type=adapt_anchor_type(AnchorType.LT, args.order), cursor=args.before)
        )

    plan = FetchPlan(limit=limit, anchors=tuple(anchors), order=order)
    _logger.debug("computed fetch plan %s", plan)
    return plan
