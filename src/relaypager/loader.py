"""
Module to coalesce loads that are requested while resolving a single request.

Loaders are built on DataLoader, which collects the keys requested in the same iteration of
the event loop into a single batch, and caches the future of each key. Any number of
concurrent or subsequent requests for a key therefore share one underlying load. If a load
fails, the failure is cached as well: every waiter observes the same exception, and the load
is not retried.

Loaders must be scoped to a single request; they must not be shared across requests.
"""

import asyncio
import logging

from collections.abc import Awaitable, Callable, Hashable, Sequence
from strawberry.dataloader import DataLoader
from typing import Generic, TypeVar


_logger = logging.getLogger(__name__)


# type variables
K = TypeVar("K", bound=Hashable)  # key type variable
V = TypeVar("V")  # value type variable
C = TypeVar("C")  # context type variable


BatchFunction = Callable[[list[K], C], Awaitable[Sequence[V]]]


class PageLoader(Generic[K, V]):
    """
    Single-flight loader of values by key.

    Parameters:
    • fetch: coroutine function that fetches the value of a key

    The fetch function is called at most once per key, regardless of how many times, or how
    concurrently, the value of the key is requested. To load a single value, use any
    constant key.
    """

    def __init__(self, fetch: Callable[[K], Awaitable[V]]):
        self._fetch = fetch
        self._loader: DataLoader[K, V] = DataLoader(load_fn=self._batch)

    async def _batch(self, keys: list[K]) -> list[V | BaseException]:
        _logger.debug("fetching keys %s", keys)
        return await asyncio.gather(*(self._fetch(key) for key in keys), return_exceptions=True)

    def get(self, key: K = 0) -> Awaitable[V]:
        """Return an awaitable for the value of a key."""
        return self._loader.load(key)


class LoaderRegistry(Generic[C]):
    """
    Registry of loaders for a single request, one per batch function.

    A batch function receives the list of keys to load and the request context, and must
    return the list of values, in the same order as the keys. The context must be set before
    any loader is requested; once set, it cannot be changed.
    """

    def __init__(self):
        self._context: C | None = None
        self._loaders: dict[BatchFunction, DataLoader] = {}

    @property
    def context(self) -> C | None:
        """Context the loaders of this registry are bound to."""
        return self._context

    def set_context(self, context: C) -> None:
        """Bind the registry to the context of the request."""
        if self._context is not None and self._context is not context:
            raise RuntimeError("registry context is already set")
        self._context = context

    def loader(self, batch_fn: BatchFunction[K, C, V]) -> DataLoader[K, V]:
        """Return the loader for a batch function, creating it upon first request."""
        if self._context is None:
            raise RuntimeError("registry context is not set")
        loader = self._loaders.get(batch_fn)
        if loader is None:
            context = self._context

            async def load_fn(keys: list[K]) -> Sequence[V]:
                return await batch_fn(keys, context)

            loader = self._loaders[batch_fn] = DataLoader(load_fn=load_fn)
        return loader

    def clear(self) -> None:
        """Discard all loaders, and their cached values."""
        self._loaders.clear()
