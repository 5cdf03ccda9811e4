import asyncio
import pytest

from relaypager.loader import LoaderRegistry, PageLoader


class Fetcher:
    def __init__(self, fail: Exception | None = None):
        self.calls = []
        self.fail = fail

    async def __call__(self, key):
        self.calls.append(key)
        await asyncio.sleep(0)
        if self.fail:
            raise self.fail
        return f"value-{key}"


async def test_page_loader_single():
    fetch = Fetcher()
    loader = PageLoader(fetch)
    assert await loader.get() == "value-0"
    assert await loader.get() == "value-0"
    assert fetch.calls == [0]


async def test_page_loader_concurrent():
    fetch = Fetcher()
    loader = PageLoader(fetch)
    results = await asyncio.gather(*(loader.get() for _ in range(10)))
    assert results == ["value-0"] * 10
    assert fetch.calls == [0]


async def test_page_loader_shares_result():
    async def fetch(key):
        return [key]

    loader = PageLoader(fetch)
    a, b = await asyncio.gather(loader.get(), loader.get())
    assert a is b


async def test_page_loader_keys():
    fetch = Fetcher()
    loader = PageLoader(fetch)
    results = await asyncio.gather(loader.get("a"), loader.get("b"), loader.get("a"))
    assert results == ["value-a", "value-b", "value-a"]
    assert sorted(fetch.calls) == ["a", "b"]
    assert await loader.get("b") == "value-b"
    assert sorted(fetch.calls) == ["a", "b"]


async def test_page_loader_failure_not_retried():
    error = LookupError("nope")
    fetch = Fetcher(fail=error)
    loader = PageLoader(fetch)
    results = await asyncio.gather(loader.get(), loader.get(), return_exceptions=True)
    assert results == [error, error]
    with pytest.raises(LookupError):
        await loader.get()
    assert fetch.calls == [0]


async def test_page_loader_failure_per_key():
    async def fetch(key):
        if key == "bad":
            raise KeyError(key)
        return key

    loader = PageLoader(fetch)
    good, bad = await asyncio.gather(
        loader.get("good"), loader.get("bad"), return_exceptions=True
    )
    assert good == "good"
    assert isinstance(bad, KeyError)


async def test_registry_batches_with_context():
    batches = []

    async def double(keys, context):
        batches.append((list(keys), context))
        return [key * context["factor"] for key in keys]

    registry = LoaderRegistry()
    registry.set_context({"factor": 2})
    loader = registry.loader(double)
    assert await asyncio.gather(loader.load(1), loader.load(2), loader.load(1)) == [2, 4, 2]
    assert batches == [([1, 2], {"factor": 2})]


async def test_registry_same_loader():
    async def identity(keys, context):
        return keys

    registry = LoaderRegistry()
    registry.set_context(object())
    assert registry.loader(identity) is registry.loader(identity)
    registry.clear()
    loader = registry.loader(identity)
    assert loader is registry.loader(identity)
    assert await loader.load("x") == "x"


def test_registry_context_required():
    async def identity(keys, context):
        return keys

    registry = LoaderRegistry()
    with pytest.raises(RuntimeError):
        registry.loader(identity)


def test_registry_context_immutable():
    registry = LoaderRegistry()
    context = object()
    registry.set_context(context)
    registry.set_context(context)
    assert registry.context is context
    with pytest.raises(RuntimeError):
        registry.set_context(object())


async def test_registries_isolated():
    async def identity(keys, context):
        return keys

    first = LoaderRegistry()
    first.set_context(1)
    second = LoaderRegistry()
    second.set_context(2)
    assert first.loader(identity) is not second.loader(identity)
