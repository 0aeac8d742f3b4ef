import asyncio
import logging

import pytest

from headgear.serialise import ExecutionSerializer, serialise_executions

logger = logging.getLogger(__name__)


def _expected_events(count):
    events = []
    for i in range(count):
        events.append(("started", i))
        events.append(("stopped", i))
    return events


@pytest.fixture
def events():
    return []


@pytest.fixture
def succeeding(events):
    @serialise_executions
    async def fn(i):
        events.append(("started", i))
        await asyncio.sleep(0.02)
        events.append(("stopped", i))
        return str(i)

    return fn


@pytest.fixture
def failing(events):
    @serialise_executions
    async def fn(i):
        events.append(("started", i))
        await asyncio.sleep(0.02)
        try:
            raise ValueError("%d failed" % i)
        finally:
            events.append(("stopped", i))

    return fn


@pytest.mark.asyncio
async def test_non_overlapping_calls(succeeding, events):
    assert await succeeding(0) == "0"
    assert await succeeding(1) == "1"
    assert await succeeding(2) == "2"
    assert events == _expected_events(3)


@pytest.mark.asyncio
async def test_overlapping_calls(succeeding, events):
    results = await asyncio.gather(*(succeeding(i) for i in range(3)))
    assert results == ["0", "1", "2"]
    assert events == _expected_events(3)


@pytest.mark.asyncio
async def test_non_overlapping_failing_calls(failing, events):
    for i in range(3):
        with pytest.raises(ValueError, match="%d failed" % i):
            await failing(i)
    assert events == _expected_events(3)


@pytest.mark.asyncio
async def test_overlapping_failing_calls(failing, events):
    results = await asyncio.gather(
        *(failing(i) for i in range(3)), return_exceptions=True
    )
    assert [str(r) for r in results] == ["0 failed", "1 failed", "2 failed"]
    assert events == _expected_events(3)


@pytest.mark.asyncio
async def test_no_lost_updates():
    counter = {"value": 0}
    reads = []

    @serialise_executions
    async def increment():
        value = counter["value"]
        reads.append(value)
        await asyncio.sleep(0.01)
        counter["value"] = value + 1

    await asyncio.gather(increment(), increment(), increment())
    assert counter["value"] == 3
    assert reads == [0, 1, 2]


@pytest.mark.asyncio
async def test_fifo_order_with_late_arrival():
    serializer = ExecutionSerializer()
    order = []

    async def worker(name, delay=0.0):
        await asyncio.sleep(delay)
        async with serializer:
            order.append(name)
            await asyncio.sleep(0.01)

    await asyncio.gather(
        worker("a"), worker("b"), worker("c"), worker("late", delay=0.005)
    )
    assert order == ["a", "b", "c", "late"]
    assert not serializer.locked


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_queue():
    serializer = ExecutionSerializer()
    order = []

    async def worker(name):
        async with serializer:
            order.append(name)
            await asyncio.sleep(0.01)

    first = asyncio.ensure_future(worker("first"))
    second = asyncio.ensure_future(worker("second"))
    third = asyncio.ensure_future(worker("third"))
    await asyncio.sleep(0)
    assert serializer.waiting == 2
    second.cancel()
    await asyncio.gather(first, third)
    with pytest.raises(asyncio.CancelledError):
        await second
    assert order == ["first", "third"]
    assert not serializer.locked
    assert serializer.waiting == 0


def test_release_unlocked():
    with pytest.raises(RuntimeError):
        ExecutionSerializer().release()
