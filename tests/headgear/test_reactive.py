import asyncio
import logging

import pytest

from headgear.reactive import ComputedAsync, Signal, Superseded, SupersededToken

from .utils import wait_for

logger = logging.getLogger(__name__)


def _state(cell):
    try:
        return cell.value
    except Exception as e:
        return e


@pytest.mark.asyncio
async def test_computed_async_updates_as_sources_change():
    src1 = Signal(42)
    src2 = Signal("abc")

    async def compute(values, superseded):
        return "%s:%s" % (values["src1"], values["src2"])

    result = ComputedAsync({"src1": src1, "src2": src2}, compute, initial="initial value")
    assert result.value == "initial value"
    assert result.computing

    await wait_for(lambda: result.value == "42:abc")
    assert not result.computing

    src1.value = 12
    # value hasn't updated yet
    assert result.value == "42:abc"
    assert result.computing
    await result.wait()
    assert result.value == "12:abc"


@pytest.mark.asyncio
async def test_computed_async_failed_compute_raises_on_read():
    src1 = Signal(42)

    async def compute(values, superseded):
        raise ValueError("oops")

    result = ComputedAsync({"src1": src1}, compute, initial="initial value")
    await result.wait()
    with pytest.raises(ValueError, match="oops"):
        result.value
    assert not result.computing


@pytest.mark.asyncio
async def test_computed_async_error_is_replaced_by_later_value():
    src1 = Signal(0)

    async def compute(values, superseded):
        if values["src1"] == 0:
            raise ValueError("zero")
        return values["src1"]

    result = ComputedAsync({"src1": src1}, compute, initial=None)
    await result.wait()
    assert isinstance(_state(result), ValueError)
    src1.value = 5
    await result.wait()
    assert result.value == 5


@pytest.mark.asyncio
async def test_superseded_compute_calls_are_notified_and_ignored():
    src1 = Signal(0)
    compute_calls = []
    superseded_calls = []
    result_states = []

    async def compute(values, superseded):
        compute_calls.append(values["src1"])
        try:
            await asyncio.wait_for(superseded.wait(), timeout=0.05)
        except asyncio.TimeoutError:
            pass
        if superseded.superseded:
            superseded_calls.append(values["src1"])
            raise Superseded()
        return str(values["src1"])

    result = ComputedAsync({"src1": src1}, compute, initial="initial value")
    result.subscribe(lambda: result_states.append(_state(result)))

    for i in [1, 2, 3]:
        src1.value = i

    await wait_for(lambda: result.value == "3")
    await asyncio.sleep(0.1)
    assert compute_calls == [0, 1, 2, 3]
    assert superseded_calls == [0, 1, 2]
    assert result_states == ["3"]


@pytest.mark.asyncio
async def test_late_result_of_earlier_call_is_discarded():
    src1 = Signal(1)
    release = {1: asyncio.Event(), 2: asyncio.Event()}

    async def compute(values, superseded):
        # Ignores the token, so the earlier call runs to completion.
        await release[values["src1"]].wait()
        return values["src1"]

    result = ComputedAsync({"src1": src1}, compute, initial=0)
    src1.value = 2
    release[2].set()
    await result.wait()
    assert result.value == 2

    release[1].set()
    await asyncio.sleep(0.01)
    assert result.value == 2
    assert not result.computing


@pytest.mark.asyncio
async def test_superseded_failure_is_logged_not_raised(caplog):
    src1 = Signal(1)
    release = asyncio.Event()

    async def compute(values, superseded):
        if values["src1"] == 1:
            await release.wait()
            raise RuntimeError("stale failure")
        return values["src1"]

    result = ComputedAsync({"src1": src1}, compute, initial=0)
    src1.value = 2
    await result.wait()
    with caplog.at_level(logging.WARNING, logger="headgear.reactive"):
        release.set()
        await asyncio.sleep(0.01)
    assert result.value == 2
    assert "stale failure" in caplog.text


@pytest.mark.asyncio
async def test_voluntary_superseded_keeps_state():
    src1 = Signal(1)

    async def compute(values, superseded):
        if values["src1"] == 2:
            raise Superseded()
        return values["src1"]

    result = ComputedAsync({"src1": src1}, compute, initial=0)
    await result.wait()
    src1.value = 2
    await result.wait()
    assert result.value == 1
    assert not result.computing


@pytest.mark.asyncio
async def test_superseded_is_not_caught_by_exception_handlers():
    token = SupersededToken()
    token._supersede()
    caught = []
    with pytest.raises(Superseded):
        try:
            token.check()
        except Exception as e:
            caught.append(e)
    assert caught == []


def test_superseded_cannot_be_subclassed():
    with pytest.raises(TypeError):

        class MySuperseded(Superseded):
            pass


@pytest.mark.asyncio
async def test_token_settles_once():
    token = SupersededToken()
    token._finish()
    token._supersede()
    assert await token.wait() is False
    assert not token.superseded

    token = SupersededToken()
    token._supersede()
    token._finish()
    assert await token.wait() is True
    token_repr = repr(token)
    assert "superseded=True" in token_repr


@pytest.mark.asyncio
async def test_cells_are_notified_before_subscribers():
    src1 = Signal(1)
    tokens = []

    async def compute(values, superseded):
        tokens.append(superseded)
        return values["src1"]

    result = ComputedAsync({"src1": src1}, compute, initial=0)
    await result.wait()
    observed = []
    src1.subscribe(lambda: observed.append(result.computing))
    src1.value = 2
    assert observed == [True]
    await result.wait()
    assert result.value == 2


@pytest.mark.asyncio
async def test_chained_cells():
    src = Signal(2)

    async def double(values, superseded):
        return values["n"] * 2

    async def describe(values, superseded):
        return "value: %d" % values["doubled"]

    doubled = ComputedAsync({"n": src}, double, initial=0)
    described = ComputedAsync({"doubled": doubled}, describe, initial="")
    await wait_for(lambda: described.value == "value: 4")
    src.value = 5
    await wait_for(lambda: described.value == "value: 10")


@pytest.mark.asyncio
async def test_upstream_error_flows_downstream():
    src = Signal(0)

    async def invert(values, superseded):
        return 1 / values["n"]

    async def describe(values, superseded):
        return "%.2f" % values["inverse"]

    inverse = ComputedAsync({"n": src}, invert, initial=1.0)
    described = ComputedAsync({"inverse": inverse}, describe, initial="")
    await wait_for(lambda: not isinstance(_state(inverse), float))
    assert isinstance(_state(described), ZeroDivisionError)

    src.value = 4
    await wait_for(lambda: _state(described) == "0.25")


@pytest.mark.asyncio
async def test_close_stops_recomputing():
    src = Signal(1)
    calls = []

    async def compute(values, superseded):
        calls.append(values["n"])
        return values["n"]

    result = ComputedAsync({"n": src}, compute, initial=0)
    await result.wait()
    result.close()
    src.value = 2
    await asyncio.sleep(0.01)
    assert calls == [1]
    assert result.value == 1


@pytest.mark.asyncio
async def test_signal_ignores_identical_value():
    value = object()
    src = Signal(value)
    notified = []
    unsubscribe = src.subscribe(lambda: notified.append(src.value))
    src.value = value
    assert notified == []
    other = object()
    src.value = other
    assert notified == [other]
    unsubscribe()
    src.value = value
    assert notified == [other]


@pytest.mark.asyncio
async def test_cancelled_compute_settles_cell():
    src = Signal(1)

    async def compute(values, superseded):
        if values["n"] == 2:
            future = asyncio.get_running_loop().create_future()
            future.cancel()
            await future
        return values["n"]

    result = ComputedAsync({"n": src}, compute, initial=0)
    await result.wait()
    src.value = 2
    await asyncio.wait_for(result.wait(), timeout=1.0)
    assert not result.computing
    assert result.value == 1

    src.value = 3
    await result.wait()
    assert result.value == 3
