import asyncio

import pytest

from chat_relay.domain.exceptions import ApiError
from chat_relay.domain.models import RelayEvent
from chat_relay.relay.emitter import EmitterClosedError, QueueEmitter


def test_events_in_order_until_complete():
    async def run():
        emitter = QueueEmitter(maxsize=8)
        await emitter.send(RelayEvent("chat", "a"))
        await emitter.send(RelayEvent("chat", "b"))
        await emitter.complete()
        return [e async for e in emitter.events()]

    assert asyncio.run(run()) == [RelayEvent("chat", "a"), RelayEvent("chat", "b")]


def test_error_raised_after_pending_events():
    async def run():
        emitter = QueueEmitter(maxsize=8)
        await emitter.send(RelayEvent("chat", "a"))
        await emitter.complete_with_error(ApiError(code="API_ERROR", message="x"))
        received = []
        with pytest.raises(ApiError):
            async for e in emitter.events():
                received.append(e)
        return received

    assert asyncio.run(run()) == [RelayEvent("chat", "a")]


def test_send_after_close_is_rejected():
    async def run():
        emitter = QueueEmitter()
        await emitter.complete()
        await emitter.complete_with_error(RuntimeError("ignored"))
        assert emitter.error is None
        with pytest.raises(EmitterClosedError):
            await emitter.send(RelayEvent("chat", "late"))

    asyncio.run(run())


def test_sse_framing():
    assert RelayEvent("chat", "hello").to_sse() == "event: chat\ndata: hello\n\n"
    assert RelayEvent("done", "").to_sse() == "event: done\ndata: \n\n"
    assert RelayEvent("chat", "a\nb").to_sse() == "event: chat\ndata: a\ndata: b\n\n"


def test_sse_framing_splits_carriage_returns():
    assert RelayEvent("chat", "a\rb\r\nc").to_sse() == "event: chat\ndata: a\ndata: b\ndata: c\n\n"
