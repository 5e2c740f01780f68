"""Tests for handler wrapping and invocation."""

import threading

import pytest

from apebot.bot import Bot
from apebot.handler import Handler, HandlerFunc, as_handler, invoke


@pytest.mark.asyncio
async def test_handler_func_wraps_sync_function(make_event):
    seen = []
    handler = HandlerFunc(lambda event, args: seen.append(args))

    await handler.handle_event(make_event("x"), ["a"])

    assert seen == [["a"]]


@pytest.mark.asyncio
async def test_handler_func_awaits_coroutine_function(make_event):
    seen = []

    async def fn(event, args):
        seen.append(event.text)

    await HandlerFunc(fn).handle_event(make_event("hello"), [])

    assert seen == ["hello"]


def test_as_handler_returns_handler_objects_unchanged(recorder_factory):
    rec = recorder_factory()
    bot = Bot()
    assert as_handler(rec) is rec
    assert as_handler(bot) is bot
    assert isinstance(bot, Handler)


def test_as_handler_wraps_callables():
    def fn(event, args):
        pass

    handler = as_handler(fn)
    assert isinstance(handler, HandlerFunc)
    assert handler.func is fn
    assert "fn" in repr(handler)


def test_as_handler_rejects_other_values():
    with pytest.raises(TypeError, match="str"):
        as_handler("not a handler")


@pytest.mark.asyncio
async def test_invoke_supports_sync_handler_objects(make_event, recorder_factory):
    rec = recorder_factory()
    event = make_event("x")

    await invoke(rec, event, None)
    await invoke(rec, event, ("a", "b"))

    assert rec.calls == [(event, []), (event, ["a", "b"])]


@pytest.mark.asyncio
async def test_invoke_awaits_async_handler_objects(make_event):
    class AsyncHandler:
        def __init__(self):
            self.count = 0

        async def handle_event(self, event, args):
            self.count += 1

    handler = AsyncHandler()
    await invoke(handler, make_event("x"), [])

    assert handler.count == 1


@pytest.mark.asyncio
async def test_sync_handlers_run_off_the_event_loop_thread(make_event, recorder_factory):
    loop_thread = threading.get_ident()
    seen = []
    rec = recorder_factory()

    await HandlerFunc(lambda event, args: seen.append(threading.get_ident())).handle_event(
        make_event("x"), []
    )
    await invoke(rec, make_event("y"), None)

    assert seen and seen[0] != loop_thread
    assert len(rec.calls) == 1
