"""Tests for the in-process event emitter."""

from __future__ import annotations

import asyncio

import pytest

from pleasure_client.events import EventEmitter
from pleasure_client.output import OutputManager, set_output


class TestSubscribe:
    def test_handlers_run_in_subscription_order(self) -> None:
        emitter = EventEmitter()
        calls: list = []
        emitter.on("login", lambda profile: calls.append(("first", profile)))
        emitter.on("login", lambda profile: calls.append(("second", profile)))

        assert emitter.emit("login", "olivia") == 2
        assert calls == [("first", "olivia"), ("second", "olivia")]

    def test_emit_without_handlers(self) -> None:
        assert EventEmitter().emit("nothing") == 0

    def test_once_fires_a_single_time(self) -> None:
        emitter = EventEmitter()
        calls: list = []
        emitter.once("connect", lambda: calls.append("connect"))

        emitter.emit("connect")
        emitter.emit("connect")

        assert calls == ["connect"]
        assert emitter.listener_count("connect") == 0

    def test_non_callable_rejected(self) -> None:
        with pytest.raises(TypeError):
            EventEmitter().on("login", "not callable")


class TestUnsubscribe:
    def test_subscription_cancels_exactly_its_registration(self) -> None:
        emitter = EventEmitter()
        calls: list = []

        def handler() -> None:
            calls.append(1)

        first = emitter.on("connect", handler)
        second = emitter.on("connect", handler)

        first()
        assert not first.active
        assert second.active
        emitter.emit("connect")
        assert calls == [1]

    def test_cancel_twice_is_harmless(self) -> None:
        emitter = EventEmitter()
        subscription = emitter.on("connect", lambda: None)
        subscription.cancel()
        subscription.cancel()
        assert "active=False" in repr(subscription)

    def test_off_with_handler(self) -> None:
        emitter = EventEmitter()
        handler = lambda: None  # noqa: E731
        emitter.on("connect", handler)
        emitter.on("connect", lambda: None)

        emitter.off("connect", handler)

        assert emitter.listener_count("connect") == 1

    def test_off_without_handler_removes_all(self) -> None:
        emitter = EventEmitter()
        emitter.on("connect", lambda: None)
        emitter.on("connect", lambda: None)
        emitter.off("connect")
        assert emitter.listener_count("connect") == 0


class TestHandlerFailures:
    def test_failure_does_not_stop_later_handlers(self, capsys: pytest.CaptureFixture[str]) -> None:
        set_output(OutputManager(no_color=True))
        emitter = EventEmitter()
        calls: list = []

        def broken(_: object) -> None:
            raise ValueError("bad handler")

        emitter.on("update", broken)
        emitter.on("update", calls.append)

        emitter.emit("update", "payload")

        assert calls == ["payload"]
        assert "bad handler" in capsys.readouterr().err

    def test_async_handler_without_loop_is_dropped(self, capsys: pytest.CaptureFixture[str]) -> None:
        set_output(OutputManager(no_color=True))
        emitter = EventEmitter()

        async def handler() -> None:
            pass

        emitter.on("connect", handler)
        emitter.emit("connect")

        assert "no running event loop" in capsys.readouterr().err


class TestAsyncHandlers:
    @pytest.mark.anyio
    async def test_coroutine_handlers_are_scheduled(self) -> None:
        emitter = EventEmitter()
        done = asyncio.Event()

        async def handler(payload: str) -> None:
            await asyncio.sleep(0)
            done.set()

        emitter.on("create", handler)
        emitter.emit("create", "payload")

        await asyncio.wait_for(done.wait(), timeout=1)

    @pytest.mark.anyio
    async def test_async_failures_are_logged(self, capsys: pytest.CaptureFixture[str]) -> None:
        set_output(OutputManager(no_color=True))
        emitter = EventEmitter()

        async def handler() -> None:
            raise RuntimeError("async boom")

        emitter.on("connect", handler)
        emitter.emit("connect")
        await asyncio.sleep(0.01)

        assert "async boom" in capsys.readouterr().err
