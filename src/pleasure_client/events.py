"""In-process event emitter shared by the session and realtime components.

Events emitted by an :class:`~pleasure_client.client.ApiClient`:

========== ================================ =====================================
Event      Arguments                        Emitted when
========== ================================ =====================================
login      ``profile``                      credentials with a token are applied
logout     ``previous_profile``             an authenticated session is cleared
connect    --                               the realtime socket is connected
disconnect --                               the realtime socket dropped
error      ``error``                        the realtime socket failed
create     ``{entity, payload}``            an entry was created server-side
update     ``{entity, payload}``            an entry was updated server-side
delete     ``{entity, payload}``            an entry was deleted server-side
``*``      ``event_name, payload``          any inbound realtime event
========== ================================ =====================================

:meth:`EventEmitter.on` returns a :class:`Subscription`; calling it (or its
:meth:`~Subscription.cancel` method) removes exactly that registration.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional

from pleasure_client.output import get_output

Handler = Callable[..., Any]


class _Listener:
    __slots__ = ("handler", "once")

    def __init__(self, handler: Handler, once: bool) -> None:
        self.handler = handler
        self.once = once


class Subscription:
    """Handle returned by :meth:`EventEmitter.on` and :meth:`EventEmitter.once`."""

    def __init__(self, emitter: EventEmitter, event: str, listener: _Listener) -> None:
        self._emitter = emitter
        self._listener = listener
        self.event = event

    @property
    def active(self) -> bool:
        return self._emitter._contains(self.event, self._listener)

    def cancel(self) -> None:
        """Unsubscribe.  Calling it more than once is harmless."""
        self._emitter._remove(self.event, self._listener)

    def __call__(self) -> None:
        self.cancel()

    def __repr__(self) -> str:
        return f"<Subscription {self.event!r} active={self.active}>"


class EventEmitter:
    """Synchronous fan-out of named events to registered handlers.

    Handlers run in subscription order.  A handler returning an awaitable
    has it scheduled on the running event loop.  An exception raised by one
    handler is logged and does not prevent later handlers from running.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[_Listener]] = {}
        self._tasks: set[asyncio.Task] = set()

    def on(self, event: str, handler: Handler) -> Subscription:
        """Call *handler* every time *event* is emitted."""
        return self._add(event, handler, once=False)

    def once(self, event: str, handler: Handler) -> Subscription:
        """Call *handler* the next time *event* is emitted only."""
        return self._add(event, handler, once=True)

    def off(self, event: str, handler: Optional[Handler] = None) -> None:
        """Remove every registration of *handler* for *event*.

        Without *handler*, every handler of *event* is removed.
        """
        if handler is None:
            self._listeners.pop(event, None)
            return
        listeners = self._listeners.get(event, [])
        self._listeners[event] = [lst for lst in listeners if lst.handler != handler]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> int:
        """Invoke the handlers of *event* with *args*.

        Returns:
            The number of handlers invoked.
        """
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            if listener.once:
                self._remove(event, listener)
            self._invoke(event, listener.handler, args)
        return len(listeners)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _add(self, event: str, handler: Handler, once: bool) -> Subscription:
        if not callable(handler):
            raise TypeError(f"Handler for {event!r} must be callable, got {handler!r}")
        listener = _Listener(handler, once)
        self._listeners.setdefault(event, []).append(listener)
        return Subscription(self, event, listener)

    def _remove(self, event: str, listener: _Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def _contains(self, event: str, listener: _Listener) -> bool:
        return listener in self._listeners.get(event, [])

    def _invoke(self, event: str, handler: Handler, args: tuple) -> None:
        try:
            result = handler(*args)
        except Exception as exc:
            get_output().warning(f"Handler for '{event}' failed: {exc}")
            return

        if not inspect.isawaitable(result):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(result):
                result.close()
            get_output().warning(f"Async handler for '{event}' dropped: no running event loop")
            return

        task = asyncio.ensure_future(result, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._task_done(event, done))

    def _task_done(self, event: str, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            get_output().warning(f"Handler for '{event}' failed: {exc}")
