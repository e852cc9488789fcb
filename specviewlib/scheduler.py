"""Single-flight render scheduling with coalescing."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from .log import dbg
from .models import SchedulerState

RenderFn = Callable[[], Awaitable[Any]]


class RenderScheduler:
    """Runs at most one render at a time.

    ``request_render()`` while idle starts a render right away.  Requests
    made while a render is in flight all share one pending re-render, which
    starts as soon as the current one finishes and reads whatever state is
    live at that moment.  However many requests arrive, at most one render
    is waiting.

    Every request returns a future resolved with the result (or exception)
    of the render that served it.  A failing render only fails its own
    waiters; the scheduler goes back to idle or starts the pending render
    as usual.
    """

    def __init__(self, render: RenderFn):
        self._render = render
        self._state = SchedulerState.IDLE
        self._pending: list[asyncio.Future] = []
        self._current: asyncio.Task | None = None
        self._render_count = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def render_count(self) -> int:
        """Renders started since construction."""
        return self._render_count

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def request_render(self) -> asyncio.Future:
        """Ask for a render; returns a future for its result.

        Each caller gets its own future, so cancelling one does not affect
        the others waiting on the same render.
        """
        waiter = asyncio.get_running_loop().create_future()
        if self._state is SchedulerState.IDLE:
            self._start([waiter])
        else:
            if self._pending:
                dbg("Render in flight; coalesced into pending re-render")
            else:
                dbg("Render in flight; scheduling one re-render")
            self._pending.append(waiter)
        return waiter

    async def wait_idle(self) -> None:
        """Wait until no render is running or pending."""
        while self._current is not None:
            await asyncio.wait({self._current})

    def _start(self, waiters: list[asyncio.Future]) -> None:
        self._state = SchedulerState.RENDERING
        self._render_count += 1
        dbg(f"Render #{self._render_count} started for {len(waiters)} request(s)")
        task = asyncio.ensure_future(self._render())
        self._current = task
        task.add_done_callback(lambda t: self._on_done(t, waiters))

    def _on_done(self, task: asyncio.Task, waiters: list[asyncio.Future]) -> None:
        error = None
        if not task.cancelled():
            # retrieve up front so asyncio does not warn when nobody listens
            error = task.exception()
        for waiter in waiters:
            if waiter.done():
                continue
            if task.cancelled():
                waiter.cancel()
            elif error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(task.result())

        pending, self._pending = self._pending, []
        if not pending:
            self._current = None
            self._state = SchedulerState.IDLE
            dbg("Render finished; idle")
        else:
            self._start(pending)
