import asyncio
import time
from typing import Awaitable, Callable, Optional, Protocol, Set

TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Time source and timer scheduler used by the session controller"""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle: ...


class _AsyncioTimer:
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle
        self.task: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        self._handle.cancel()
        if self.task and not self.task.done():
            self.task.cancel()


class AsyncioClock:
    """Runs timer callbacks as tasks on the running event loop"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        timer: _AsyncioTimer

        def fire() -> None:
            task = loop.create_task(callback())
            timer.task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        timer = _AsyncioTimer(loop.call_later(delay, fire))
        return timer
