import asyncio
from typing import Any, Awaitable, Callable, Optional, Set


class Debouncer:
    """
    Collapse bursts of calls to an async function into one call.

    Each call restarts a timer of ``wait`` seconds. When the timer fires,
    ``func`` runs once with the arguments of the most recent call, and every
    caller waiting on that burst gets the same result or the same exception.

    Args:
        func: Coroutine function to call
        wait: Quiet period in seconds before the call is made
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], wait: float):
        self.func = func
        self.wait = wait
        self._handle: Optional[asyncio.TimerHandle] = None
        self._future: Optional[asyncio.Future] = None
        self._args: tuple = ()
        self._kwargs: dict = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._future is not None

    async def __call__(self, *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        self._args, self._kwargs = args, kwargs

        if self._future is None:
            self._future = loop.create_future()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.wait, self._fire)

        # A cancelled caller must not cancel the call the others wait on
        return await asyncio.shield(self._future)

    def _fire(self) -> None:
        future, args, kwargs = self._future, self._args, self._kwargs
        self._future = None
        self._handle = None

        task = asyncio.ensure_future(self.func(*args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._settle(future, t))

    def _settle(self, future: asyncio.Future, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if future.done():
            return
        if task.cancelled():
            future.cancel()
        elif task.exception() is not None:
            future.set_exception(task.exception())
        else:
            future.set_result(task.result())
