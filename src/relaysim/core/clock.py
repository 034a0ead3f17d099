"""
Clock: virtual time and the only source of suspension in the simulation.

The clock keeps a heap of pending (fire_time, sequence, callback) entries.
Running the clock pops the earliest entry, jumps virtual time straight to its
fire time and invokes the callback. Callbacks may schedule more callbacks;
the clock keeps draining until nothing is left.

Coroutines are driven by Task objects. A coroutine suspends by awaiting
`clock.sleep(duration)` or `clock.gather(*tasks)`; the task parks itself on the
heap and resumes when the entry fires. Nothing else ever yields, so code
between two awaits runs atomically with respect to the rest of the simulation.

Ties in fire time are broken by scheduling order, so every run with the same
inputs is reproducible.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Coroutine

from relaysim.core.errors import TaskCancelled

logger = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledCall:
    """A pending continuation. Cancelling it makes the clock skip it."""

    fire_time: float
    sequence: int
    callback: Callable[[], Any] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class Sleep:
    """Awaitable that parks the current task for `duration` of virtual time."""

    def __init__(self, duration: float):
        if duration < 0:
            raise ValueError(f"Cannot sleep for a negative duration: {duration}")
        self.duration = duration

    def __await__(self):
        yield self

    def park(self, task: Task) -> None:
        task._waiting_on = task.clock.delay(task._step, self.duration)


class Gather:
    """
    Awaitable that parks the current task until all child tasks are done.

    Resolves to the list of child results in argument order. If any child
    failed or was cancelled, the first such error is thrown into the waiting
    coroutine once every child has finished.
    """

    def __init__(self, tasks: list[Task]):
        self.tasks = list(tasks)
        self._waiter: Task | None = None

    def __await__(self):
        results = yield self
        return results

    def park(self, task: Task) -> None:
        self._waiter = task
        if all(child.done() for child in self.tasks):
            # Resume through the heap; the waiter is still executing here.
            self._resume()
            return
        for child in self.tasks:
            child.awaited = True
            child.add_done_callback(self._child_done)

    def _child_done(self, child: Task) -> None:
        if all(t.done() for t in self.tasks):
            self._resume()

    def _resume(self) -> None:
        waiter = self._waiter
        if waiter is None or waiter.done():
            return
        self._waiter = None
        error = None
        for child in self.tasks:
            if child.cancelled():
                error = TaskCancelled(f"task {child.name} was cancelled")
                break
            if child.exception() is not None:
                error = child.exception()
                break
        if error is not None:
            callback = partial(waiter._step, error=error)
        else:
            callback = partial(waiter._step, [child.result() for child in self.tasks])
        waiter._waiting_on = waiter.clock.delay(callback, 0.0)


class Task:
    """
    A coroutine driven by the clock.

    The coroutine runs synchronously until it awaits a Sleep or Gather, at
    which point the task parks on the clock. When it returns, the task stores
    the result and fires its done callbacks.
    """

    def __init__(self, clock: Clock, coro: Coroutine, name: str | None = None):
        self.clock = clock
        self.name = name or getattr(coro, "__qualname__", "task")
        self._coro = coro
        self._done = False
        self._cancelled = False
        self._result: Any = None
        self._exception: BaseException | None = None
        self._callbacks: list[Callable[[Task], None]] = []
        self._waiting_on: ScheduledCall | None = None
        self.awaited = False  # Set once a Gather takes over this task's outcome

    def __repr__(self) -> str:
        if self._cancelled:
            status = "cancelled"
        elif self._done:
            status = "done"
        else:
            status = "pending"
        return f"Task({self.name!r}, {status})"

    def done(self) -> bool:
        return self._done

    def cancelled(self) -> bool:
        return self._cancelled

    def result(self) -> Any:
        """Return the coroutine's result, re-raising its exception if it failed."""
        if self._cancelled:
            raise TaskCancelled(f"task {self.name} was cancelled")
        if not self._done:
            raise RuntimeError(f"task {self.name} has not finished")
        if self._exception is not None:
            raise self._exception
        return self._result

    def exception(self) -> BaseException | None:
        if not self._done or self._cancelled:
            return None
        return self._exception

    def add_done_callback(self, callback: Callable[[Task], None]) -> None:
        if self._done:
            callback(self)
        else:
            self._callbacks.append(callback)

    def cancel(self) -> bool:
        """
        Cancel the task. Returns False if it had already finished.

        A task may cancel itself while running (a client shutting itself
        down); its coroutine is then closed at the next suspension point.
        """
        if self._done:
            return False
        if self._waiting_on is not None:
            self._waiting_on.cancel()
            self._waiting_on = None
        self._cancelled = True
        if self.clock.current_task is not self:
            self._coro.close()
        logger.debug("t=%.1f cancelled %s", self.clock.now, self.name)
        self._finish()
        return True

    def _step(self, value: Any = None, error: BaseException | None = None) -> None:
        if self._done:
            return
        self._waiting_on = None
        previous = self.clock.current_task
        self.clock.current_task = self
        try:
            if error is not None:
                command = self._coro.throw(error)
            else:
                command = self._coro.send(value)
        except StopIteration as stop:
            if not self._cancelled:
                self._result = stop.value
                self._finish()
            return
        except Exception as exc:
            if not self._cancelled:
                self._exception = exc
                if not self.awaited:
                    logger.error(
                        "t=%.1f task %s failed: %r", self.clock.now, self.name, exc
                    )
                self._finish()
            return
        finally:
            self.clock.current_task = previous

        if self._cancelled:
            self._coro.close()
            return
        if not isinstance(command, (Sleep, Gather)):
            self._coro.close()
            self._exception = TypeError(
                f"task {self.name} awaited unsupported object {command!r}"
            )
            logger.error("t=%.1f %s", self.clock.now, self._exception)
            self._finish()
            return
        command.park(self)

    def _finish(self) -> None:
        self._done = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)


class Clock:
    """
    Virtual clock with an ordered queue of pending continuations.

    Virtual time never decreases and only moves by jumping to the fire time
    of the next pending continuation.
    """

    def __init__(self, start_time: float = 0.0):
        self.now = float(start_time)
        self.current_task: Task | None = None
        self._queue: list[ScheduledCall] = []
        self._sequence = 0

    @property
    def pending(self) -> int:
        """Number of continuations still waiting to fire (cancelled ones excluded)."""
        return sum(1 for entry in self._queue if not entry.cancelled)

    def delay(self, callback: Callable[[], Any], duration: float) -> ScheduledCall:
        """Schedule `callback` at now + duration without suspending the caller."""
        if duration < 0:
            raise ValueError(f"Cannot schedule in the past: {duration}")
        entry = ScheduledCall(self.now + duration, self._sequence, callback)
        self._sequence += 1
        heapq.heappush(self._queue, entry)
        return entry

    def sleep(self, duration: float) -> Sleep:
        """Awaitable suspending the calling coroutine for `duration`."""
        return Sleep(duration)

    def gather(self, *tasks: Task) -> Gather:
        """Awaitable resolving to the results of all `tasks`."""
        return Gather(list(tasks))

    def spawn(self, coro: Coroutine, name: str | None = None) -> Task:
        """Wrap `coro` in a Task and run it up to its first suspension point."""
        task = Task(self, coro, name=name)
        task._step()
        return task

    def step(self) -> bool:
        """
        Fire the next pending continuation.

        Returns:
            False if nothing was left to fire
        """
        while self._queue:
            entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            self.now = entry.fire_time
            entry.callback()
            return True
        return False

    def run(self, until: float | None = None) -> int:
        """
        Drain the queue, optionally stopping before anything later than `until`.

        When `until` is given, virtual time ends at `until` even if the queue
        drained earlier.

        Returns:
            Number of continuations fired
        """
        fired = 0
        while self._queue:
            head = self._queue[0]
            if head.cancelled:
                heapq.heappop(self._queue)
                continue
            if until is not None and head.fire_time > until:
                break
            self.step()
            fired += 1
        if until is not None and until > self.now:
            self.now = until
        return fired
