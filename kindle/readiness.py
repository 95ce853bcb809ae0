"""
Readiness Barrier - Delays "ready" until every registered task completes.

Hooks register asynchronous work and get back a Token. Each completed token
emits a ``task_done`` event; a per-task watchdog emits an advisory
``timeout`` event when a task is slow. Once loading has finished and nothing
is pending, ``ready`` fires exactly once.

Usage:
    barrier = ReadinessBarrier(timeout=10.0)
    done = barrier.register("config-client")
    client.on_connected(done)
    ...
    barrier.mark_loaded()
    await barrier.wait_ready()
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple, Union

from .faults import ConfigurationFault, DuplicateRegistrationFault


logger = logging.getLogger("kindle.readiness")

DEFAULT_TIMEOUT = 10.0
ID_PREFIX = "task-"


class ReadinessEventKind(str, Enum):
    """Events emitted by the barrier."""
    TASK_DONE = "task_done"
    TIMEOUT = "timeout"
    READY = "ready"


@dataclass(frozen=True)
class ReadinessEvent:
    """Event emitted by a ReadinessBarrier."""
    kind: ReadinessEventKind
    task_id: Optional[str] = None
    remaining: Tuple[str, ...] = ()
    timeout: Optional[float] = None


@dataclass
class Task:
    """One outstanding asynchronous obligation."""
    id: str
    registered_at: float
    timed_out: bool = False
    handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False, compare=False)


class Token:
    """
    Single-use completion handle for one Task.

    Calling it completes the task; every later call is a no-op. A token only
    ever completes the task it was issued for, even if the same id is
    registered again after this one finished.
    """

    __slots__ = ("_barrier", "_task", "_used", "_lock")

    def __init__(self, barrier: "ReadinessBarrier", task: Task):
        self._barrier = barrier
        self._task = task
        self._used = False
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self._task.id

    @property
    def used(self) -> bool:
        return self._used

    def _consume(self) -> bool:
        with self._lock:
            if self._used:
                return False
            self._used = True
            return True

    def __call__(self, *args: Any) -> bool:
        # Extra arguments are ignored so the token can be passed
        # straight to callback APIs (e.g. Future.add_done_callback).
        return self._barrier.complete(self)

    def __repr__(self) -> str:
        return f"Token({self.id!r}, used={self._used})"


class ReadySignal:
    """
    Single-resolution signal with an observer list.

    ``fire()`` resolves the signal once; observers run exactly once, and
    observers added after resolution run immediately. Re-entrant fires from
    inside an observer are no-ops.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._fired = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def fired(self) -> bool:
        return self._fired

    def subscribe(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._fired:
                self._callbacks.append(callback)
                return
        self._run(callback)

    def unsubscribe(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def fire(self) -> bool:
        """Resolve the signal. Returns False if it had already fired."""
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            self._run(callback)
        return True

    async def wait(self, timeout: Optional[float] = None) -> None:
        """Wait until the signal fires (safe to fire from another thread)."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def _resolve():
            if not future.done():
                future.set_result(None)

        def _notify():
            loop.call_soon_threadsafe(_resolve)

        self.subscribe(_notify)
        try:
            await asyncio.wait_for(future, timeout)
        finally:
            self.unsubscribe(_notify)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f"Ready callback error: {e}", exc_info=True)


class ReadinessBarrier:
    """
    Registry of pending tasks gating a one-shot ready signal.

    Responsibilities:
    - Issue unique task ids and single-use tokens
    - Arm a timeout watchdog per task
    - Emit task_done / timeout / ready events
    - Fire ready once loading has finished and nothing is pending

    The pending mapping is guarded by a lock, so tokens may be called from
    worker threads. Watchdogs always run on the barrier's event loop, which
    is captured on first registration unless passed explicitly.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationFault("ready.timeout", f"must be a positive number, got {timeout!r}")

        self.timeout = float(timeout)
        self._loop = loop
        self._clock = clock
        self._lock = threading.RLock()
        self._pending: Dict[str, Task] = {}
        # Explicit ids that could collide with generated ones
        self._reserved_ids: set[str] = set()
        self._counter = itertools.count(1)
        self._loaded = False
        self._listeners: List[Callable[[ReadinessEvent], None]] = []
        self._ready = self._new_signal()

    # ========================================================================
    # Observation
    # ========================================================================

    def on_event(self, listener: Callable[[ReadinessEvent], None]) -> None:
        """
        Register event listener.

        Args:
            listener: Callable that receives every ReadinessEvent
        """
        self._listeners.append(listener)

    def on_ready(self, callback: Callable[[], None]) -> None:
        """Run callback once ready fires (immediately if it already has)."""
        self._ready.subscribe(callback)

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait until ready fires.

        Raises:
            asyncio.TimeoutError: If timeout elapses first
        """
        await self._ready.wait(timeout)

    @property
    def is_ready(self) -> bool:
        return self._ready.fired

    @property
    def loaded(self) -> bool:
        return self._loaded

    def status(self) -> FrozenSet[str]:
        """Snapshot of pending task ids."""
        with self._lock:
            return frozenset(self._pending)

    def pending(self) -> List[str]:
        """Pending task ids ordered by registration time, ties broken by id."""
        with self._lock:
            return self._snapshot()

    # ========================================================================
    # Registration & completion
    # ========================================================================

    def register(self, task_id: Optional[str] = None) -> Token:
        """
        Register a pending task and return its completion token.

        Args:
            task_id: Explicit id; generated when omitted

        Returns:
            Token completing the task when called

        Raises:
            DuplicateRegistrationFault: If task_id is already pending
        """
        loop = self._event_loop()

        with self._lock:
            if task_id is None:
                task_id = self._generate_id()
            elif task_id in self._pending:
                raise DuplicateRegistrationFault(task_id)

            task = Task(id=task_id, registered_at=self._clock())
            self._pending[task_id] = task
            if task_id.startswith(ID_PREFIX):
                self._reserved_ids.add(task_id)
            late = self._ready.fired

        self._arm_watchdog(loop, task)

        if late:
            logger.warning(
                f"Task '{task_id}' registered after ready; it is tracked but ready will not fire again"
            )
        else:
            logger.debug(f"Registered ready task '{task_id}'")

        return Token(self, task)

    def complete(self, token: Union[Token, str]) -> bool:
        """
        Complete a pending task.

        Idempotent: completing a task that is no longer pending (or never
        was) does nothing.

        Args:
            token: Token returned by register, or a bare task id

        Returns:
            True if a pending task was removed
        """
        if isinstance(token, Token):
            if not token._consume():
                return False
            task_id, expected = token.id, token._task
        else:
            task_id, expected = token, None

        with self._lock:
            task = self._pending.get(task_id)
            if task is None or (expected is not None and task is not expected):
                return False
            del self._pending[task_id]
            remaining = tuple(self._snapshot())
            should_fire = self._loaded and not self._pending

        self._cancel_watchdog(task)

        self._emit(ReadinessEvent(
            ReadinessEventKind.TASK_DONE,
            task_id=task_id,
            remaining=remaining,
        ))

        if should_fire:
            self._ready.fire()
        return True

    def mark_loaded(self) -> bool:
        """
        Record that every unit has been loaded.

        Returns:
            True if this call fired ready
        """
        with self._lock:
            self._loaded = True
            should_fire = not self._pending
        if should_fire:
            return self._ready.fire()
        return False

    def reset(self) -> None:
        """
        Re-arm the ready signal for explicit reuse.

        Pending tasks are kept; the barrier waits for mark_loaded() again.
        Observers of the previous signal are not carried over.
        """
        with self._lock:
            self._loaded = False
            self._ready = self._new_signal()

    def close(self) -> None:
        """Cancel every armed watchdog. Pending tasks stay pending."""
        with self._lock:
            tasks = list(self._pending.values())
        for task in tasks:
            self._cancel_watchdog(task)

    # ========================================================================
    # Internals
    # ========================================================================

    def _new_signal(self) -> ReadySignal:
        signal = ReadySignal()
        signal.subscribe(lambda: self._emit(ReadinessEvent(ReadinessEventKind.READY)))
        return signal

    def _generate_id(self) -> str:
        while True:
            candidate = f"{ID_PREFIX}{next(self._counter)}"
            if candidate not in self._reserved_ids:
                return candidate

    def _snapshot(self) -> List[str]:
        ordered = sorted(self._pending.values(), key=lambda t: (t.registered_at, t.id))
        return [t.id for t in ordered]

    def _event_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            # Raises RuntimeError outside a running loop
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _arm_watchdog(self, loop: asyncio.AbstractEventLoop, task: Task) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._arm_on_loop(task)
        else:
            loop.call_soon_threadsafe(self._arm_on_loop, task)

    def _arm_on_loop(self, task: Task) -> None:
        with self._lock:
            if self._pending.get(task.id) is not task:
                return
            task.handle = self._event_loop().call_later(self.timeout, self._on_timeout, task)

    def _cancel_watchdog(self, task: Task) -> None:
        handle = task.handle
        if handle is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        # Timer handles belong to the loop thread
        if running is self._loop or self._loop.is_closed():
            handle.cancel()
        else:
            self._loop.call_soon_threadsafe(handle.cancel)

    def _on_timeout(self, task: Task) -> None:
        with self._lock:
            if self._pending.get(task.id) is not task or task.timed_out:
                return
            task.timed_out = True

        self._emit(ReadinessEvent(
            ReadinessEventKind.TIMEOUT,
            task_id=task.id,
            timeout=self.timeout,
        ))

    def _emit(self, event: ReadinessEvent) -> None:
        """Emit event to all listeners."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Readiness listener error: {e}", exc_info=True)
