"""
Lifecycle Coordinator - Drives a bootstrap from construction to ready.

The coordinator resolves the ordered units, runs their hooks through the
ExtensionLoader, and owns the ReadinessBarrier that decides when the
bootstrap is complete:

    INIT -> LOADING -> WAITING -> READY
                  \\-> READY         (nothing pending once loading ends)
                  \\-> FAILED        (a hook failed)

It also owns the event loop exception handler for background failures
nobody else handled, installed once per coordinator and removed by close().
"""

from __future__ import annotations

from typing import Any, Callable, Dict, FrozenSet, List, NamedTuple, Optional
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import asyncio
import inspect
import logging

from .config import BootConfig
from .faults import LifecycleStateFault, LoadFault, normalize_failure
from .loader import ExtensionLoader, HookResolver
from .readiness import ReadinessBarrier, ReadinessEvent, ReadinessEventKind, ReadySignal, Token
from .units import HookKind, StaticUnitResolver, UnitResolver


logger = logging.getLogger("kindle.lifecycle")


class LifecycleState(Enum):
    """Lifecycle states. Transitions only move forward."""
    INIT = "init"
    LOADING = "loading"
    WAITING = "waiting"
    READY = "ready"
    FAILED = "failed"


_TRANSITIONS = {
    LifecycleState.INIT: {LifecycleState.LOADING},
    LifecycleState.LOADING: {LifecycleState.WAITING, LifecycleState.READY, LifecycleState.FAILED},
    LifecycleState.WAITING: {LifecycleState.READY},
    LifecycleState.READY: set(),
    LifecycleState.FAILED: set(),
}


@dataclass
class LifecycleEvent:
    """Event emitted on every state transition."""
    state: LifecycleState
    message: Optional[str] = None
    error: Optional[Exception] = None


class Loggers(NamedTuple):
    """Application logger for hooks, core logger for the framework itself."""
    logger: logging.Logger
    core_logger: logging.Logger


class BootContext:
    """
    Capability object handed to every hook.

    Hooks use it to register asynchronous work, log, read configuration and
    publish objects for units loaded after them (``extensions``).
    """

    def __init__(self, coordinator: "LifecycleCoordinator"):
        self._coordinator = coordinator
        self.extensions: Dict[str, Any] = {}

    @property
    def kind(self) -> HookKind:
        return self._coordinator.kind

    @property
    def base_dir(self) -> Path:
        return self._coordinator.base_dir

    @property
    def config(self) -> BootConfig:
        return self._coordinator.config

    @property
    def logger(self) -> logging.Logger:
        return self._coordinator.logger

    @property
    def core_logger(self) -> logging.Logger:
        return self._coordinator.core_logger

    def register(self, task_id: Optional[str] = None) -> Token:
        """Register asynchronous work; call the returned token when done."""
        return self._coordinator.register(task_id)

    def spawn(self, awaitable: Any, *, name: Optional[str] = None) -> asyncio.Task:
        """
        Run an awaitable in the background while holding the barrier open.

        The task's token is completed however the awaitable ends. A failure
        is reported to the coordinator's unhandled-failure handler and does
        not block readiness.
        """
        try:
            token = self.register(name)
        except Exception:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(awaitable)

        def _done(fut: asyncio.Future) -> None:
            try:
                if not fut.cancelled() and fut.exception() is not None:
                    loop.call_exception_handler({
                        "message": f"Background task {token.id!r} failed",
                        "exception": fut.exception(),
                        "future": fut,
                    })
            finally:
                token()

        task.add_done_callback(_done)
        return task

    def status(self) -> FrozenSet[str]:
        return self._coordinator.status()


class LifecycleCoordinator:
    """
    Coordinates one bootstrap.

    Responsibilities:
    - Run unit hooks in resolver order (fail fast)
    - Track asynchronous tasks through the readiness barrier
    - Advance the lifecycle state machine
    - Log task completions, timeouts and unhandled background failures
    - Notify ready observers exactly once
    """

    def __init__(
        self,
        config: BootConfig,
        *,
        units: Optional[UnitResolver] = None,
        hooks: Optional[HookResolver] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize coordinator.

        Args:
            config: Validated BootConfig
            units: Unit resolver (defaults to the units named in config)
            hooks: Hook resolver (defaults to hook files in unit directories)
            loop: Event loop to bind to (defaults to the running loop)
        """
        self.config = config
        self.state = LifecycleState.INIT
        self.units = units if units is not None else StaticUnitResolver.from_config(config)
        self.loader = ExtensionLoader(hooks)
        self.context = BootContext(self)
        self.handles: List[Any] = []
        self.event_handlers: List[Callable[[LifecycleEvent], None]] = []

        self._loggers: Optional[Loggers] = None
        self._ready = ReadySignal()
        self._handler_loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_handler: Optional[Callable[..., Any]] = None
        self._handler_installed = False

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

        self.barrier = ReadinessBarrier(config.ready_timeout, loop=loop)
        self.barrier.on_event(self._on_barrier_event)
        self.barrier.on_ready(self._on_barrier_ready)

        if loop is not None:
            self.install_failure_handler(loop)

    # ========================================================================
    # Accessors
    # ========================================================================

    @property
    def kind(self) -> HookKind:
        return self.config.kind

    @property
    def base_dir(self) -> Path:
        return self.config.base_dir

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def loggers(self) -> Loggers:
        """Loggers, created on first use."""
        if self._loggers is None:
            self._loggers = Loggers(
                logger=logging.getLogger(f"kindle.app.{self.name}"),
                core_logger=logging.getLogger("kindle.core"),
            )
        return self._loggers

    @property
    def logger(self) -> logging.Logger:
        return self.loggers.logger

    @property
    def core_logger(self) -> logging.Logger:
        return self.loggers.core_logger

    # ========================================================================
    # Events
    # ========================================================================

    def on_event(self, handler: Callable[[LifecycleEvent], None]):
        """
        Register state transition handler.

        Args:
            handler: Callable that receives LifecycleEvent
        """
        self.event_handlers.append(handler)

    def on_ready(self, callback: Callable[[], None]) -> None:
        """
        Run callback once the bootstrap is READY.

        Callbacks registered after READY run immediately.
        """
        self._ready.subscribe(callback)

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait until READY.

        Raises:
            asyncio.TimeoutError: If timeout elapses first
        """
        await self._ready.wait(timeout)

    def _emit_event(self, event: LifecycleEvent):
        """Emit lifecycle event to all handlers."""
        for handler in self.event_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler error: {e}")

    def _transition(self, state: LifecycleState, message: Optional[str] = None,
                    error: Optional[Exception] = None) -> bool:
        if state not in _TRANSITIONS[self.state]:
            return False
        logger.debug(f"{self.name}: {self.state.value} -> {state.value}")
        self.state = state
        self._emit_event(LifecycleEvent(state, message=message, error=error))
        return True

    # ========================================================================
    # Bootstrap
    # ========================================================================

    def register(self, task_id: Optional[str] = None) -> Token:
        """
        Register asynchronous work with the readiness barrier.

        Raises:
            DuplicateRegistrationFault: If task_id is already pending
        """
        return self.barrier.register(task_id)

    async def start(self):
        """
        Load every unit's hook, in order.

        Returns once all hooks have run; the state is then WAITING (tasks
        pending) or READY.

        Raises:
            LifecycleStateFault: If not in INIT state
            LoadFault: If any hook fails (state becomes FAILED)
        """
        if self.state is not LifecycleState.INIT:
            raise LifecycleStateFault("start", self.state)

        self.install_failure_handler(asyncio.get_running_loop())
        self._transition(LifecycleState.LOADING)

        units = self.units.get_load_units()
        self.core_logger.info(
            f"[kindle:core] loading {self.kind.value} hooks of {len(units)} unit(s)"
        )

        try:
            self.handles = self.loader.load_hooks(self.kind, units, self.context)
        except LoadFault as e:
            self._transition(LifecycleState.FAILED, message="Loading failed", error=e)
            self.core_logger.error(f"[kindle:core] bootstrap failed: {e}")
            raise

        self.barrier.mark_loaded()

        # Ready may already have fired inside mark_loaded()
        if self.state is LifecycleState.LOADING:
            pending = self.barrier.pending()
            self._transition(LifecycleState.WAITING, message=f"waiting for {pending}")
            self.core_logger.info(f"[kindle:core] waiting for ready tasks {pending}")

    async def boot(self, timeout: Optional[float] = None) -> "LifecycleCoordinator":
        """Start and wait until READY."""
        await self.start()
        await self.wait_ready(timeout)
        return self

    def _on_barrier_ready(self) -> None:
        if self._transition(LifecycleState.READY):
            self.core_logger.info(f"[kindle:core] {self.name} is ready")
            self._ready.fire()

    def _on_barrier_event(self, event: ReadinessEvent) -> None:
        if event.kind is ReadinessEventKind.TASK_DONE:
            self.core_logger.info(
                "[kindle:core:ready_stat] end ready task %s, remain %s",
                event.task_id, list(event.remaining),
            )
        elif event.kind is ReadinessEventKind.TIMEOUT:
            self.core_logger.warning(
                "[kindle:core:ready_timeout] %s seconds later %s was still unable to finish.",
                event.timeout, event.task_id,
            )

    # ========================================================================
    # Unhandled background failures
    # ========================================================================

    def install_failure_handler(self, loop: asyncio.AbstractEventLoop) -> bool:
        """
        Install this coordinator as the loop's exception handler.

        Only the first call has an effect.

        Returns:
            True if the handler was installed by this call
        """
        if self._handler_installed:
            return False
        self._previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_async_failure)
        self._handler_loop = loop
        self._handler_installed = True
        return True

    def remove_failure_handler(self) -> None:
        """
        Restore the loop's previous exception handler.

        If coordinators installed later are still active, this one is
        unlinked from their chain instead, so the handler that was active
        before it is what they restore.
        """
        loop = self._handler_loop
        if not self._handler_installed or loop is None:
            return

        current = loop.get_exception_handler()
        if current == self._handle_async_failure:
            loop.set_exception_handler(self._previous_handler)
        else:
            owner = _handler_owner(current)
            while owner is not None and owner is not self:
                if owner._previous_handler == self._handle_async_failure:
                    owner._previous_handler = self._previous_handler
                    break
                owner = _handler_owner(owner._previous_handler)

        self._handler_loop = None
        self._previous_handler = None

    def _handle_async_failure(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        value = context.get("exception")
        if value is None:
            value = context.get("message")

        fault = normalize_failure(value)
        self.core_logger.error(
            f"[kindle:core:unhandled] {fault}",
            exc_info=fault if fault.__traceback__ or fault.__cause__ else None,
            extra={"fault": fault.to_dict()},
        )

    # ========================================================================
    # Teardown & status
    # ========================================================================

    def close(self) -> None:
        """
        Tear down: cancel hook handles and watchdogs, remove the handler.

        Pending tasks are abandoned; the state is left as is.
        """
        for handle in self.handles:
            try:
                handle.cancel()
            except Exception as e:
                logger.error(f"Error cancelling hook handle {handle!r}: {e}")
        self.handles = []
        self.barrier.close()
        self.remove_failure_handler()

    def status(self) -> FrozenSet[str]:
        """Pending task ids."""
        return self.barrier.status()

    def get_status(self) -> Dict[str, Any]:
        """
        Get current lifecycle status.

        Returns:
            Status dict with state, pending tasks and loaded hooks
        """
        return {
            "name": self.name,
            "kind": self.kind.value,
            "state": self.state.value,
            "pending": self.barrier.pending(),
            "hooks": [hook.origin for hook in self.loader.invoked],
        }


def _handler_owner(handler: Any) -> Optional[LifecycleCoordinator]:
    """Coordinator whose failure handler this is, if any."""
    owner = getattr(handler, "__self__", None)
    return owner if isinstance(owner, LifecycleCoordinator) else None


class LifecycleManager:
    """
    Boot on entry, tear down on exit.

    Usage:
        async with LifecycleManager(config) as coordinator:
            # every hook ran and every registered task completed
            await serve()
    """

    def __init__(self, config: BootConfig, *, timeout: Optional[float] = None, **kwargs: Any):
        self.config = config
        self.timeout = timeout
        self.kwargs = kwargs
        self.coordinator: Optional[LifecycleCoordinator] = None

    async def __aenter__(self) -> LifecycleCoordinator:
        self.coordinator = LifecycleCoordinator(self.config, **self.kwargs)
        try:
            await self.coordinator.boot(self.timeout)
        except BaseException:
            self.coordinator.close()
            raise
        return self.coordinator

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.coordinator is not None:
            self.coordinator.close()
        return False


def create_lifecycle_coordinator(config: BootConfig, **kwargs: Any) -> LifecycleCoordinator:
    """
    Factory function to create lifecycle coordinator.

    Args:
        config: Validated BootConfig
        **kwargs: Passed through to LifecycleCoordinator

    Returns:
        Configured LifecycleCoordinator
    """
    return LifecycleCoordinator(config, **kwargs)
