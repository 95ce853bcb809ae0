"""
Kindle - Bootstrap coordination for modular Python applications

Complete integration of:
- Units: ordered extension directories with optional app/agent hooks
- Loader: resolves hooks ahead of time, runs them strictly in order
- Readiness: barrier that fires "ready" once every async task completes
- Lifecycle: INIT -> LOADING -> WAITING -> READY state machine
- Faults: Structured error handling with fault domains
"""

__version__ = "0.1.0"

from .config import BootConfig, ConfigLoader, DEFAULT_READY_TIMEOUT

from .units import HookKind, Unit, UnitResolver, StaticUnitResolver

from .loader import ExtensionLoader, FileHookResolver, Hook, HookResolver

from .readiness import (
    ReadinessBarrier,
    ReadinessEvent,
    ReadinessEventKind,
    ReadySignal,
    Task,
    Token,
)

from .lifecycle import (
    BootContext,
    LifecycleCoordinator,
    LifecycleEvent,
    LifecycleManager,
    LifecycleState,
    create_lifecycle_coordinator,
)

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigurationFault,
    LoadFault,
    DuplicateRegistrationFault,
    LifecycleStateFault,
    UnhandledAsyncFault,
)

__all__ = [
    "__version__",

    # Config
    "BootConfig",
    "ConfigLoader",
    "DEFAULT_READY_TIMEOUT",

    # Units & loading
    "HookKind",
    "Unit",
    "UnitResolver",
    "StaticUnitResolver",
    "ExtensionLoader",
    "FileHookResolver",
    "Hook",
    "HookResolver",

    # Readiness
    "ReadinessBarrier",
    "ReadinessEvent",
    "ReadinessEventKind",
    "ReadySignal",
    "Task",
    "Token",

    # Lifecycle
    "BootContext",
    "LifecycleCoordinator",
    "LifecycleEvent",
    "LifecycleManager",
    "LifecycleState",
    "create_lifecycle_coordinator",

    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigurationFault",
    "LoadFault",
    "DuplicateRegistrationFault",
    "LifecycleStateFault",
    "UnhandledAsyncFault",
]
