"""
Kindle Faults - Structured error handling for the bootstrap core.

Errors in Kindle are typed fault objects with a stable code, a domain and a
severity, so the coordinator can report them uniformly.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain taxonomy
- Severity: Severity levels
- Domain faults: ConfigurationFault, LoadFault, DuplicateRegistrationFault,
  LifecycleStateFault, UnhandledAsyncFault
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
    DOMAIN_DEFAULTS,
)

from .domains import (
    ConfigurationFault,
    LoadFault,
    DuplicateRegistrationFault,
    LifecycleStateFault,
    UnhandledAsyncFault,
    normalize_failure,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",
    "DOMAIN_DEFAULTS",

    # Domain faults
    "ConfigurationFault",
    "LoadFault",
    "DuplicateRegistrationFault",
    "LifecycleStateFault",
    "UnhandledAsyncFault",
    "normalize_failure",
]
