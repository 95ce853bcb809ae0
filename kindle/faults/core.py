"""
Kindle Faults - Core types.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when a fault is reported.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the bootstrap area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.CONFIG = FaultDomain("config", "Invalid construction arguments")
FaultDomain.LOADER = FaultDomain("loader", "Hook resolution and execution")
FaultDomain.READINESS = FaultDomain("readiness", "Readiness barrier misuse")
FaultDomain.LIFECYCLE = FaultDomain("lifecycle", "Lifecycle state machine")
FaultDomain.ASYNC = FaultDomain("async", "Background failures nobody handled")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.LOADER: Severity.FATAL,
    FaultDomain.READINESS: Severity.ERROR,
    FaultDomain.LIFECYCLE: Severity.ERROR,
    FaultDomain.ASYNC: Severity.ERROR,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "HOOK_LOAD_FAILED")
        message: Human-readable summary
        domain: Fault domain (CONFIG, LOADER, READINESS, ...)
        severity: Fault severity (INFO, WARN, ERROR, FATAL)
        metadata: Additional context data

    Example:
        ```python
        raise Fault(
            code="UNIT_MISSING",
            message="Unit directory plugins/cache does not exist",
            domain=FaultDomain.CONFIG,
        )
        ```
    """

    code: Optional[str] = None
    domain: Optional[FaultDomain] = None

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else type(self).code
        self.message = message
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        self.severity = severity or DOMAIN_DEFAULTS.get(self.domain, Severity.ERROR)
        self.metadata = metadata or {}

    @property
    def name(self) -> str:
        """Class name of the fault, stable across normalization."""
        return type(self).__name__

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.name}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize fault to dictionary.

        Returns:
            Dictionary representation suitable for logging/serialization
        """
        return {
            "name": self.name,
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "metadata": self.metadata,
        }
