"""
Kindle Faults - Domain-specific fault types.

Provides concrete fault classes for each bootstrap domain:
- CONFIG faults
- LOADER faults
- READINESS faults
- LIFECYCLE faults
- ASYNC faults
"""

from typing import Any, Optional

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigurationFault(Fault):
    """Invalid construction arguments. Bootstrap never starts."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration '{key}' is invalid: {reason}",
            domain=FaultDomain.CONFIG,
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )
        self.key = key
        self.reason = reason


# ============================================================================
# LOADER Faults
# ============================================================================

class LoadFault(Fault):
    """
    A hook failed while loading or during its synchronous body.

    The original exception is chained as ``__cause__`` by the loader.
    """

    def __init__(self, unit: Any, kind: Any, reason: str, **kwargs):
        unit_path = str(getattr(unit, "path", unit))
        kind_value = getattr(kind, "value", kind)
        super().__init__(
            code="HOOK_LOAD_FAILED",
            message=f"{kind_value} hook of unit '{unit_path}' failed: {reason}",
            domain=FaultDomain.LOADER,
            metadata={
                "unit": unit_path,
                "kind": kind_value,
                "reason": reason,
                **kwargs.get("metadata", {}),
            },
        )
        self.unit = unit
        self.kind = kind


# ============================================================================
# READINESS Faults
# ============================================================================

class DuplicateRegistrationFault(Fault):
    """A task id was registered while a task with that id is still pending."""

    def __init__(self, task_id: str, **kwargs):
        super().__init__(
            code="DUPLICATE_REGISTRATION",
            message=f"Ready task '{task_id}' is already pending",
            domain=FaultDomain.READINESS,
            metadata={"task_id": task_id, **kwargs.get("metadata", {})},
        )
        self.task_id = task_id


# ============================================================================
# LIFECYCLE Faults
# ============================================================================

class LifecycleStateFault(Fault):
    """Operation not allowed in the current lifecycle state."""

    def __init__(self, operation: str, state: Any, **kwargs):
        state_value = getattr(state, "value", state)
        super().__init__(
            code="LIFECYCLE_INVALID_STATE",
            message=f"Cannot {operation} from state '{state_value}'",
            domain=FaultDomain.LIFECYCLE,
            metadata={"operation": operation, "state": state_value, **kwargs.get("metadata", {})},
        )


# ============================================================================
# ASYNC Faults
# ============================================================================

class UnhandledAsyncFault(Fault):
    """Background failure that escaped its originating hook."""

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        severity: Severity = Severity.ERROR,
        **kwargs,
    ):
        metadata = dict(kwargs.get("metadata", {}))
        if cause is not None:
            metadata.setdefault("exception_type", type(cause).__name__)
        super().__init__(
            code="UNHANDLED_ASYNC_FAILURE",
            message=message,
            domain=FaultDomain.ASYNC,
            severity=severity,
            metadata=metadata,
        )
        if cause is not None:
            self.__cause__ = cause


def normalize_failure(value: Any) -> Fault:
    """
    Normalize anything that escaped to the loop into a Fault.

    Faults pass through untouched, other exceptions are wrapped with the
    original chained as ``__cause__``, and non-exception values are
    stringified.
    """
    if isinstance(value, Fault):
        return value
    if isinstance(value, BaseException):
        detail = str(value)
        message = f"{type(value).__name__}: {detail}" if detail else type(value).__name__
        return UnhandledAsyncFault(message, cause=value)
    return UnhandledAsyncFault(str(value) if value is not None else "unknown failure")
