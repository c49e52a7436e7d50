"""
Structured error types for jobspine.

Every failure the scheduling adapter can produce is a typed
:class:`JobSpineError` carrying a category, a retry hint, structured
context and the chained cause, so operators can route startup failures
separately from per-fire failures.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       JobSpineError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigurationError   BindError          ReconciliationError     │
        │  (CONFIG, fatal)      (ORCHESTRATION,    (STORAGE, fatal)        │
        │                        per job)                                  │
        │                                                                  │
        │  InstanceLookupError  InvocationError                            │
        │  (CONFIG, per fire)   (EXECUTION, per fire)                      │
        └─────────────────────────────────────────────────────────────────┘

Propagation:
    - ``ConfigurationError`` / ``ReconciliationError`` abort startup.
    - ``BindError`` drops a single job from the trigger set; startup continues.
    - ``InstanceLookupError`` / ``InvocationError`` fail a single fire; the
      trigger stays scheduled.

Usage:
    from jobspine.errors import BindError

    try:
        trigger = build_trigger(expression)
    except ValueError as e:
        raise BindError("Invalid cron expression", cause=e).with_context(
            identifier="Job1", expression=expression
        )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"                # Placeholders, duplicate declarations
    ORCHESTRATION = "ORCHESTRATION"  # Trigger / job binding
    STORAGE = "STORAGE"              # Durable job store
    EXECUTION = "EXECUTION"          # Business entry point failures
    INTERNAL = "INTERNAL"            # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        identifier: Job identifier (owner type name)
        job_key: Persisted job key, when known
        expression: Raw or resolved schedule expression
        metadata: Additional key-value pairs
    """

    identifier: str | None = None
    job_key: str | None = None
    expression: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["identifier", "job_key", "expression"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class JobSpineError(Exception):
    """
    Base exception for all jobspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass what differs from the defaults.

    Examples:
        >>> error = JobSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(identifier="Job1").context.identifier
        'Job1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> JobSpineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# STARTUP ERRORS
# =============================================================================


class ConfigurationError(JobSpineError):
    """
    Bad placeholder, unresolvable key, or duplicate job identifier.

    Never retryable - the declarations or configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class BindError(JobSpineError):
    """Trigger/job record creation or store write failed for one job."""

    default_category = ErrorCategory.ORCHESTRATION


class ReconciliationError(JobSpineError):
    """Store enumeration or deletion failed during orphan cleanup."""

    default_category = ErrorCategory.STORAGE
    default_retryable = True


# =============================================================================
# FIRE-TIME ERRORS
# =============================================================================


class InstanceLookupError(JobSpineError, LookupError):
    """No live instance is registered for a fired job."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, identifier: str, message: str | None = None, **kwargs: Any):
        self.identifier = identifier
        super().__init__(message or f"No instance registered for job: {identifier}", **kwargs)
        self.context.identifier = identifier


class InvocationError(JobSpineError):
    """Entry point missing, not callable, or raised while running."""

    default_category = ErrorCategory.EXECUTION


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "JobSpineError",
    "ConfigurationError",
    "BindError",
    "ReconciliationError",
    "InstanceLookupError",
    "InvocationError",
]
