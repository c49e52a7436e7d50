"""Tests for jobspine.errors - categories, context and serialization."""

from __future__ import annotations

import pytest

from jobspine.errors import (
    BindError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    InstanceLookupError,
    InvocationError,
    JobSpineError,
    ReconciliationError,
)


class TestErrorCategories:
    """Each error type carries its default category and retry hint."""

    @pytest.mark.parametrize(
        "error_cls, category, retryable",
        [
            (JobSpineError, ErrorCategory.INTERNAL, False),
            (ConfigurationError, ErrorCategory.CONFIG, False),
            (BindError, ErrorCategory.ORCHESTRATION, False),
            (ReconciliationError, ErrorCategory.STORAGE, True),
            (InvocationError, ErrorCategory.EXECUTION, False),
        ],
    )
    def test_defaults(self, error_cls, category, retryable):
        """Subclasses only override what differs from the base."""
        error = error_cls("boom")
        assert error.category is category
        assert error.retryable is retryable
        assert str(error) == "boom"

    def test_explicit_overrides(self):
        """Category and retryable can be overridden per instance."""
        error = BindError("boom", category=ErrorCategory.STORAGE, retryable=True)
        assert error.category is ErrorCategory.STORAGE
        assert error.retryable is True

    def test_all_derive_from_base(self):
        """Callers can catch every jobspine failure with one clause."""
        for cls in (ConfigurationError, BindError, ReconciliationError, InvocationError):
            assert issubclass(cls, JobSpineError)


class TestErrorContext:
    """Structured context travels with the error."""

    def test_with_context_sets_known_fields(self):
        """Known fields land on the context, the rest in metadata."""
        error = BindError("bad cron").with_context(
            identifier="Job1", expression="* *", group="DEFAULT"
        )
        assert error.context.identifier == "Job1"
        assert error.context.expression == "* *"
        assert error.context.metadata == {"group": "DEFAULT"}

    def test_with_context_is_fluent(self):
        """with_context returns the same error so it can be raised inline."""
        error = ConfigurationError("x")
        assert error.with_context(key="a") is error

    def test_context_to_dict_skips_empty_fields(self):
        ctx = ErrorContext(job_key="Job1Detail", metadata={"group": "DEFAULT"})
        assert ctx.to_dict() == {"job_key": "Job1Detail", "group": "DEFAULT"}

    def test_to_dict(self):
        """to_dict is flat enough to pass straight to a structured logger."""
        cause = ValueError("wrong field count")
        error = BindError("Invalid schedule", cause=cause).with_context(identifier="Job1")
        data = error.to_dict()
        assert data["error_type"] == "BindError"
        assert data["message"] == "Invalid schedule"
        assert data["category"] == "ORCHESTRATION"
        assert data["retryable"] is False
        assert data["context"] == {"identifier": "Job1"}
        assert data["cause"] == "wrong field count"

    def test_to_dict_without_context_or_cause(self):
        data = JobSpineError("plain").to_dict()
        assert "context" not in data
        assert "cause" not in data

    def test_cause_is_chained(self):
        """The cause is exposed as __cause__ for tracebacks."""
        cause = RuntimeError("db down")
        error = ReconciliationError("cleanup failed", cause=cause)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_repr(self):
        assert repr(BindError("x")) == "BindError('x', category=ORCHESTRATION)"


class TestInstanceLookupError:
    """Missing-instance errors are both jobspine errors and LookupErrors."""

    def test_is_lookup_error(self):
        error = InstanceLookupError("Job1")
        assert isinstance(error, LookupError)
        assert isinstance(error, JobSpineError)

    def test_carries_identifier(self):
        error = InstanceLookupError("Job1")
        assert error.identifier == "Job1"
        assert error.context.identifier == "Job1"
        assert "Job1" in error.message

    def test_custom_message(self):
        error = InstanceLookupError("Job1", "No dispatcher attached")
        assert error.message == "No dispatcher attached"
        assert error.category is ErrorCategory.CONFIG
