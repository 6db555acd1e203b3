# surrealvec/store/errors.py
# SPDX-License-Identifier: Apache-2.0
"""
Normalized errors for the embedding store.

Validation errors (`BadRequest` and its subclasses) are raised before any
backend call. Index errors are fatal at store construction. Backend failures
are wrapped in `BackendExecutionFailure`, which names the failing operation so
callers can tell "add" from "search" from "index_setup" without parsing
messages. Nothing in this package retries.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class StoreError(Exception):
    """
    Base exception for all embedding store errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (UPPER_SNAKE_CASE)
        details: Additional context (JSON-serializable, never bound values)
    """
    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = dict(details or {})

    def asdict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization and logging."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": {k: self.details[k] for k in sorted(self.details)},
        }

# Subclasses set default `code` in UPPER_SNAKE_CASE where not explicitly provided.

class BadRequest(StoreError):
    """Caller sent an invalid request (bad config, malformed vectors or filters)."""
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "BAD_REQUEST")
        super().__init__(message, **kwargs)

class InvalidFilterKey(BadRequest):
    """A filter key is empty or contains characters outside [A-Za-z0-9_.]."""
    def __init__(self, key: Any, **kwargs: Any):
        kwargs.setdefault("code", "INVALID_FILTER_KEY")
        kwargs.setdefault("details", {"key": repr(key)})
        super().__init__(
            f"Invalid key: {key!r}. Only alphanumeric characters, underscores, and dots are allowed.",
            **kwargs,
        )
        self.key = key

class UnsupportedFilterType(BadRequest):
    """A filter node (or dict operator) has no predicate translation."""
    def __init__(self, kind: str, **kwargs: Any):
        kwargs.setdefault("code", "UNSUPPORTED_FILTER_TYPE")
        kwargs.setdefault("details", {"kind": kind})
        super().__init__(f"Unsupported filter type: {kind}", **kwargs)
        self.kind = kind

class InvalidSearchRequest(BadRequest):
    """Search request violates its contract (max_results, min_score, vector length)."""
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "INVALID_SEARCH_REQUEST")
        super().__init__(message, **kwargs)

class DimensionMismatch(BadRequest):
    """Embedding length does not match the store dimension."""
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "DIMENSION_MISMATCH")
        super().__init__(message, **kwargs)

class IndexCreationFailed(StoreError):
    """Table or index definition failed for a reason other than "already exists"."""
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "INDEX_CREATION_FAILED")
        super().__init__(message, **kwargs)

class IndexDimensionMismatch(StoreError):
    """An existing index was declared with a different vector dimension."""
    def __init__(self, index_name: str, expected: int, actual: int, **kwargs: Any):
        kwargs.setdefault("code", "INDEX_DIMENSION_MISMATCH")
        kwargs.setdefault(
            "details",
            {"index": index_name, "expected": expected, "actual": actual},
        )
        super().__init__(
            f"Existing index {index_name} has dimension {actual} but expected {expected}",
            **kwargs,
        )
        self.index_name = index_name
        self.expected = expected
        self.actual = actual

class BackendExecutionFailure(StoreError):
    """The backing store (or its driver) failed while running `operation`."""
    def __init__(self, message: str, *, operation: str, **kwargs: Any):
        kwargs.setdefault("code", "BACKEND_EXECUTION_FAILURE")
        details = dict(kwargs.pop("details", None) or {})
        details.setdefault("operation", operation)
        super().__init__(message, details=details, **kwargs)
        self.operation = operation


__all__ = [
    "StoreError",
    "BadRequest",
    "InvalidFilterKey",
    "UnsupportedFilterType",
    "InvalidSearchRequest",
    "DimensionMismatch",
    "IndexCreationFailed",
    "IndexDimensionMismatch",
    "BackendExecutionFailure",
]
