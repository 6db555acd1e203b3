# surrealvec/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context utilities for store components.

Helpers for attaching debugging context to exceptions as they propagate
through the embedding store layers (filter compilation, search, index setup,
driver calls). The context lives in exception attributes, so the original
exception type, message and traceback are preserved.

Typical usage
-------------

    from surrealvec.core.error_context import attach_context

    try:
        rows = executor.execute(query, params, op="search")
    except Exception as exc:
        attach_context(
            exc,
            "store_surrealdb",
            operation="search",
            collection="vectors",
            max_results=10,
        )
        raise

Later, in error handlers:

    except Exception as exc:
        context = get_context(exc)
        logger.error("store failure", extra={"operation": context.get("operation")})

Two attributes are written:

* `__surrealvec_context__` (canonical), shared by every component.
* `__<component>_context__` (e.g. `__store_surrealdb_context__`), for
  discoverability in debuggers.

Repeated calls merge into the existing mapping; the `component` key set by
the first call is kept.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

logger = logging.getLogger(__name__)

_CANONICAL_ATTR = "__surrealvec_context__"


def attach_context(
    exc: BaseException,
    component: str,
    **context: Any,
) -> None:
    """
    Attach debugging context to an exception.

    Parameters
    ----------
    exc:
        The exception to enrich.

    component:
        Origin of the context (e.g. "store_surrealdb", "index_guard").

    **context:
        Keys to merge. Common ones are `operation`, `collection`, `query`
        (query text only, never bound values), `max_results`, `record_count`.

    Attachment is best-effort: any failure is logged at debug level and
    never interferes with the propagation of `exc`.
    """
    try:
        merged: MutableMapping[str, Any] = {}

        existing = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(existing, Mapping):
            merged.update(existing)

        merged.setdefault("component", component)
        merged.update(context)

        setattr(exc, _CANONICAL_ATTR, merged)
        setattr(exc, f"__{component}_context__", merged)
    except Exception as attachment_error:  # noqa: BLE001
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
            extra={"component": component},
        )


def get_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> Mapping[str, Any]:
    """
    Retrieve attached context from an exception.

    If `component` is given, the component-specific attribute is tried
    first. Returns an empty dict when nothing is attached.
    """
    try:
        if component:
            ctx = getattr(exc, f"__{component}_context__", None)
            if isinstance(ctx, Mapping):
                return ctx

        ctx = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(ctx, Mapping):
            return ctx
    except Exception as retrieval_error:  # noqa: BLE001
        logger.debug(
            "Failed to retrieve error context from %s: %s",
            type(exc).__name__,
            retrieval_error,
        )

    return {}


def has_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> bool:
    """Return True if a non-empty context is attached to `exc`."""
    return len(get_context(exc, component=component)) > 0


__all__ = [
    "attach_context",
    "get_context",
    "has_context",
]
