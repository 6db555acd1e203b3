# surrealvec/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
surrealvec - embedding storage on SurrealDB.

    from surrealvec import SurrealDbEmbeddingStore, SearchRequest, TextSegment, eq
"""

from surrealvec.store import (
    BackendExecutionFailure,
    BadRequest,
    DimensionMismatch,
    EmbeddingMatch,
    EmbeddingSearchResult,
    IndexCreationFailed,
    IndexDimensionMismatch,
    InvalidFilterKey,
    InvalidSearchRequest,
    SearchRequest,
    StoreError,
    SurrealDbEmbeddingStore,
    TextSegment,
    UnsupportedFilterType,
    and_,
    eq,
    filter_from_dict,
    gt,
    gte,
    is_in,
    lt,
    lte,
    ne,
    not_,
    not_in,
    or_,
)

__version__ = "0.1.0"

__all__ = [
    "SurrealDbEmbeddingStore",
    "SearchRequest",
    "TextSegment",
    "EmbeddingMatch",
    "EmbeddingSearchResult",
    "StoreError",
    "BadRequest",
    "InvalidFilterKey",
    "UnsupportedFilterType",
    "InvalidSearchRequest",
    "DimensionMismatch",
    "IndexCreationFailed",
    "IndexDimensionMismatch",
    "BackendExecutionFailure",
    "eq",
    "ne",
    "gt",
    "gte",
    "lt",
    "lte",
    "is_in",
    "not_in",
    "and_",
    "or_",
    "not_",
    "filter_from_dict",
]
