# surrealvec/store/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Embedding store - Public API

Public types, filter helpers and the SurrealDB store are re-exported here
for clean imports.
"""

from surrealvec.store.errors import (
    StoreError,
    BadRequest,
    InvalidFilterKey,
    UnsupportedFilterType,
    InvalidSearchRequest,
    DimensionMismatch,
    IndexCreationFailed,
    IndexDimensionMismatch,
    BackendExecutionFailure,
)
from surrealvec.store.filters import (
    # Filter AST
    Scalar,
    ComparisonOp,
    MembershipOp,
    LogicalOp,
    Comparison,
    Membership,
    Logical,
    Negation,
    FilterNode,

    # Builders
    eq,
    ne,
    gt,
    gte,
    lt,
    lte,
    is_in,
    not_in,
    and_,
    or_,
    not_,
    filter_from_dict,
)
from surrealvec.store.filter_compiler import FilterCompiler, compile_filter
from surrealvec.store.store_base import (
    # Core types
    TextSegment,
    EmbeddingRecord,
    SearchRequest,
    EmbeddingMatch,
    EmbeddingSearchResult,

    # Metrics and backend boundary
    MetricsSink,
    NoopMetrics,
    QueryExecutor,

    # Store interface
    EmbeddingStoreProtocol,
    BaseEmbeddingStore,
)
from surrealvec.store.search_builder import CompiledQuery, SearchQueryBuilder, build_search_query
from surrealvec.store.result_decoder import decode_row, decode_rows
from surrealvec.store.index_guard import (
    IndexDescriptor,
    IndexLifecycleGuard,
    IndexState,
    extract_dimension,
)
from surrealvec.store.surrealdb_adapter import SurrealDbEmbeddingStore, SurrealExecutor

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
    "Scalar",
    "ComparisonOp",
    "MembershipOp",
    "LogicalOp",
    "Comparison",
    "Membership",
    "Logical",
    "Negation",
    "FilterNode",
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
    "FilterCompiler",
    "compile_filter",
    "TextSegment",
    "EmbeddingRecord",
    "SearchRequest",
    "EmbeddingMatch",
    "EmbeddingSearchResult",
    "MetricsSink",
    "NoopMetrics",
    "QueryExecutor",
    "EmbeddingStoreProtocol",
    "BaseEmbeddingStore",
    "CompiledQuery",
    "SearchQueryBuilder",
    "build_search_query",
    "decode_row",
    "decode_rows",
    "IndexDescriptor",
    "IndexLifecycleGuard",
    "IndexState",
    "extract_dimension",
    "SurrealDbEmbeddingStore",
    "SurrealExecutor",
]
