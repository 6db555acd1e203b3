# surrealvec/store/store_base.py
# SPDX-License-Identifier: Apache-2.0
"""
Embedding store SDK: typed contracts and the instrumented base store.

This module provides:

- Typed Python contracts for records, segments, search requests and matches
- A MetricsSink protocol (SIEM-safe, low-cardinality) and a no-op sink
- EmbeddingStoreProtocol, the async surface exposed to callers
- BaseEmbeddingStore, which validates every call before any backend I/O,
  records metrics, and delegates to backend `_do_*` hooks

Design Philosophy
-----------------
- Validation first: malformed vectors, ids, filters and search requests are
  rejected before the backend is touched.
- Async-first: all public operations are coroutines; backends that wrap a
  blocking driver push calls to a worker thread.
- Stateless search path: no shared mutable state is touched per search, so a
  single store instance serves concurrent searches without locking.

Deliberate Non-Goals
--------------------
- No embedding model management (text -> vector is the caller's job)
- No retries, backoff or deadline enforcement; backend errors surface as-is
- No update-in-place; re-adding an id overwrites the record
"""

from __future__ import annotations

import hashlib
import logging
from array import array
import math
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from surrealvec.store.errors import (
    BadRequest,
    DimensionMismatch,
    InvalidSearchRequest,
    StoreError,
)
from surrealvec.store.filters import FilterNode, Scalar, coerce_filter

LOG = logging.getLogger(__name__)

DEFAULT_COLLECTION = "vectors"
DEFAULT_MAX_RESULTS = 3
COLLECTION_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")

_SCALAR_TYPES = (str, bool, int, float)


def as_float32(values: Iterable[Any]) -> List[float]:
    """
    Round `values` to float32 precision, returned as Python floats.

    The vector index stores F32 elements; rounding on the way in and out
    keeps stored, indexed and decoded vectors identical.
    """
    return array("f", values).tolist()

# =============================================================================
# Core Type Definitions
# =============================================================================


@dataclass(frozen=True)
class TextSegment:
    """
    Text plus scalar metadata attached to an embedding.

    Attributes:
        text: The embedded text
        metadata: Flat mapping of string keys to str/bool/int/float values
    """
    text: str
    metadata: Mapping[str, Scalar] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.text, str):
            raise BadRequest("segment text must be a string")
        if not isinstance(self.metadata, Mapping):
            raise BadRequest("segment metadata must be a mapping")
        for key, value in self.metadata.items():
            if not isinstance(key, str) or not key:
                raise BadRequest("metadata keys must be non-empty strings")
            if not isinstance(value, _SCALAR_TYPES):
                raise BadRequest(
                    f"metadata value for {key!r} must be a string, boolean, integer or float",
                    details={"key": key, "type": type(value).__name__},
                )
        object.__setattr__(self, "metadata", dict(self.metadata))


@dataclass(frozen=True)
class EmbeddingRecord:
    """
    A stored embedding. Identity lives in the record reference, not the body.

    Attributes:
        id: Caller-supplied or generated identifier
        vector: The embedding, rounded to float32 precision
        text: Optional segment text
        metadata: Optional segment metadata
    """
    id: str
    vector: List[float]
    text: Optional[str] = None
    metadata: Mapping[str, Scalar] = field(default_factory=dict)

    @classmethod
    def from_segment(
        cls, id: str, vector: Sequence[float], segment: Optional[TextSegment]
    ) -> "EmbeddingRecord":
        if segment is None:
            return cls(id=id, vector=as_float32(vector))
        return cls(
            id=id,
            vector=as_float32(vector),
            text=segment.text,
            metadata=dict(segment.metadata),
        )

    def to_content(self) -> Dict[str, Any]:
        """Document body written to the backing store."""
        content: Dict[str, Any] = {
            "embedding": list(self.vector),
            "metadata": dict(self.metadata),
        }
        if self.text is not None:
            content["text"] = self.text
        return content


@dataclass(frozen=True)
class SearchRequest:
    """
    Nearest-neighbor search request.

    Attributes:
        query_vector: Reference vector (length must equal the store dimension)
        filter: Optional FilterNode or dictionary filter
        max_results: Number of neighbors to return (positive)
        min_score: Inclusive cosine-similarity cutoff in [0, 1]
    """
    query_vector: List[float]
    filter: Optional[Any] = None
    max_results: int = DEFAULT_MAX_RESULTS
    min_score: float = 0.0

    def resolved_filter(self) -> Optional[FilterNode]:
        """The filter as a FilterNode (dictionary filters are converted)."""
        return coerce_filter(self.filter)


@dataclass(frozen=True)
class EmbeddingMatch:
    """
    A single search hit.

    Attributes:
        score: Cosine similarity reported by the backend
        id: Record identifier
        vector: Stored embedding (possibly shorter if the backend sent junk)
        segment: Text and metadata when the record carried text
    """
    score: float
    id: str
    vector: List[float]
    segment: Optional[TextSegment] = None


@dataclass(frozen=True)
class EmbeddingSearchResult:
    """
    Result of a search call.

    Attributes:
        matches: Matches in backend order (descending score)
        skipped_rows: Rows dropped because they could not be decoded
    """
    matches: List[EmbeddingMatch]
    skipped_rows: int = 0


def validate_collection_name(collection: Any) -> str:
    """Collection names are interpolated into query text; restrict them."""
    if not isinstance(collection, str) or not COLLECTION_NAME_PATTERN.fullmatch(collection):
        raise BadRequest(
            f"invalid collection name {collection!r}; use letters, digits and underscores",
            code="BAD_CONFIG",
        )
    return collection


def validate_search_request(request: SearchRequest, dimension: Optional[int] = None) -> None:
    """
    Reject search requests that violate the caller contract.

    Raises InvalidSearchRequest before any query is built or sent.
    """
    if not isinstance(request, SearchRequest):
        raise InvalidSearchRequest("request must be a SearchRequest")

    max_results = request.max_results
    if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results <= 0:
        raise InvalidSearchRequest(
            "max_results must be a positive integer",
            details={"max_results": repr(max_results)},
        )

    min_score = request.min_score
    if (
        isinstance(min_score, bool)
        or not isinstance(min_score, (int, float))
        or math.isnan(min_score)
        or not 0.0 <= min_score <= 1.0
    ):
        raise InvalidSearchRequest(
            "min_score must be a number in [0, 1]",
            details={"min_score": repr(min_score)},
        )

    vector = request.query_vector
    if not _is_numeric_vector(vector):
        raise InvalidSearchRequest("query_vector must be a non-empty sequence of numbers")
    if dimension is not None and len(vector) != dimension:
        raise InvalidSearchRequest(
            f"query_vector dimension {len(vector)} does not match store dimension {dimension}",
            details={"expected": dimension, "actual": len(vector)},
        )


def _is_numeric_vector(vector: Any) -> bool:
    if isinstance(vector, (str, bytes)) or not isinstance(vector, Sequence) or not vector:
        return False
    return all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in vector)


# =============================================================================
# Metrics Interface (SIEM-safe, low-cardinality)
# =============================================================================


class MetricsSink(Protocol):
    """
    Protocol for metrics collection implementations.

    Metrics must be low-cardinality and never include vectors, metadata
    values or bound parameters.
    """
    def observe(
        self,
        *,
        component: str,
        op: str,
        ms: float,
        ok: bool,
        code: str = "OK",
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Record operation timing and status."""
        ...

    def counter(
        self,
        *,
        component: str,
        name: str,
        value: int = 1,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Increment a counter metric."""
        ...


class NoopMetrics:
    """No-operation metrics sink for testing or when metrics are disabled."""
    def observe(self, **_: Any) -> None: ...
    def counter(self, **_: Any) -> None: ...


# =============================================================================
# Backend Boundary
# =============================================================================


class QueryExecutor(Protocol):
    """
    Executes one SurrealQL request with bound parameters.

    Returns the per-statement results in order (callers read the first one).
    Any failure is raised as BackendExecutionFailure naming `op`.
    """
    def execute(
        self,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        op: str = "query",
    ) -> List[Any]: ...


# =============================================================================
# Stable Store Interface
# =============================================================================


@runtime_checkable
class EmbeddingStoreProtocol(Protocol):
    """Async surface of an embedding store."""

    async def add(
        self,
        embedding: Sequence[float],
        segment: Optional[TextSegment] = None,
        *,
        id: Optional[str] = None,
    ) -> str: ...

    async def add_all(
        self,
        embeddings: Sequence[Sequence[float]],
        segments: Optional[Sequence[Optional[TextSegment]]] = None,
        *,
        ids: Optional[Sequence[str]] = None,
    ) -> List[str]: ...

    async def remove(self, id: str) -> None: ...

    async def remove_all(
        self,
        ids: Optional[Iterable[str]] = None,
        *,
        filter: Optional[Any] = None,
    ) -> None: ...

    async def search(self, request: SearchRequest) -> EmbeddingSearchResult: ...

    async def health(self) -> Dict[str, Any]: ...

    async def close(self) -> None: ...


# =============================================================================
# Base Instrumented Store (validation, metrics, error handling)
# =============================================================================


class BaseEmbeddingStore(EmbeddingStoreProtocol):
    """
    Base class for embedding store backends.

    Public methods validate input, record metrics and delegate to the `_do_*`
    hooks. Backends override the hooks only.

    Example:
        class MyStore(BaseEmbeddingStore):
            async def _do_search(self, request: SearchRequest) -> EmbeddingSearchResult:
                ...
    """

    _component = "store"

    def __init__(
        self,
        *,
        dimension: int,
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
            raise BadRequest(
                "dimension must be a positive integer",
                code="BAD_CONFIG",
                details={"dimension": repr(dimension)},
            )
        self._dimension = dimension
        self._metrics: MetricsSink = metrics or NoopMetrics()

    @property
    def dimension(self) -> int:
        return self._dimension

    # --- internal helpers (validation and instrumentation) ---

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _require_id(value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise BadRequest("id must be a non-empty string")
        return value

    def _validate_embedding(self, embedding: Any) -> None:
        if not _is_numeric_vector(embedding):
            raise BadRequest("embedding must be a non-empty sequence of numbers")
        if len(embedding) != self._dimension:
            raise DimensionMismatch(
                f"embedding dimension {len(embedding)} does not match store dimension {self._dimension}",
                details={"expected": self._dimension, "actual": len(embedding)},
            )

    @staticmethod
    def _validate_segment(segment: Any) -> None:
        if segment is not None and not isinstance(segment, TextSegment):
            raise BadRequest("segment must be a TextSegment or None")

    @staticmethod
    def _hash_obj(obj: Any) -> str:
        return hashlib.sha256(repr(obj).encode("utf-8")).hexdigest()[:12]

    def _record(
        self,
        op: str,
        t0: float,
        ok: bool,
        *,
        code: str = "OK",
        **extra: Any,
    ) -> None:
        """Record operation metrics; never lets metrics break the operation."""
        try:
            ms = (time.monotonic() - t0) * 1000.0
            self._metrics.observe(
                component=self._component,
                op=op,
                ms=ms,
                ok=ok,
                code=code,
                extra=dict(extra) or None,
            )
        except Exception:  # noqa: BLE001
            LOG.debug("metrics observe failed for %s", op, exc_info=True)

    def _count(self, name: str, value: int = 1, **extra: Any) -> None:
        try:
            self._metrics.counter(
                component=self._component,
                name=name,
                value=value,
                extra=dict(extra) or None,
            )
        except Exception:  # noqa: BLE001
            LOG.debug("metrics counter failed for %s", name, exc_info=True)

    async def _instrumented(self, op: str, coro: Any, **extra: Any) -> Any:
        t0 = time.monotonic()
        try:
            result = await coro
        except StoreError as e:
            self._record(op, t0, False, code=e.code or type(e).__name__, **extra)
            raise
        except Exception:
            self._record(op, t0, False, code="UNAVAILABLE", **extra)
            raise
        self._record(op, t0, True, **extra)
        return result

    # --- final public APIs (validation + instrumentation) ---

    async def add(
        self,
        embedding: Sequence[float],
        segment: Optional[TextSegment] = None,
        *,
        id: Optional[str] = None,
    ) -> str:
        """
        Store one embedding, optionally with a text segment.

        Returns the id used: `id` when given, otherwise a fresh UUID4.
        Re-adding an existing id overwrites that record.
        """
        self._validate_embedding(embedding)
        self._validate_segment(segment)
        record_id = self._require_id(id) if id is not None else self._new_id()
        record = EmbeddingRecord.from_segment(record_id, embedding, segment)
        await self._instrumented("add", self._do_add([record]), records=1)
        return record_id

    async def add_all(
        self,
        embeddings: Sequence[Sequence[float]],
        segments: Optional[Sequence[Optional[TextSegment]]] = None,
        *,
        ids: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """
        Store many embeddings; returns their ids in input order.

        `ids`, when given, must match `embeddings` in length. `segments` may be
        shorter than `embeddings`; missing entries mean "no segment".
        """
        if not embeddings:
            return []
        if ids is not None and len(ids) != len(embeddings):
            raise BadRequest(
                "ids size must match embeddings size",
                details={"ids": len(ids), "embeddings": len(embeddings)},
            )

        records: List[EmbeddingRecord] = []
        for index, embedding in enumerate(embeddings):
            self._validate_embedding(embedding)
            segment = segments[index] if segments is not None and index < len(segments) else None
            self._validate_segment(segment)
            record_id = self._require_id(ids[index]) if ids is not None else self._new_id()
            records.append(EmbeddingRecord.from_segment(record_id, embedding, segment))

        await self._instrumented("add", self._do_add(records), records=len(records))
        return [r.id for r in records]

    async def remove(self, id: str) -> None:
        """Delete one record by id."""
        await self.remove_all([self._require_id(id)])

    async def remove_all(
        self,
        ids: Optional[Iterable[str]] = None,
        *,
        filter: Optional[Any] = None,
    ) -> None:
        """
        Delete records.

        - `ids` given: delete those records (an empty collection is a no-op)
        - `filter` given: delete every record matching the filter
        - neither: delete every record in the collection
        """
        if ids is not None and filter is not None:
            raise BadRequest("pass either ids or filter to remove_all, not both")

        if ids is not None:
            if isinstance(ids, str):
                raise BadRequest("ids must be a collection of strings, not a string")
            id_list = [self._require_id(i) for i in ids]
            if not id_list:
                return
            await self._instrumented("remove", self._do_remove(id_list), records=len(id_list))
            return

        if filter is not None:
            node = coerce_filter(filter)
            if node is None:
                raise BadRequest("filter must not be empty")
            await self._instrumented(
                "remove", self._do_remove_matching(node), filter=self._hash_obj(node)
            )
            return

        await self._instrumented("remove", self._do_remove_all())

    async def search(self, request: SearchRequest) -> EmbeddingSearchResult:
        """
        Find the `max_results` nearest records to `request.query_vector`.

        Matches scoring below `request.min_score` are dropped after decoding.
        """
        validate_search_request(request, self._dimension)
        result: EmbeddingSearchResult = await self._instrumented(
            "search", self._do_search(request), max_results=request.max_results
        )
        if result.skipped_rows:
            self._count("rows_skipped", result.skipped_rows)
        self._count("searches")
        return result

    async def health(self) -> Dict[str, Any]:
        """Backend health check; never raises."""
        t0 = time.monotonic()
        try:
            report = await self._do_health()
        except Exception as e:  # noqa: BLE001
            LOG.warning("health check failed: %s", e)
            code = e.code if isinstance(e, StoreError) and e.code else "UNAVAILABLE"
            self._record("health", t0, False, code=code)
            return {"ok": False, "error_code": code, "error_message": str(e)}
        self._record("health", t0, bool(report.get("ok")))
        return report

    async def close(self) -> None:  # noqa: B027
        """Release backend resources. Override if the backend holds any."""

    # --- backend hooks ---

    async def _do_add(self, records: List[EmbeddingRecord]) -> None:
        raise NotImplementedError

    async def _do_remove(self, ids: List[str]) -> None:
        raise NotImplementedError

    async def _do_remove_all(self) -> None:
        raise NotImplementedError

    async def _do_remove_matching(self, node: FilterNode) -> None:
        raise NotImplementedError

    async def _do_search(self, request: SearchRequest) -> EmbeddingSearchResult:
        raise NotImplementedError

    async def _do_health(self) -> Dict[str, Any]:
        return {"ok": True}


__all__ = [
    "DEFAULT_COLLECTION",
    "DEFAULT_MAX_RESULTS",
    "TextSegment",
    "EmbeddingRecord",
    "SearchRequest",
    "EmbeddingMatch",
    "EmbeddingSearchResult",
    "as_float32",
    "validate_collection_name",
    "validate_search_request",
    "MetricsSink",
    "NoopMetrics",
    "QueryExecutor",
    "EmbeddingStoreProtocol",
    "BaseEmbeddingStore",
]
