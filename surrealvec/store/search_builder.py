# surrealvec/store/search_builder.py
# SPDX-License-Identifier: Apache-2.0
"""
SurrealQL query assembly for similarity search and filtered deletes.

A search query always has the same shape:

    SELECT *, vector::similarity::cosine(embedding, $query_embedding) AS score
    FROM <collection>
    WHERE [<filter predicate> AND ]embedding <|<k>,<ef>|> $query_embedding
    ORDER BY score DESC LIMIT $limit

Notes
-----
- The query vector and the LIMIT are bound parameters. SurrealQL only
  accepts literals inside the KNN operator, so `k` and `ef` are inlined there
  after validation as positive ints.
- `<|k,ef|>` is the HNSW form of the operator. The single-argument `<|k|>` form
  targets an M-Tree index and matches nothing against an HNSW one.
  `ef` is the candidate list size, never smaller than `k`.
- `min_score` never reaches the database; the result decoder applies it, so
  threshold semantics do not depend on the backend.
- Validation runs before any text is produced: a bad request never yields a
  query, and therefore never reaches the backend.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, NamedTuple, Optional

from surrealvec.store.errors import BadRequest
from surrealvec.store.filter_compiler import FilterCompiler
from surrealvec.store.filters import FilterNode
from surrealvec.store.store_base import (
    SearchRequest,
    validate_collection_name,
    validate_search_request,
)

LOG = logging.getLogger(__name__)

EMBEDDING_FIELD = "embedding"
QUERY_EMBEDDING_PARAM = "query_embedding"
LIMIT_PARAM = "limit"
SCORE_ALIAS = "score"
DEFAULT_EF_SEARCH = 40


class CompiledQuery(NamedTuple):
    """Query text plus its bound parameters; unpacks as (text, params)."""
    text: str
    params: Dict[str, Any]


class SearchQueryBuilder:
    """
    Builds search and filtered-delete queries for one collection.

    Instances hold configuration only and are safe to share across threads.
    """

    def __init__(
        self,
        collection: str,
        *,
        dimension: Optional[int] = None,
        compiler: Optional[FilterCompiler] = None,
        ef_search: int = DEFAULT_EF_SEARCH,
    ) -> None:
        self._collection = validate_collection_name(collection)
        self._dimension = dimension
        if isinstance(ef_search, bool) or not isinstance(ef_search, int) or ef_search <= 0:
            raise BadRequest(
                f"ef_search must be a positive integer, got {ef_search!r}",
                code="BAD_CONFIG",
            )
        self._ef_search = ef_search
        self._compiler = compiler or FilterCompiler()

    @property
    def collection(self) -> str:
        return self._collection

    def build(self, request: SearchRequest) -> CompiledQuery:
        """
        Assemble the KNN search query for `request`.

        Raises:
            InvalidSearchRequest: max_results <= 0, min_score outside [0, 1],
                or a query vector of the wrong shape
            InvalidFilterKey / UnsupportedFilterType / BadRequest: from the
                filter compiler
        """
        validate_search_request(request, self._dimension)

        params: Dict[str, Any] = {
            QUERY_EMBEDDING_PARAM: [float(x) for x in request.query_vector],
            LIMIT_PARAM: request.max_results,
        }

        clauses = []
        node = request.resolved_filter()
        if node is not None:
            clauses.append(self._compiler.compile(node, params))
        k = int(request.max_results)
        ef = max(k, self._ef_search)
        clauses.append(f"{EMBEDDING_FIELD} <|{k},{ef}|> ${QUERY_EMBEDDING_PARAM}")

        text = (
            f"SELECT *, vector::similarity::cosine({EMBEDDING_FIELD}, ${QUERY_EMBEDDING_PARAM})"
            f" AS {SCORE_ALIAS} FROM {self._collection}"
            f" WHERE {' AND '.join(clauses)}"
            f" ORDER BY {SCORE_ALIAS} DESC LIMIT ${LIMIT_PARAM}"
        )
        LOG.debug("search query: %s (params: %s)", text, sorted(params))
        return CompiledQuery(text, params)

    def build_delete(self, node: FilterNode) -> CompiledQuery:
        """Assemble `DELETE <collection> WHERE <predicate>` for `node`."""
        if node is None:
            raise BadRequest("a filter is required for a filtered delete")
        params: Dict[str, Any] = {}
        predicate = self._compiler.compile(node, params)
        text = f"DELETE {self._collection} WHERE {predicate}"
        LOG.debug("delete query: %s (params: %s)", text, sorted(params))
        return CompiledQuery(text, params)


def build_search_query(
    collection: str,
    request: SearchRequest,
    *,
    dimension: Optional[int] = None,
    ef_search: int = DEFAULT_EF_SEARCH,
) -> CompiledQuery:
    """Functional form of SearchQueryBuilder(collection).build(request)."""
    return SearchQueryBuilder(
        collection, dimension=dimension, ef_search=ef_search
    ).build(request)


__all__ = [
    "EMBEDDING_FIELD",
    "QUERY_EMBEDDING_PARAM",
    "LIMIT_PARAM",
    "SCORE_ALIAS",
    "DEFAULT_EF_SEARCH",
    "CompiledQuery",
    "SearchQueryBuilder",
    "build_search_query",
]
