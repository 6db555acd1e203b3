# surrealvec/store/surrealdb_adapter.py
# SPDX-License-Identifier: Apache-2.0
"""
SurrealDB embedding store.

This module implements `BaseEmbeddingStore` on top of a SurrealDB table with
an HNSW vector index over the `embedding` field.

Goals
-----
- Map store operations onto SurrealDB record and SurrealQL operations.
- Keep every value out of query text (bound parameters only).
- Surface driver and statement failures as BackendExecutionFailure naming
  the failing operation.
- Validate (or create) the vector index before the store is handed out.

Usage
-----
    from surrealvec.store.surrealdb_adapter import SurrealDbEmbeddingStore
    from surrealvec.store.store_base import SearchRequest, TextSegment
    from surrealvec.store.filters import eq

    store = SurrealDbEmbeddingStore(
        url="ws://localhost:8000",
        namespace="demo",
        database="demo",
        username="root",
        password="root",
        collection="docs",
        dimension=384,
    )

    doc_id = await store.add([...], TextSegment("hello", {"category": "news"}))
    res = await store.search(
        SearchRequest(query_vector=[...], filter=eq("category", "news"), max_results=5)
    )

Configuration
-------------
Keyword arguments win; otherwise SURREALDB_URL, SURREALDB_HOST,
SURREALDB_PORT, SURREALDB_USE_TLS, SURREALDB_NAMESPACE, SURREALDB_DATABASE,
SURREALDB_USERNAME, SURREALDB_PASSWORD and SURREALDB_COLLECTION are read
from the environment. A pre-built `client` skips connection and sign-in;
with one, `namespace` and `database` are either both given or both omitted.
`ef_search` sets the HNSW candidate list size used by searches.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from surrealdb import RecordID, Surreal

from surrealvec.core.error_context import attach_context
from surrealvec.store.errors import BackendExecutionFailure, BadRequest, StoreError
from surrealvec.store.filters import FilterNode
from surrealvec.store.index_guard import IndexDescriptor, IndexLifecycleGuard, IndexState
from surrealvec.store.result_decoder import decode_rows
from surrealvec.store.search_builder import DEFAULT_EF_SEARCH, SearchQueryBuilder
from surrealvec.store.store_base import (
    DEFAULT_COLLECTION,
    BaseEmbeddingStore,
    EmbeddingRecord,
    EmbeddingSearchResult,
    MetricsSink,
    SearchRequest,
    validate_collection_name,
)

LOG = logging.getLogger(__name__)

COMPONENT = "store_surrealdb"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8000

_TRUTHY = {"1", "true", "yes", "on"}


def _backend_failure(
    message: str, op: str, **context: Any
) -> BackendExecutionFailure:
    err = BackendExecutionFailure(message, operation=op)
    attach_context(err, COMPONENT, operation=op, **context)
    return err


class SurrealExecutor:
    """
    Runs SurrealQL and driver calls against one SurrealDB connection.

    The blocking driver multiplexes a single socket, so calls are serialized
    with a lock; callers push them to a worker thread.
    """

    def __init__(self, client: Any) -> None:
        self._client = client
        self._lock = threading.Lock()

    @property
    def client(self) -> Any:
        return self._client

    def run(self, op: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Invoke a driver method, translating driver errors for `op`."""
        with self._lock:
            try:
                return func(*args, **kwargs)
            except StoreError:
                raise
            except Exception as exc:  # noqa: BLE001
                raise _backend_failure(f"SurrealDB {op} failed: {exc}", op) from exc

    def execute(
        self,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        op: str = "query",
    ) -> List[Any]:
        """
        Execute `query` and return each statement's result.

        Raises BackendExecutionFailure when the RPC call errors or any
        statement reports status ERR.
        """
        bound = dict(params or {})
        LOG.debug("%s query: %s (params: %s)", op, query, sorted(bound))
        response = self.run(op, self._client.query_raw, query, bound)
        return self._statement_results(response, op)

    @staticmethod
    def _statement_results(response: Any, op: str) -> List[Any]:
        if not isinstance(response, Mapping):
            raise _backend_failure(
                f"unexpected SurrealDB response type {type(response).__name__}", op
            )

        error = response.get("error")
        if error is not None:
            message = error.get("message") if isinstance(error, Mapping) else error
            raise _backend_failure(f"SurrealDB {op} failed: {message}", op)

        statements = response.get("result")
        if statements is None:
            return []
        if not isinstance(statements, list):
            raise _backend_failure(
                f"unexpected SurrealDB result type {type(statements).__name__}", op
            )

        results: List[Any] = []
        for index, statement in enumerate(statements):
            if not isinstance(statement, Mapping):
                results.append(statement)
                continue
            if statement.get("status", "OK") != "OK":
                raise _backend_failure(
                    f"SurrealDB {op} failed: {statement.get('result')}",
                    op,
                    statement=index,
                )
            results.append(statement.get("result"))
        return results


class SurrealDbEmbeddingStore(BaseEmbeddingStore):
    """
    Embedding store backed by a SurrealDB table.

    Design notes
    ------------
    - Async-first: all driver calls run via `asyncio.to_thread`.
    - Records are stored as `<collection>:<id>` with body
      `{embedding, text?, metadata}`; re-adding an id overwrites it (UPSERT).
    - Metadata filters compile to `metadata.<key>` predicates with bound values.
    - The HNSW index is defined (or validated) synchronously at construction.
    """

    _component = COMPONENT

    def __init__(
        self,
        *,
        dimension: int,
        client: Optional[Any] = None,
        url: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        use_tls: Optional[bool] = None,
        namespace: Optional[str] = None,
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        collection: Optional[str] = None,
        ensure_index: bool = True,
        ef_search: int = DEFAULT_EF_SEARCH,
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        super().__init__(dimension=dimension, metrics=metrics)

        self._collection = validate_collection_name(
            collection or os.getenv("SURREALDB_COLLECTION") or DEFAULT_COLLECTION
        )

        self._owns_client = client is None
        if client is None:
            client = self._connect(
                url=url,
                host=host,
                port=port,
                use_tls=use_tls,
                namespace=namespace,
                database=database,
                username=username,
                password=password,
            )
        elif namespace or database:
            if not (namespace and database):
                raise BadRequest(
                    "namespace and database must be given together", code="BAD_CONFIG"
                )
            SurrealExecutor(client).run("connect", client.use, namespace, database)

        self._client = client
        self._executor = SurrealExecutor(client)
        try:
            self._builder = SearchQueryBuilder(
                self._collection, dimension=dimension, ef_search=ef_search
            )
            self._guard = IndexLifecycleGuard(
                self._executor, IndexDescriptor(self._collection, dimension)
            )
            if ensure_index:
                self._guard.ensure()
        except BaseException:
            # an owned connection must not outlive a failed construction
            if self._owns_client:
                self._close_quietly(client)
            raise

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @staticmethod
    def resolve_url(
        url: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        use_tls: Optional[bool] = None,
    ) -> str:
        """Connection URL from keywords, then SURREALDB_* variables, then defaults."""
        url = url or os.getenv("SURREALDB_URL")
        if url:
            return url

        host = host or os.getenv("SURREALDB_HOST") or DEFAULT_HOST
        raw_port: Any = port if port is not None else os.getenv("SURREALDB_PORT", DEFAULT_PORT)
        try:
            port_num = int(raw_port)
        except (TypeError, ValueError):
            raise BadRequest(
                f"port must be an integer, got {raw_port!r}", code="BAD_CONFIG"
            ) from None
        if not 0 < port_num < 65536:
            raise BadRequest(f"port out of range: {port_num}", code="BAD_CONFIG")

        if use_tls is None:
            use_tls = os.getenv("SURREALDB_USE_TLS", "").strip().lower() in _TRUTHY
        scheme = "wss" if use_tls else "ws"
        return f"{scheme}://{host}:{port_num}"

    @staticmethod
    def _require(name: str, value: Optional[str], env: str) -> str:
        value = value or os.getenv(env)
        if not value:
            raise BadRequest(
                f"{name} is required (pass {name}= or set {env})",
                code="BAD_CONFIG",
            )
        return value

    def _connect(
        self,
        *,
        url: Optional[str],
        host: Optional[str],
        port: Optional[int],
        use_tls: Optional[bool],
        namespace: Optional[str],
        database: Optional[str],
        username: Optional[str],
        password: Optional[str],
    ) -> Any:
        resolved = self.resolve_url(url, host, port, use_tls)
        namespace = self._require("namespace", namespace, "SURREALDB_NAMESPACE")
        database = self._require("database", database, "SURREALDB_DATABASE")
        username = self._require("username", username, "SURREALDB_USERNAME")
        password = self._require("password", password, "SURREALDB_PASSWORD")

        client = None
        try:
            client = Surreal(resolved)
            client.signin({"username": username, "password": password})
            client.use(namespace, database)
        except Exception as exc:  # noqa: BLE001
            if client is not None:
                self._close_quietly(client)
            raise _backend_failure(
                f"Failed to connect to SurrealDB at {resolved}: {exc}", "connect"
            ) from exc

        LOG.info("connected to SurrealDB at %s (ns=%s, db=%s)", resolved, namespace, database)
        return client

    @staticmethod
    def _close_quietly(client: Any) -> None:
        try:
            client.close()
        except Exception as exc:  # noqa: BLE001
            LOG.warning("failed to close SurrealDB connection: %s", exc)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def index_state(self) -> IndexState:
        return self._guard.state

    def _record_id(self, id: str) -> RecordID:
        return RecordID(self._collection, id)

    async def _call_surreal(self, op: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run a driver method on a worker thread under the executor lock."""
        return await asyncio.to_thread(self._executor.run, op, func, *args)

    async def _query(self, op: str, text: str, params: Dict[str, Any]) -> List[Any]:
        return await asyncio.to_thread(self._executor.execute, text, params, op=op)

    # ------------------------------------------------------------------ #
    # Backend hooks
    # ------------------------------------------------------------------ #

    async def _do_add(self, records: List[EmbeddingRecord]) -> None:
        client = self._client

        def upsert_all() -> None:
            for record in records:
                client.upsert(self._record_id(record.id), record.to_content())

        await self._call_surreal("add", upsert_all)

    async def _do_remove(self, ids: List[str]) -> None:
        client = self._client

        def delete_all() -> None:
            for record_id in ids:
                client.delete(self._record_id(record_id))

        await self._call_surreal("remove", delete_all)

    async def _do_remove_all(self) -> None:
        await self._call_surreal("remove", self._client.delete, self._collection)

    async def _do_remove_matching(self, node: FilterNode) -> None:
        text, params = self._builder.build_delete(node)
        await self._query("remove", text, params)

    async def _do_search(self, request: SearchRequest) -> EmbeddingSearchResult:
        text, params = self._builder.build(request)
        results = await self._query("search", text, params)
        return decode_rows(results[0] if results else None, request.min_score)

    async def _do_health(self) -> Dict[str, Any]:
        results = await self._query(
            "health", f"SELECT count() FROM {self._collection} GROUP ALL", {}
        )
        rows = results[0] if results else None
        count = 0
        if isinstance(rows, list) and rows and isinstance(rows[0], Mapping):
            count = int(rows[0].get("count") or 0)
        return {
            "ok": True,
            "server": "surrealdb",
            "collection": self._collection,
            "dimension": self.dimension,
            "index": self._guard.state.value,
            "count": count,
        }

    async def close(self) -> None:
        """Close the connection when this store opened it."""
        if not self._owns_client:
            return
        await self._call_surreal("close", self._client.close)


__all__ = [
    "COMPONENT",
    "SurrealExecutor",
    "SurrealDbEmbeddingStore",
]
