# SPDX-License-Identifier: Apache-2.0
"""
SurrealDB store end to end over the in-memory driver double.
"""

import pytest
from surrealdb import RecordID

from surrealvec.core.error_context import get_context
from surrealvec.store.errors import (
    BackendExecutionFailure,
    BadRequest,
    DimensionMismatch,
    InvalidFilterKey,
    InvalidSearchRequest,
)
from surrealvec.store.filters import eq, gte, is_in
from surrealvec.store.store_base import SearchRequest, TextSegment, as_float32
from surrealvec.store.surrealdb_adapter import SurrealDbEmbeddingStore

pytestmark = pytest.mark.asyncio


async def _seed(store):
    return await store.add_all(
        [[1.0, 0.0, 0.0], [0.9, 0.1, 0.0], [0.0, 1.0, 0.0]],
        [
            TextSegment("breaking", {"category": "news", "year": 2024}),
            TextSegment("rome", {"category": "history", "year": 1990}),
            TextSegment("diary", {"category": "blog", "year": 2021}),
        ],
        ids=["n1", "h1", "b1"],
    )


# --------------------------------------------------------------------------- #
# Add / search
# --------------------------------------------------------------------------- #


async def test_filtered_search_returns_only_matching_record(store):
    """Category filter wins over vector similarity."""
    await _seed(store)

    result = await store.search(
        SearchRequest([0.0, 1.0, 0.0], filter=eq("category", "news"), max_results=3)
    )

    assert [m.id for m in result.matches] == ["n1"]
    assert result.matches[0].segment == TextSegment("breaking", {"category": "news", "year": 2024})


async def test_search_orders_by_score_and_limits(store):
    await _seed(store)

    result = await store.search(SearchRequest([1.0, 0.0, 0.0], max_results=2))

    assert [m.id for m in result.matches] == ["n1", "h1"]
    assert result.matches[0].score == pytest.approx(1.0)
    assert result.matches[0].score >= result.matches[1].score


async def test_min_score_cutoff(store):
    await _seed(store)

    result = await store.search(SearchRequest([1.0, 0.0, 0.0], max_results=3, min_score=0.995))
    assert [m.id for m in result.matches] == ["n1"]


async def test_dictionary_and_membership_filters(store):
    await _seed(store)

    by_dict = await store.search(
        SearchRequest([1.0, 0.0, 0.0], filter={"year": {"$gte": 2000}, "category": {"$ne": "blog"}})
    )
    by_in = await store.search(
        SearchRequest([1.0, 0.0, 0.0], filter=is_in("category", ["history", "blog"]))
    )

    assert [m.id for m in by_dict.matches] == ["n1"]
    assert sorted(m.id for m in by_in.matches) == ["b1", "h1"]


async def test_add_generates_uuid_and_stores_content(store, client):
    record_id = await store.add([0.5, 0.5, 0.0])

    assert len(record_id) == 36
    assert client.tables["docs"][record_id] == {"embedding": [0.5, 0.5, 0.0], "metadata": {}}
    upserts = [arg for name, arg in client.calls if name == "upsert"]
    assert [(r.table_name, r.id) for r in upserts] == [("docs", record_id)]


async def test_add_stores_float32_rounded_vector(store, client):
    await store.add([0.1, 0.2, 0.3], id="f")

    stored = client.tables["docs"]["f"]["embedding"]
    assert stored == as_float32([0.1, 0.2, 0.3])
    assert (await store.search(SearchRequest([0.1, 0.2, 0.3]))).matches[0].vector == stored


async def test_search_uses_hnsw_knn_operator(make_store, client):
    store = make_store(ef_search=16)
    await _seed(store)

    await store.search(SearchRequest([1.0, 0.0, 0.0], max_results=2))

    query, _ = client.queries_matching("SELECT *")[-1]
    assert "embedding <|2,16|> $query_embedding" in query


async def test_add_with_id_overwrites(store, client):
    await store.add([1.0, 0.0, 0.0], TextSegment("v1"), id="x")
    await store.add([0.0, 1.0, 0.0], TextSegment("v2"), id="x")

    assert client.ids("docs") == ["x"]
    assert client.tables["docs"]["x"]["text"] == "v2"


async def test_search_without_text_has_no_segment(store):
    await store.add([1.0, 0.0, 0.0], id="bare")
    result = await store.search(SearchRequest([1.0, 0.0, 0.0]))
    assert result.matches[0].segment is None


async def test_add_all_validates_before_writing(store, client):
    with pytest.raises(DimensionMismatch):
        await store.add_all([[1.0, 0.0, 0.0], [1.0, 0.0]])
    with pytest.raises(BadRequest):
        await store.add_all([[1.0, 0.0, 0.0]], ids=["a", "b"])
    assert client.tables.get("docs", {}) == {}


async def test_add_all_shorter_segments_and_empty_input(store, client):
    assert await store.add_all([]) == []

    ids = await store.add_all(
        [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], [TextSegment("only first")], ids=["a", "b"]
    )
    assert ids == ["a", "b"]
    assert "text" not in client.tables["docs"]["b"]


async def test_add_rejects_bad_input(store):
    with pytest.raises(BadRequest):
        await store.add([1.0, 0.0, 0.0], id="  ")
    with pytest.raises(BadRequest):
        await store.add([1.0, "x", 0.0])
    with pytest.raises(BadRequest):
        await store.add([1.0, 0.0, 0.0], segment="text")


async def test_search_validation_happens_before_any_query(store, client):
    sent = len(client.queries)

    with pytest.raises(InvalidSearchRequest):
        await store.search(SearchRequest([1.0, 0.0, 0.0], max_results=0))
    with pytest.raises(InvalidSearchRequest):
        await store.search(SearchRequest([1.0, 0.0]))
    with pytest.raises(InvalidFilterKey):
        await store.search(SearchRequest([1.0, 0.0, 0.0], filter=eq("a b", 1)))

    assert len(client.queries) == sent


async def test_search_skips_bad_rows_and_counts_them(store, client, metrics):
    client.search_rows = [
        {"id": RecordID("docs", "a"), "embedding": [1, 0, 0], "score": 0.9},
        {"id": None, "embedding": [1, 0, 0], "score": 0.8},
    ]

    result = await store.search(SearchRequest([1.0, 0.0, 0.0]))

    assert [m.id for m in result.matches] == ["a"]
    assert result.skipped_rows == 1
    assert metrics.counter_total("rows_skipped") == 1


# --------------------------------------------------------------------------- #
# Remove
# --------------------------------------------------------------------------- #


async def test_remove_by_id(store, client):
    await _seed(store)
    await store.remove("h1")
    assert client.ids("docs") == ["b1", "n1"]


async def test_remove_all_by_ids_and_empty_ids(store, client):
    await _seed(store)
    calls = len(client.calls)

    await store.remove_all([])
    assert len(client.calls) == calls

    await store.remove_all(["n1", "b1", "missing"])
    assert client.ids("docs") == ["h1"]


async def test_remove_all_by_filter(store, client):
    await _seed(store)
    await store.remove_all(filter=gte("year", 2021))

    assert client.ids("docs") == ["h1"]
    assert client.queries[-1] == (
        "DELETE docs WHERE metadata.year >= $filter_param_0",
        {"filter_param_0": 2021},
    )


async def test_remove_all_clears_collection(store, client):
    await _seed(store)
    await store.remove_all()
    assert client.ids("docs") == []
    assert ("delete", "docs") in client.calls


async def test_remove_all_argument_errors(store):
    with pytest.raises(BadRequest):
        await store.remove_all(["a"], filter=eq("a", 1))
    with pytest.raises(BadRequest):
        await store.remove_all("abc")
    with pytest.raises(BadRequest):
        await store.remove_all(filter={})
    with pytest.raises(BadRequest):
        await store.remove("")


# --------------------------------------------------------------------------- #
# Backend failures
# --------------------------------------------------------------------------- #


async def test_add_failure_names_operation(store, client):
    cause = ConnectionError("socket closed")
    client.raise_on["upsert"] = cause

    with pytest.raises(BackendExecutionFailure) as exc_info:
        await store.add([1.0, 0.0, 0.0])

    err = exc_info.value
    assert err.operation == "add"
    assert err.__cause__ is cause
    assert get_context(err, component="store_surrealdb")["operation"] == "add"


async def test_search_statement_error_names_operation(store, client, metrics):
    client.fail_queries["vector::similarity"] = "Parse error"

    with pytest.raises(BackendExecutionFailure) as exc_info:
        await store.search(SearchRequest([1.0, 0.0, 0.0]))

    assert exc_info.value.operation == "search"
    assert "Parse error" in str(exc_info.value)
    assert metrics.observations[-1]["ok"] is False
    assert metrics.observations[-1]["code"] == "BACKEND_EXECUTION_FAILURE"


async def test_rpc_error_on_filtered_delete(store, client):
    client.rpc_errors["DELETE docs"] = "There was a problem with authentication"

    with pytest.raises(BackendExecutionFailure) as exc_info:
        await store.remove_all(filter=eq("category", "news"))
    assert exc_info.value.operation == "remove"
    assert exc_info.value.details["operation"] == "remove"


async def test_remove_failure_names_operation(store, client):
    client.raise_on["delete"] = RuntimeError("boom")
    with pytest.raises(BackendExecutionFailure) as exc_info:
        await store.remove("a")
    assert exc_info.value.operation == "remove"


# --------------------------------------------------------------------------- #
# Health, metrics, lifecycle
# --------------------------------------------------------------------------- #


async def test_health_reports_count(store):
    await _seed(store)
    report = await store.health()

    assert report["ok"] is True
    assert report["server"] == "surrealdb"
    assert report["collection"] == "docs"
    assert report["count"] == 3
    assert report["index"] == "present"


async def test_health_on_empty_collection(store):
    assert (await store.health())["count"] == 0


async def test_health_never_raises(store, client):
    client.raise_on["query_raw"] = ConnectionError("down")
    report = await store.health()

    assert report["ok"] is False
    assert report["error_code"] == "BACKEND_EXECUTION_FAILURE"


async def test_every_operation_is_observed(store, metrics):
    await store.add([1.0, 0.0, 0.0], id="a")
    await store.search(SearchRequest([1.0, 0.0, 0.0]))
    await store.remove("a")
    await store.health()

    assert metrics.ops() == ["add", "search", "remove", "health"]
    assert all(o["component"] == "store_surrealdb" for o in metrics.observations)
    assert metrics.counter_total("searches") == 1


async def test_metrics_failures_do_not_break_operations(make_store):
    class Broken:
        def observe(self, **_):
            raise RuntimeError("sink down")

        def counter(self, **_):
            raise RuntimeError("sink down")

    store = make_store(metrics=Broken())
    await store.add([1.0, 0.0, 0.0], id="a")
    assert len((await store.search(SearchRequest([1.0, 0.0, 0.0]))).matches) == 1


async def test_close_leaves_supplied_client_open(store, client):
    await store.close()
    assert client.closed is False


async def test_connects_signs_in_and_closes(connect_env):
    store = SurrealDbEmbeddingStore(
        dimension=3,
        url="ws://db:8000",
        namespace="ns",
        database="db",
        username="root",
        password="secret",
    )
    url, client = connect_env[0]

    assert url == "ws://db:8000"
    assert client.calls[:2] == [
        ("signin", {"username": "root", "password": "secret"}),
        ("use", ("ns", "db")),
    ]
    assert store.collection == "vectors"

    await store.close()
    assert client.closed is True

