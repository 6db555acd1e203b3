# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the surrealvec test suite.

Store fixtures run against MockSurrealClient (tests/mock), an in-memory
SurrealDB double that interprets the store's SurrealQL.
tests/store/test_surrealdb_embedded.py uses the driver's embedded mem:// engine.
Tests under tests/live talk to a real server and are skipped unless
SURREALDB_URL is set.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Optional

import pytest

from surrealvec.store import surrealdb_adapter
from surrealvec.store.surrealdb_adapter import SurrealDbEmbeddingStore
from tests.mock.mock_surreal_driver import MockSurrealClient

LIVE_URL_ENV = "SURREALDB_URL"
DEFAULT_TEST_DIMENSION = 3
DEFAULT_TEST_COLLECTION = "docs"


class RecordingMetrics:
    """MetricsSink that keeps every observation and counter for assertions."""

    def __init__(self) -> None:
        self.observations: List[Dict[str, Any]] = []
        self.counters: List[Dict[str, Any]] = []

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
        self.observations.append(
            {"component": component, "op": op, "ms": ms, "ok": ok, "code": code, "extra": extra}
        )

    def counter(
        self,
        *,
        component: str,
        name: str,
        value: int = 1,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.counters.append({"component": component, "name": name, "value": value})

    def ops(self) -> List[str]:
        return [o["op"] for o in self.observations]

    def counter_total(self, name: str) -> int:
        return sum(c["value"] for c in self.counters if c["name"] == name)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "live: talks to a real SurrealDB server (needs SURREALDB_URL)"
    )


def pytest_collection_modifyitems(config: pytest.Config, items: List[pytest.Item]) -> None:
    if os.getenv(LIVE_URL_ENV):
        return
    skip_live = pytest.mark.skip(reason=f"{LIVE_URL_ENV} not set")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def client() -> MockSurrealClient:
    return MockSurrealClient()


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def make_store(client, metrics):
    """Factory building stores over the shared mock client."""

    def _make(**overrides: Any) -> SurrealDbEmbeddingStore:
        kwargs: Dict[str, Any] = {
            "client": client,
            "dimension": DEFAULT_TEST_DIMENSION,
            "collection": DEFAULT_TEST_COLLECTION,
            "metrics": metrics,
        }
        kwargs.update(overrides)
        return SurrealDbEmbeddingStore(**kwargs)

    return _make


@pytest.fixture
def store(make_store) -> SurrealDbEmbeddingStore:
    return make_store()


@pytest.fixture
def connect_env(monkeypatch):
    """
    Clears SURREALDB_* variables and replaces the driver constructor.

    Returns the list of (url, client) pairs opened through it.
    """
    for name in (
        "SURREALDB_URL",
        "SURREALDB_HOST",
        "SURREALDB_PORT",
        "SURREALDB_USE_TLS",
        "SURREALDB_NAMESPACE",
        "SURREALDB_DATABASE",
        "SURREALDB_USERNAME",
        "SURREALDB_PASSWORD",
        "SURREALDB_COLLECTION",
    ):
        monkeypatch.delenv(name, raising=False)

    opened = []

    def fake_surreal(url):
        client = MockSurrealClient()
        opened.append((url, client))
        return client

    monkeypatch.setattr(surrealdb_adapter, "Surreal", fake_surreal)
    return opened
