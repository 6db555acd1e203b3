# surrealvec/store/index_guard.py
# SPDX-License-Identifier: Apache-2.0
"""
Index lifecycle for a collection: define the table and its HNSW index, or
confirm that an index defined earlier has the configured dimension.

    DEFINE TABLE <collection> SCHEMALESS;
    DEFINE INDEX idx_embedding_<collection> ON TABLE <collection>
        FIELDS embedding HNSW DIMENSION <n> DIST COSINE TYPE F32;

When the index already exists, `INFO FOR TABLE` is read back and the first
`DIMENSION <digits>` token of the stored definition is compared with the
configured dimension. A definition without a readable dimension is logged
and accepted; only a readable, different dimension is fatal.

The guard runs once per store, before the store accepts operations. Two
stores racing to define the same index meet in the "already exists" branch,
which validates instead of failing.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from surrealvec.core.error_context import attach_context
from surrealvec.store.errors import IndexCreationFailed, IndexDimensionMismatch
from surrealvec.store.search_builder import EMBEDDING_FIELD
from surrealvec.store.store_base import QueryExecutor, validate_collection_name

LOG = logging.getLogger(__name__)

INDEX_NAME_PREFIX = "idx_embedding_"
DIMENSION_PATTERN = re.compile(r"DIMENSION\s+(\d+)")
_ALREADY_EXISTS = "already exists"
_COMPONENT = "store_surrealdb"


class IndexState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"


@dataclass(frozen=True)
class IndexDescriptor:
    """
    HNSW index over the `embedding` field of one collection.

    Attributes:
        collection: Table the index is defined on
        dimension: Vector dimension declared by the index
        distance_metric: Distance function (cosine)
        element_type: Stored element type
    """
    collection: str
    dimension: int
    distance_metric: str = "COSINE"
    element_type: str = "F32"

    def __post_init__(self) -> None:
        validate_collection_name(self.collection)

    @property
    def name(self) -> str:
        return f"{INDEX_NAME_PREFIX}{self.collection}"

    def definition(self) -> str:
        return (
            f"DEFINE INDEX {self.name} ON TABLE {self.collection}"
            f" FIELDS {EMBEDDING_FIELD} HNSW DIMENSION {self.dimension}"
            f" DIST {self.distance_metric} TYPE {self.element_type};"
        )


def extract_dimension(definition: Any) -> Optional[int]:
    """First `DIMENSION <digits>` value in an index definition, or None."""
    if not isinstance(definition, str):
        return None
    m = DIMENSION_PATTERN.search(definition)
    return int(m.group(1)) if m else None


def find_index_definition(info: Any, index_name: str) -> Optional[str]:
    """
    Locate `index_name` in an `INFO FOR TABLE` result.

    Servers report `indexes` either as a name -> definition mapping or as a
    list of {"name": ..., "index"/"definition": ...} objects.
    """
    if isinstance(info, list):
        info = info[0] if info else None
    if not isinstance(info, Mapping):
        return None

    indexes = info.get("indexes")
    if isinstance(indexes, Mapping):
        value = indexes.get(index_name)
        return value if isinstance(value, str) else None
    if isinstance(indexes, list):
        for entry in indexes:
            if isinstance(entry, Mapping) and entry.get("name") == index_name:
                value = entry.get("index", entry.get("definition"))
                return value if isinstance(value, str) else None
    return None


def _already_exists(exc: BaseException) -> bool:
    return _ALREADY_EXISTS in str(exc).lower()


class IndexLifecycleGuard:
    """
    Ensures the table and vector index exist with the expected dimension.

    Example:
        guard = IndexLifecycleGuard(executor, IndexDescriptor("docs", 384))
        guard.ensure()   # IndexState.PRESENT or raises
    """

    def __init__(
        self,
        executor: QueryExecutor,
        descriptor: IndexDescriptor,
        *,
        define_table: bool = True,
    ) -> None:
        self._executor = executor
        self._descriptor = descriptor
        self._define_table = define_table
        self._state = IndexState.ABSENT

    @property
    def descriptor(self) -> IndexDescriptor:
        return self._descriptor

    @property
    def state(self) -> IndexState:
        return self._state

    def ensure(self) -> IndexState:
        """
        Define the table and index, or validate the existing index.

        Raises:
            IndexCreationFailed: a definition failed for any reason other than
                "already exists", or the existing index could not be inspected
            IndexDimensionMismatch: the existing index declares another dimension
        """
        if self._state is IndexState.PRESENT:
            return self._state

        if self._define_table:
            self._ensure_table()

        descriptor = self._descriptor
        try:
            self._executor.execute(descriptor.definition(), op="index_setup")
        except Exception as e:  # noqa: BLE001
            if not _already_exists(e):
                raise self._failure(f"Failed to create index {descriptor.name}", e) from e
            LOG.debug("index %s already exists; validating dimension", descriptor.name)
            self._validate_existing()
        else:
            LOG.info(
                "created HNSW index %s on %s (dimension=%d)",
                descriptor.name,
                descriptor.collection,
                descriptor.dimension,
            )

        self._state = IndexState.PRESENT
        return self._state

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _ensure_table(self) -> None:
        collection = self._descriptor.collection
        try:
            self._executor.execute(f"DEFINE TABLE {collection} SCHEMALESS;", op="index_setup")
        except Exception as e:  # noqa: BLE001
            if not _already_exists(e):
                raise self._failure(f"Failed to define table {collection}", e) from e
            LOG.debug("table %s already exists", collection)

    def _validate_existing(self) -> None:
        descriptor = self._descriptor
        try:
            results = self._executor.execute(
                f"INFO FOR TABLE {descriptor.collection};", op="index_setup"
            )
        except Exception as e:  # noqa: BLE001
            raise self._failure(f"Failed to inspect existing index {descriptor.name}", e) from e

        definition = find_index_definition(results[0] if results else None, descriptor.name)
        actual = extract_dimension(definition)
        if actual is None:
            LOG.warning(
                "could not read dimension of existing index %s; assuming %d",
                descriptor.name,
                descriptor.dimension,
            )
            return

        if actual != descriptor.dimension:
            err = IndexDimensionMismatch(descriptor.name, descriptor.dimension, actual)
            attach_context(
                err,
                _COMPONENT,
                operation="index_setup",
                collection=descriptor.collection,
            )
            raise err

    def _failure(self, message: str, cause: BaseException) -> IndexCreationFailed:
        err = IndexCreationFailed(
            f"{message}: {cause}",
            details={"index": self._descriptor.name, "collection": self._descriptor.collection},
        )
        attach_context(
            err,
            _COMPONENT,
            operation="index_setup",
            collection=self._descriptor.collection,
        )
        return err


__all__ = [
    "INDEX_NAME_PREFIX",
    "DIMENSION_PATTERN",
    "IndexState",
    "IndexDescriptor",
    "IndexLifecycleGuard",
    "extract_dimension",
    "find_index_definition",
]
