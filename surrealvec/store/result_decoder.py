# surrealvec/store/result_decoder.py
# SPDX-License-Identifier: Apache-2.0
"""
Decoding of raw SurrealDB rows into EmbeddingMatch records.

Rows come back loosely typed: ids may be record references or plain strings,
vector components may be numbers or numeric strings, metadata may hold
anything. Every field is decoded by one `match` with an explicit fallback:

    field       accepted                                   fallback
    ---------   ----------------------------------------   -------------------------
    id          RecordID, {"tb", "id"} mapping, non-empty  row skipped and counted
                string
    embedding   list/tuple of numbers or numeric strings,  bad components dropped
                rounded to float32
    text        string                                     None (no segment)
    metadata    mapping of str/bool/int/float values       other values omitted
    score       int/float                                  0.0

Rows are kept only when `score >= min_score`. Output order mirrors input
order; the query already sorts by descending score. Decoding has no hidden
state, so the same rows always decode to the same matches.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Dict, List, Optional

from surrealdb import RecordID

from surrealvec.store.store_base import (
    EmbeddingMatch,
    EmbeddingSearchResult,
    TextSegment,
    as_float32,
)

LOG = logging.getLogger(__name__)


class _RowRejected(ValueError):
    """Raised internally when a row cannot be decoded."""


def _decode_id(value: Any) -> str:
    match value:
        case RecordID(id=ident):
            return _identifier_text(ident)
        case {"tb": str(), "id": ident}:
            return _identifier_text(ident)
        case str() if value:
            return value
        case _:
            raise _RowRejected(f"unsupported id shape {type(value).__name__}")


def _identifier_text(ident: Any) -> str:
    match ident:
        case bool():
            raise _RowRejected("boolean record identifier")
        case str() if ident:
            return ident
        case int():
            return str(ident)
        case _:
            raise _RowRejected(f"unsupported record identifier {type(ident).__name__}")


def _decode_number(value: Any) -> Optional[float]:
    match value:
        case bool():
            return None
        case int() | float() | Decimal():
            return float(value)
        case str():
            try:
                return float(value.strip())
            except ValueError:
                return None
        case _:
            return None


def _decode_vector(value: Any) -> List[float]:
    match value:
        case list() | tuple():
            decoded = (_decode_number(v) for v in value)
            return as_float32(v for v in decoded if v is not None)
        case _:
            return []


def _decode_text(value: Any) -> Optional[str]:
    match value:
        case str():
            return value
        case _:
            return None


def _decode_metadata(value: Any) -> Dict[str, Any]:
    match value:
        case Mapping():
            metadata: Dict[str, Any] = {}
            for key, item in value.items():
                match item:
                    case str() | bool() | int() | float() if isinstance(key, str) and key:
                        metadata[key] = item
                    case _:
                        continue
            return metadata
        case _:
            return {}


def _decode_score(value: Any) -> float:
    match value:
        case bool():
            return 0.0
        case int() | float() | Decimal():
            return float(value)
        case _:
            return 0.0


def _as_rows(raw: Any) -> List[Any]:
    match raw:
        case None:
            return []
        case Mapping():
            return [raw]
        case list() | tuple():
            return list(raw)
        case _:
            LOG.warning("unexpected search result shape %s; treating as empty", type(raw).__name__)
            return []


def decode_row(row: Any) -> EmbeddingMatch:
    """
    Decode one row, regardless of score.

    Raises:
        ValueError: the row is not a mapping or its id cannot be decoded
    """
    match row:
        case Mapping():
            pass
        case _:
            raise _RowRejected(f"row is {type(row).__name__}, not an object")

    record_id = _decode_id(row.get("id"))
    text = _decode_text(row.get("text"))
    segment = (
        TextSegment(text, _decode_metadata(row.get("metadata")))
        if text is not None
        else None
    )
    return EmbeddingMatch(
        score=_decode_score(row.get("score")),
        id=record_id,
        vector=_decode_vector(row.get("embedding")),
        segment=segment,
    )


def decode_rows(raw: Any, min_score: float = 0.0) -> EmbeddingSearchResult:
    """
    Decode the first statement's rows, dropping matches below `min_score`.

    Undecodable rows are skipped and counted in `skipped_rows`; they never
    abort the batch. A missing or empty result decodes to no matches.
    """
    matches: List[EmbeddingMatch] = []
    skipped = 0

    for index, row in enumerate(_as_rows(raw)):
        try:
            match_ = decode_row(row)
        except _RowRejected as e:
            skipped += 1
            LOG.debug("skipping row %d: %s", index, e)
            continue
        if match_.score >= min_score:
            matches.append(match_)

    if skipped:
        LOG.warning("skipped %d undecodable row(s) in search result", skipped)
    return EmbeddingSearchResult(matches=matches, skipped_rows=skipped)


__all__ = [
    "decode_row",
    "decode_rows",
]
