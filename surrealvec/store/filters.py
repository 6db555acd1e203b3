# surrealvec/store/filters.py
# SPDX-License-Identifier: Apache-2.0
"""
Metadata filter AST.

A filter is an immutable tree of four node kinds:

    Comparison(key, op, value)        key <op> value, op in EQ/NE/GT/GTE/LT/LTE
    Membership(key, op, values)       key IN / NOT_IN values
    Logical(op, left, right)          AND / OR of two sub-filters
    Negation(inner)                   NOT sub-filter

Nodes compose with Python operators:

    from surrealvec.store.filters import eq, gt, is_in

    flt = (eq("category", "news") | eq("category", "blog")) & ~gt("year", 2020)

A Mongo-style dictionary dialect is accepted too and converted into the same
tree:

    filter_from_dict({"category": "news", "year": {"$lte": 2020}})

Keys and values are NOT validated here; the predicate compiler validates keys
against the safe identifier class and values against the scalar kinds, so a
tree can be built freely and fails atomically when compiled.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from surrealvec.store.errors import BadRequest, UnsupportedFilterType

Scalar = Union[str, bool, int, float]


class ComparisonOp(str, Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


class MembershipOp(str, Enum):
    IN = "in"
    NOT_IN = "not_in"


class LogicalOp(str, Enum):
    AND = "and"
    OR = "or"


class _Combinable:
    """Operator sugar shared by every node kind."""

    def __and__(self, other: "FilterNode") -> "Logical":
        return Logical(LogicalOp.AND, self, other)  # type: ignore[arg-type]

    def __or__(self, other: "FilterNode") -> "Logical":
        return Logical(LogicalOp.OR, self, other)  # type: ignore[arg-type]

    def __invert__(self) -> "Negation":
        return Negation(self)  # type: ignore[arg-type]


@dataclass(frozen=True)
class Comparison(_Combinable):
    key: str
    op: ComparisonOp
    value: Scalar


@dataclass(frozen=True)
class Membership(_Combinable):
    """
    Set membership test. `values` is stored as a tuple in the caller's
    iteration order; it is bound as ONE collection parameter.
    """
    key: str
    op: MembershipOp
    values: Tuple[Scalar, ...]

    def __post_init__(self) -> None:
        values = self.values
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            raise BadRequest(
                "membership values must be a collection of scalars",
                code="INVALID_FILTER_VALUE",
                details={"key": self.key},
            )
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class Logical(_Combinable):
    op: LogicalOp
    left: "FilterNode"
    right: "FilterNode"


@dataclass(frozen=True)
class Negation(_Combinable):
    inner: "FilterNode"


FilterNode = Union[Comparison, Membership, Logical, Negation]
FILTER_NODE_TYPES = (Comparison, Membership, Logical, Negation)

# --------------------------------------------------------------------------- #
# Builders
# --------------------------------------------------------------------------- #


def eq(key: str, value: Scalar) -> Comparison:
    return Comparison(key, ComparisonOp.EQ, value)


def ne(key: str, value: Scalar) -> Comparison:
    return Comparison(key, ComparisonOp.NE, value)


def gt(key: str, value: Scalar) -> Comparison:
    return Comparison(key, ComparisonOp.GT, value)


def gte(key: str, value: Scalar) -> Comparison:
    return Comparison(key, ComparisonOp.GTE, value)


def lt(key: str, value: Scalar) -> Comparison:
    return Comparison(key, ComparisonOp.LT, value)


def lte(key: str, value: Scalar) -> Comparison:
    return Comparison(key, ComparisonOp.LTE, value)


def is_in(key: str, values: Iterable[Scalar]) -> Membership:
    return Membership(key, MembershipOp.IN, values)  # type: ignore[arg-type]


def not_in(key: str, values: Iterable[Scalar]) -> Membership:
    return Membership(key, MembershipOp.NOT_IN, values)  # type: ignore[arg-type]


def and_(left: FilterNode, right: FilterNode) -> Logical:
    return Logical(LogicalOp.AND, left, right)


def or_(left: FilterNode, right: FilterNode) -> Logical:
    return Logical(LogicalOp.OR, left, right)


def not_(inner: FilterNode) -> Negation:
    return Negation(inner)


# --------------------------------------------------------------------------- #
# Dictionary dialect
# --------------------------------------------------------------------------- #

_DICT_COMPARISONS = {
    "$eq": ComparisonOp.EQ,
    "$ne": ComparisonOp.NE,
    "$gt": ComparisonOp.GT,
    "$gte": ComparisonOp.GTE,
    "$lt": ComparisonOp.LT,
    "$lte": ComparisonOp.LTE,
}

_DICT_MEMBERSHIPS = {
    "$in": MembershipOp.IN,
    "$nin": MembershipOp.NOT_IN,
}


def _fold(op: LogicalOp, nodes: List[FilterNode]) -> Optional[FilterNode]:
    """Left-fold nodes into a binary Logical chain; None when empty."""
    if not nodes:
        return None
    acc = nodes[0]
    for node in nodes[1:]:
        acc = Logical(op, acc, node)
    return acc


def filter_from_dict(filters: Mapping[str, Any]) -> Optional[FilterNode]:
    """
    Translate a Mongo-style dictionary filter into a FilterNode.

    Supported operators:
        - Logical: $and, $or (lists of dicts), $not (dict)
        - Comparison: $eq, $ne, $gt, $gte, $lt, $lte
        - Membership: $in, $nin
        - Implicit equality: {"color": "red"}

    Top-level keys are combined with AND in insertion order. An empty
    mapping yields None (no filter).
    """
    if not filters:
        return None

    conditions: List[FilterNode] = []

    for key, value in filters.items():
        if key in ("$and", "$or"):
            if not isinstance(value, list):
                raise BadRequest(f"{key} value must be a list")
            subs = [filter_from_dict(f) for f in value]
            folded = _fold(
                LogicalOp.AND if key == "$and" else LogicalOp.OR,
                [s for s in subs if s is not None],
            )
            if folded is not None:
                conditions.append(folded)
            continue

        if key == "$not":
            if not isinstance(value, Mapping):
                raise BadRequest("$not value must be a dict")
            sub = filter_from_dict(value)
            if sub is not None:
                conditions.append(Negation(sub))
            continue

        if key.startswith("$"):
            raise UnsupportedFilterType(key)

        if isinstance(value, Mapping):
            for op, op_val in value.items():
                if op in _DICT_COMPARISONS:
                    conditions.append(Comparison(key, _DICT_COMPARISONS[op], op_val))
                elif op in _DICT_MEMBERSHIPS:
                    conditions.append(Membership(key, _DICT_MEMBERSHIPS[op], op_val))
                else:
                    raise UnsupportedFilterType(op)
        else:
            conditions.append(Comparison(key, ComparisonOp.EQ, value))

    return _fold(LogicalOp.AND, conditions)


def coerce_filter(value: Any) -> Optional[FilterNode]:
    """Accept a FilterNode, a dictionary filter, or None."""
    if value is None:
        return None
    if isinstance(value, FILTER_NODE_TYPES):
        return value
    if isinstance(value, Mapping):
        return filter_from_dict(value)
    raise UnsupportedFilterType(type(value).__name__)


__all__ = [
    "Scalar",
    "ComparisonOp",
    "MembershipOp",
    "LogicalOp",
    "Comparison",
    "Membership",
    "Logical",
    "Negation",
    "FilterNode",
    "FILTER_NODE_TYPES",
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
    "coerce_filter",
]
