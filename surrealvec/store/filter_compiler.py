# surrealvec/store/filter_compiler.py
# SPDX-License-Identifier: Apache-2.0
"""
Filter AST -> SurrealQL predicate compiler.

Values are never interpolated: every Comparison/Membership leaf registers its
value under a generated parameter name and the fragment references it as
`$<name>`. Keys ARE interpolated (as `<namespace>.<key>`), so they are checked
against a safe identifier class first.

    params = {}
    fragment = FilterCompiler().compile(eq("a", 1) & eq("b", 2), params)
    # fragment == "(metadata.a = $filter_param_0) AND (metadata.b = $filter_param_1)"
    # params   == {"filter_param_0": 1, "filter_param_1": 2}

Parameter names come from a counter that restarts at 0 for every top-level
`compile` call, so output is reproducible and names never collide within one
query. Registrations are staged and merged into the caller's mapping only when
the whole tree compiled; a failing compile leaves `params` untouched.
"""

from __future__ import annotations

import itertools
import logging
import re
from typing import Any, Dict, Iterator, MutableMapping, Optional, Tuple

from surrealvec.store.errors import BadRequest, InvalidFilterKey, UnsupportedFilterType
from surrealvec.store.filters import (
    Comparison,
    ComparisonOp,
    FilterNode,
    Logical,
    LogicalOp,
    Membership,
    MembershipOp,
    Negation,
)

LOG = logging.getLogger(__name__)

SAFE_KEY_PATTERN = re.compile(r"[a-zA-Z0-9_.]+")
PARAM_PREFIX = "filter_param_"
DEFAULT_FIELD_NAMESPACE = "metadata"

_COMPARISON_OPERATORS = {
    ComparisonOp.EQ: "=",
    ComparisonOp.NE: "!=",
    ComparisonOp.GT: ">",
    ComparisonOp.GTE: ">=",
    ComparisonOp.LT: "<",
    ComparisonOp.LTE: "<=",
}

_MEMBERSHIP_OPERATORS = {
    MembershipOp.IN: "INSIDE",
    MembershipOp.NOT_IN: "NOTINSIDE",
}

_LOGICAL_JOINERS = {
    LogicalOp.AND: " AND ",
    LogicalOp.OR: " OR ",
}

_SCALAR_TYPES = (str, bool, int, float)


def validate_key(key: Any) -> str:
    """Return `key` if it is a non-empty safe identifier, else raise InvalidFilterKey."""
    if not isinstance(key, str) or not SAFE_KEY_PATTERN.fullmatch(key):
        raise InvalidFilterKey(key)
    return key


class FilterCompiler:
    """
    Compiles FilterNode trees into parameterized SurrealQL predicates.

    The compiler holds no per-call state; one instance can be shared by
    concurrent searches.
    """

    def __init__(
        self,
        namespace: str = DEFAULT_FIELD_NAMESPACE,
        *,
        param_prefix: str = PARAM_PREFIX,
    ) -> None:
        if not SAFE_KEY_PATTERN.fullmatch(namespace or ""):
            raise BadRequest(
                f"invalid field namespace {namespace!r}",
                code="BAD_CONFIG",
            )
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", param_prefix or ""):
            raise BadRequest(
                f"invalid parameter prefix {param_prefix!r}",
                code="BAD_CONFIG",
            )
        self._namespace = namespace
        self._param_prefix = param_prefix

    def compile(self, node: FilterNode, params: MutableMapping[str, Any]) -> str:
        """
        Compile `node` into a predicate fragment, registering bound values in `params`.

        Raises:
            InvalidFilterKey: a leaf key is outside [A-Za-z0-9_.]+
            UnsupportedFilterType: a node (or operator) has no translation
            BadRequest: a value is not a scalar, or a generated name already
                exists in `params`
        """
        staged: Dict[str, Any] = {}
        counter = itertools.count()
        fragment = self._emit(node, staged, counter)

        clashes = sorted(set(staged) & set(params))
        if clashes:
            raise BadRequest(
                "generated filter parameter names already bound",
                code="PARAMETER_COLLISION",
                details={"names": clashes},
            )

        params.update(staged)
        LOG.debug("compiled filter with %d bound parameter(s): %s", len(staged), fragment)
        return fragment

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _emit(self, node: Any, staged: Dict[str, Any], counter: Iterator[int]) -> str:
        match node:
            case Comparison(key=key, op=op, value=value):
                operator = self._lookup(_COMPARISON_OPERATORS, op, "Comparison")
                field = self._field(key)
                self._require_scalar(key, value)
                name = self._register(value, staged, counter)
                return f"{field} {operator} ${name}"

            case Membership(key=key, op=op, values=values):
                operator = self._lookup(_MEMBERSHIP_OPERATORS, op, "Membership")
                field = self._field(key)
                for member in values:
                    self._require_scalar(key, member)
                name = self._register(list(values), staged, counter)
                return f"{field} {operator} ${name}"

            case Logical(op=op, left=left, right=right):
                joiner = self._lookup(_LOGICAL_JOINERS, op, "Logical")
                lhs = self._emit(left, staged, counter)
                rhs = self._emit(right, staged, counter)
                return f"({lhs}){joiner}({rhs})"

            case Negation(inner=inner):
                return f"!({self._emit(inner, staged, counter)})"

            case _:
                raise UnsupportedFilterType(type(node).__name__)

    @staticmethod
    def _lookup(table: Dict[Any, str], op: Any, kind: str) -> str:
        try:
            return table[op]
        except (KeyError, TypeError):
            raise UnsupportedFilterType(f"{kind}[{op!r}]") from None

    def _field(self, key: Any) -> str:
        return f"{self._namespace}.{validate_key(key)}"

    @staticmethod
    def _require_scalar(key: str, value: Any) -> None:
        if not isinstance(value, _SCALAR_TYPES):
            raise BadRequest(
                f"filter value for {key!r} must be a string, boolean, integer or float",
                code="INVALID_FILTER_VALUE",
                details={"key": key, "type": type(value).__name__},
            )

    def _register(self, value: Any, staged: Dict[str, Any], counter: Iterator[int]) -> str:
        name = f"{self._param_prefix}{next(counter)}"
        staged[name] = value
        return name


def compile_filter(
    node: FilterNode,
    params: Optional[MutableMapping[str, Any]] = None,
    *,
    namespace: str = DEFAULT_FIELD_NAMESPACE,
) -> Tuple[str, MutableMapping[str, Any]]:
    """Convenience wrapper: compile `node` and return (fragment, params)."""
    bound: MutableMapping[str, Any] = {} if params is None else params
    fragment = FilterCompiler(namespace).compile(node, bound)
    return fragment, bound


__all__ = [
    "SAFE_KEY_PATTERN",
    "PARAM_PREFIX",
    "DEFAULT_FIELD_NAMESPACE",
    "FilterCompiler",
    "compile_filter",
    "validate_key",
]
