"""
Visibility evaluator.

Evaluates visibility expressions against the data store and a host auth
predicate. Pure tree walk over a closed set of node types: no eval(), no
side effects, and no exceptions escape. Ill-typed comparisons evaluate
False so one bad expression cannot break rendering of the whole tree.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from json_render.runtime.data_store import DataStore
from json_render.runtime.pointer import ABSENT, value_kind
from json_render.specs.element import UIElement
from json_render.specs.values import PathRef
from json_render.specs.visibility import (
    AndCondition,
    AuthCondition,
    CompareCondition,
    CompareOp,
    NotCondition,
    OrCondition,
    VisibilityExpr,
)

logger = logging.getLogger(__name__)

AuthPredicate = Callable[[str], bool]


# =============================================================================
# Auth state
# =============================================================================


@dataclass(frozen=True)
class AuthState:
    """
    Simple auth predicate for hosts without their own session model.

    ``signedIn`` / ``signedOut`` test the session; any other mode is a role
    name that requires a signed-in user holding that role.
    """

    signed_in: bool = False
    roles: frozenset[str] = field(default_factory=frozenset)

    def __call__(self, mode: str) -> bool:
        if mode == "signedIn":
            return self.signed_in
        if mode == "signedOut":
            return not self.signed_in
        return self.signed_in and mode in self.roles


SIGNED_OUT = AuthState()


# =============================================================================
# Truthiness and comparison
# =============================================================================


def is_truthy(value: Any) -> bool:
    """ABSENT, None, False, 0, "", and empty containers are falsy."""
    if value is ABSENT or value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str | list | tuple | Mapping):
        return len(value) > 0
    return True


_ORDERED_KINDS = frozenset({"number", "string"})
_EQUATABLE_KINDS = frozenset({"null", "bool", "number", "string", "list", "mapping"})


def compare(op: CompareOp, left: Any, right: Any) -> bool:
    """
    Compare two resolved operands.

    Operands of different kinds, ABSENT operands, and ordering on kinds
    without a total order all give False.
    """
    kind = value_kind(left)
    if kind != value_kind(right):
        return False
    try:
        if op == CompareOp.EQ:
            return kind in _EQUATABLE_KINDS and bool(left == right)
        if op == CompareOp.NE:
            return kind in _EQUATABLE_KINDS and bool(left != right)
        if kind not in _ORDERED_KINDS:
            return False
        if op == CompareOp.GT:
            return bool(left > right)
        if op == CompareOp.GTE:
            return bool(left >= right)
        if op == CompareOp.LT:
            return bool(left < right)
        if op == CompareOp.LTE:
            return bool(left <= right)
    except TypeError:
        return False
    return False


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_visibility(
    expr: VisibilityExpr | None,
    store: DataStore,
    auth: AuthPredicate | None = None,
) -> bool:
    """
    Evaluate a visibility expression.

    Args:
        expr: Parsed expression; None means always visible
        store: Data store to resolve paths against
        auth: Host auth predicate; defaults to a signed-out session

    Returns:
        True if the element should render
    """
    if expr is None:
        return True
    return _interpret(expr, store, auth or SIGNED_OUT)


def is_visible(
    element: UIElement,
    store: DataStore,
    auth: AuthPredicate | None = None,
) -> bool:
    """Check an element's ``visible`` expression; elements without one are visible."""
    return evaluate_visibility(element.visible, store, auth)


def _interpret(expr: VisibilityExpr, store: DataStore, auth: AuthPredicate) -> bool:
    """Dispatch evaluation to the appropriate handler."""
    if isinstance(expr, bool):
        return expr

    if isinstance(expr, PathRef):
        return is_truthy(store.get(expr.path))

    if isinstance(expr, AuthCondition):
        return _interpret_auth(expr, auth)

    if isinstance(expr, AndCondition):
        return all(_interpret(c, store, auth) for c in expr.conditions)

    if isinstance(expr, OrCondition):
        return any(_interpret(c, store, auth) for c in expr.conditions)

    if isinstance(expr, NotCondition):
        return not _interpret(expr.condition, store, auth)

    if isinstance(expr, CompareCondition):
        left = _resolve_operand(expr.left, store)
        right = _resolve_operand(expr.right, store)
        return compare(expr.op, left, right)

    logger.warning("Unknown visibility expression type: %s", type(expr).__name__)
    return False


def _interpret_auth(expr: AuthCondition, auth: AuthPredicate) -> bool:
    try:
        return bool(auth(expr.auth))
    except Exception:
        logger.warning("Auth predicate failed for mode %r", expr.auth, exc_info=True)
        return False


def _resolve_operand(operand: Any, store: DataStore) -> Any:
    if isinstance(operand, PathRef):
        return store.get(operand.path)
    return operand
