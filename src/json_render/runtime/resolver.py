"""
Dynamic value resolution and visible-tree traversal.

Resolves ``{"path": ...}`` references in props, params and validation
args against the data store, and walks a UITree in render order for the
host's renderer, skipping pending keys and invisible subtrees.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from json_render.runtime.data_store import DataStore
from json_render.runtime.pointer import ABSENT
from json_render.runtime.visibility import AuthPredicate, is_visible
from json_render.specs.element import UIElement, UITree
from json_render.specs.values import PathRef, is_path_ref


def resolve_dynamic_value(value: Any, store: DataStore) -> Any:
    """
    Resolve one dynamic value.

    PathRefs (and raw ``{"path": ...}`` dicts) read the store, with ABSENT
    mapped to None; mappings and lists are resolved recursively; everything
    else passes through.
    """
    if isinstance(value, PathRef):
        return _present(store.get(value.path))
    if is_path_ref(value):
        return _present(store.get(value["path"]))
    if isinstance(value, Mapping):
        return {k: resolve_dynamic_value(v, store) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_dynamic_value(v, store) for v in value]
    return value


def resolve_params(params: Mapping[str, Any] | None, store: DataStore) -> dict[str, Any]:
    """Resolve every dynamic value in a params/args mapping."""
    if not params:
        return {}
    return {key: resolve_dynamic_value(value, store) for key, value in params.items()}


def _present(value: Any) -> Any:
    return None if value is ABSENT else value


@dataclass(frozen=True)
class RenderNode:
    """An element ready for the host's draw callback."""

    element: UIElement
    props: dict[str, Any]
    depth: int
    children: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.element.key

    @property
    def type(self) -> str:
        return self.element.type


def iter_visible(
    tree: UITree,
    store: DataStore,
    auth: AuthPredicate | None = None,
) -> Iterator[RenderNode]:
    """
    Walk the tree depth-first from the root in render order.

    Invisible elements are skipped together with their subtrees. Each node's
    ``children`` lists only resolved, visible child keys.
    """
    root = tree.get(tree.root)
    if root is None or not is_visible(root, store, auth):
        return
    yield from _visit(tree, root, store, auth, 0, frozenset())


def _visit(
    tree: UITree,
    element: UIElement,
    store: DataStore,
    auth: AuthPredicate | None,
    depth: int,
    ancestors: frozenset[str],
) -> Iterator[RenderNode]:
    path = ancestors | {element.key}
    visible_children = [
        child
        for child in tree.children_of(element.key)
        if child.key not in path and is_visible(child, store, auth)
    ]
    yield RenderNode(
        element=element,
        props=resolve_params(element.props, store),
        depth=depth,
        children=[child.key for child in visible_children],
    )
    for child in visible_children:
        yield from _visit(tree, child, store, auth, depth + 1, path)
