"""
JSON Pointer (RFC 6901) addressing for nested mapping/sequence documents.

Reads never raise: a missing location resolves to ABSENT, which is distinct
from a stored None. Writes create intermediate mappings as needed.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, MutableMapping, MutableSequence
from typing import Any

from json_render.errors import make_pointer_error


class _Absent:
    """Sentinel for "nothing stored here"."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Absent:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Absent:
        return self

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT: Any = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


def value_kind(value: Any) -> str:
    """JSON kind of a value. Bool is its own kind, never a number."""
    if value is ABSENT:
        return "absent"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list | tuple):
        return "list"
    if isinstance(value, Mapping):
        return "mapping"
    return "other"


# =============================================================================
# Parsing
# =============================================================================


def parse_pointer(pointer: str) -> list[str]:
    """
    Split a pointer into unescaped segments.

    ``""`` and ``"/"`` address the whole document. A pointer without a
    leading slash is read relative to the document root.
    """
    if pointer in ("", "/"):
        return []
    body = pointer[1:] if pointer.startswith("/") else pointer
    return [_unescape(segment) for segment in body.split("/")]


def format_pointer(segments: list[str]) -> str:
    """Join segments back into a pointer string."""
    if not segments:
        return ""
    return "/" + "/".join(_escape(segment) for segment in segments)


def _unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def _escape(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def is_prefix(prefix: list[str], segments: list[str]) -> bool:
    """True when ``prefix`` addresses ``segments`` or one of its ancestors."""
    return len(prefix) <= len(segments) and segments[: len(prefix)] == prefix


def _list_index(segment: str) -> int | None:
    # RFC 6901: no signs, no leading zeros
    if segment == "0" or (segment.isdigit() and not segment.startswith("0")):
        return int(segment)
    return None


# =============================================================================
# Read
# =============================================================================


def get_in(document: Any, segments: list[str]) -> Any:
    """Resolve segments against a document, returning ABSENT when missing."""
    current = document
    for segment in segments:
        if isinstance(current, Mapping):
            if segment not in current:
                return ABSENT
            current = current[segment]
        elif isinstance(current, list | tuple):
            index = _list_index(segment)
            if index is None or index >= len(current):
                return ABSENT
            current = current[index]
        else:
            return ABSENT
    return current


def get_by_path(document: Any, pointer: str) -> Any:
    """Resolve a pointer string against a document."""
    return get_in(document, parse_pointer(pointer))


# =============================================================================
# Write
# =============================================================================


def _container_for_write(parent: Any, segment: str, pointer: str) -> Any:
    """Return the child container at segment, creating a mapping when needed."""
    if isinstance(parent, MutableMapping):
        child = parent.get(segment)
        if not isinstance(child, MutableMapping | MutableSequence):
            child = {}
            parent[segment] = child
        return child
    if isinstance(parent, MutableSequence):
        index = _list_index(segment)
        if index is None or index >= len(parent):
            raise make_pointer_error(f"List index {segment!r} out of range", pointer)
        child = parent[index]
        if not isinstance(child, MutableMapping | MutableSequence):
            child = {}
            parent[index] = child
        return child
    raise make_pointer_error("Cannot write through a non-container value", pointer)


def set_in(document: Any, segments: list[str], value: Any, *, insert: bool = False) -> None:
    """
    Write value at segments inside document (mutating it).

    Missing or scalar intermediates become mappings. On a list, ``-`` or an
    index equal to the length appends; with ``insert=True`` an in-range
    index inserts before the existing item (JSON Patch ``add``) instead of
    replacing it.

    Raises:
        PointerError: For an empty pointer, a non-integer segment on a list,
            or a list index past the end.
    """
    pointer = format_pointer(segments)
    if not segments:
        raise make_pointer_error("Cannot set the document root in place", pointer)

    parent = document
    for segment in segments[:-1]:
        parent = _container_for_write(parent, segment, pointer)

    last = segments[-1]
    if isinstance(parent, MutableMapping):
        parent[last] = value
        return
    if isinstance(parent, MutableSequence):
        if last == "-":
            parent.append(value)
            return
        index = _list_index(last)
        if index is None or index > len(parent):
            raise make_pointer_error(f"List index {last!r} out of range", pointer)
        if index == len(parent):
            parent.append(value)
        elif insert:
            parent.insert(index, value)
        else:
            parent[index] = value
        return
    raise make_pointer_error("Cannot write through a non-container value", pointer)


def set_by_path(document: Any, pointer: str, value: Any) -> None:
    """Write value at a pointer string inside document (mutating it)."""
    set_in(document, parse_pointer(pointer), value)


def delete_in(document: Any, segments: list[str]) -> bool:
    """Remove the value at segments. Returns False when nothing was there."""
    if not segments:
        return False
    parent = get_in(document, segments[:-1])
    last = segments[-1]
    if isinstance(parent, MutableMapping):
        if last not in parent:
            return False
        del parent[last]
        return True
    if isinstance(parent, MutableSequence):
        index = _list_index(last)
        if index is None or index >= len(parent):
            return False
        del parent[index]
        return True
    return False


def copy_path(document: Any, segments: list[str]) -> Any:
    """
    Shallow-copy document and every existing container along segments.

    A write or delete at segments applied to the result leaves the original
    document untouched; containers off the path are shared.
    """
    root = _shallow_copy(document)
    parent = root
    for segment in segments[:-1]:
        if isinstance(parent, MutableMapping):
            if segment not in parent:
                break
            key: Any = segment
        elif isinstance(parent, MutableSequence):
            key = _list_index(segment)
            if key is None or key >= len(parent):
                break
        else:
            break
        child = parent[key]
        if not isinstance(child, MutableMapping | MutableSequence):
            break
        child = _shallow_copy(child)
        parent[key] = child
        parent = child
    return root


def _shallow_copy(value: Any) -> Any:
    if isinstance(value, MutableMapping | MutableSequence):
        return copy.copy(value)
    return value
