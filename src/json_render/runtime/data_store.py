"""
JSON Pointer addressed data store.

A single mutable document shared by every consumer of a UI surface.
Writes are synchronous: all affected subscribers have been notified by the
time a write call returns.

Writes are copy-on-write along the written path: containers that a write
touches are replaced, never mutated, so values read before a write keep
their contents.

Change detection is by kind-aware deep equality. A subscriber at pointer P
is a candidate for notification when a write touches P, an ancestor of P or
a descendant of P; it fires only when the value resolved at P differs from
the value before the write. ``1`` and ``True`` are different values.
"""

from __future__ import annotations

import copy
import itertools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from json_render.runtime.pointer import (
    ABSENT,
    copy_path,
    delete_in,
    format_pointer,
    get_in,
    is_prefix,
    parse_pointer,
    set_in,
    value_kind,
)

logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]
Unsubscribe = Callable[[], None]


@dataclass
class _Subscription:
    pointer: str
    segments: list[str]
    listener: Listener


class DataStore:
    """
    Mutable document addressed by JSON Pointers.

    Example:
        store = DataStore({"form": {"email": ""}})
        unsubscribe = store.subscribe("/form", lambda ptr, value: print(ptr, value))
        store.set("/form/email", "a@example.com")   # listener fires for /form
        store.get("/form/missing")                  # ABSENT
    """

    def __init__(self, initial: Any = None):
        self._data: Any = copy.deepcopy(initial) if initial is not None else {}
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count()

    # =========================================================================
    # Read
    # =========================================================================

    def get(self, pointer: str) -> Any:
        """
        Read the value at pointer.

        Returns the live stored value (treat it as read-only) or ABSENT when
        nothing is stored there.
        """
        return get_in(self._data, parse_pointer(pointer))

    def snapshot(self) -> Any:
        """Deep copy of the whole document."""
        return copy.deepcopy(self._data)

    # =========================================================================
    # Write
    # =========================================================================

    def set(self, pointer: str, value: Any) -> None:
        """Write value at pointer, creating intermediate mappings as needed."""
        self.update({pointer: value})

    def update(self, writes: Mapping[str, Any]) -> None:
        """
        Apply several writes as one change.

        Subscribers are notified once, after every write has been applied.
        A root pointer ("") replaces the whole document.
        """
        if not writes:
            return
        parsed = [(parse_pointer(pointer), value) for pointer, value in writes.items()]
        before = self._capture([segments for segments, _ in parsed])

        # A failing write must leave the document untouched
        data = self._data
        for segments, value in parsed:
            if segments:
                data = copy_path(data, segments)
                set_in(data, segments, copy.deepcopy(value))
            else:
                data = copy.deepcopy(value)
        self._data = data

        self._notify(before)

    def delete(self, pointer: str) -> bool:
        """Remove the value at pointer. Returns False when nothing was there."""
        segments = parse_pointer(pointer)
        before = self._capture([segments])
        data = copy_path(self._data, segments)
        if not delete_in(data, segments):
            return False
        self._data = data
        self._notify(before)
        return True

    def replace_all(self, document: Any) -> None:
        """Replace the whole document; every subscriber is a candidate."""
        self.update({"": document})

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, pointer: str, listener: Listener) -> Unsubscribe:
        """
        Call listener(pointer, new_value) whenever the value at pointer changes.

        Returns:
            Callable that removes the subscription (idempotent)
        """
        sub_id = next(self._ids)
        segments = parse_pointer(pointer)
        self._subscriptions[sub_id] = _Subscription(
            pointer=format_pointer(segments), segments=segments, listener=listener
        )

        def unsubscribe() -> None:
            self._subscriptions.pop(sub_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _capture(self, written: list[list[str]]) -> dict[int, Any]:
        """Current values for every subscription a write may affect."""
        before: dict[int, Any] = {}
        for sub_id, sub in self._subscriptions.items():
            if any(is_prefix(sub.segments, w) or is_prefix(w, sub.segments) for w in written):
                before[sub_id] = get_in(self._data, sub.segments)
        return before

    def _notify(self, before: dict[int, Any]) -> None:
        for sub_id, old_value in before.items():
            sub = self._subscriptions.get(sub_id)
            if sub is None:
                continue  # unsubscribed by an earlier listener
            new_value = get_in(self._data, sub.segments)
            if _same(old_value, new_value):
                continue
            try:
                sub.listener(sub.pointer, new_value)
            except Exception:
                logger.exception("Data store listener for %s failed", sub.pointer)


def _same(old: Any, new: Any) -> bool:
    """Deep equality that keeps bool, number and the other JSON kinds apart."""
    kind = value_kind(old)
    if kind != value_kind(new):
        return False
    if kind == "mapping":
        return old.keys() == new.keys() and all(_same(old[k], new[k]) for k in old)
    if kind == "list":
        return len(old) == len(new) and all(_same(a, b) for a, b in zip(old, new))
    if kind == "absent":
        return True
    return bool(old == new)
