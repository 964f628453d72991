"""
Patch-stream tree builder.

Turns the generator's JSONL output into successive UITree snapshots. Every
applied patch publishes a new frozen tree; earlier snapshots are never
mutated, so a renderer may keep drawing one while the next is built.

Stream noise (blank lines, prose, malformed JSON, patches that do not fit
the element model) is counted and skipped. It never raises.

Usage:
    builder = PatchStreamBuilder(catalog=catalog)
    for result in builder.feed(chunk):
        if result.status == ApplyStatus.APPLIED:
            render(result.tree)
    tree = builder.finalize()
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections import defaultdict, deque
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from json_render.config import RuntimeConfig
from json_render.errors import PointerError
from json_render.runtime.catalog import Catalog
from json_render.runtime.pointer import ABSENT, delete_in, get_in, parse_pointer, set_in
from json_render.specs.element import UIElement, UITree
from json_render.specs.patch import JsonPatch, PatchOp

logger = logging.getLogger(__name__)

DataSourceCallback = Callable[[str], None]

_DATA_SOURCE_RE = re.compile(r"^DATA_SOURCE:\s*(\S+)\s*$", re.IGNORECASE)


class ApplyStatus(StrEnum):
    """What happened to one ingested line."""

    APPLIED = "applied"
    DEFERRED = "deferred"
    IGNORED = "ignored"
    REJECTED = "rejected"
    CONTROL = "control"
    EMPTY = "empty"


@dataclass(frozen=True)
class ApplyResult:
    """
    Result of ingesting one line.

    Attributes:
        status: Outcome of the line
        tree: Current snapshot after the line (unchanged unless APPLIED)
        patch: Parsed patch, when the line was one
        reason: Why the line was ignored, deferred or rejected
        data_source: Token of an accepted control line
        replayed: Deferred patches applied as a consequence of this line
    """

    status: ApplyStatus
    tree: UITree
    patch: JsonPatch | None = None
    reason: str | None = None
    data_source: str | None = None
    replayed: int = 0


@dataclass
class BuilderStats:
    """Per-stream counters."""

    applied: int = 0
    deferred: int = 0
    replayed: int = 0
    ignored: int = 0
    rejected: int = 0
    dropped: int = 0
    control: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


# =============================================================================
# Pure patch application
# =============================================================================


class _Skip(Exception):
    """A patch that cannot be applied to the current tree."""

    def __init__(self, status: ApplyStatus, reason: str, key: str | None = None):
        self.status = status
        self.reason = reason
        self.key = key
        super().__init__(reason)


def _target(path: str) -> tuple[str | None, list[str]]:
    """
    Split a patch path into (element key, sub-path).

    ``/root`` gives (None, []); ``/elements/k/props/x`` gives
    ("k", ["props", "x"]).
    """
    try:
        segments = parse_pointer(path)
    except PointerError as e:
        raise _Skip(ApplyStatus.IGNORED, f"Bad path {path!r}: {e.message}") from e
    if segments == ["root"]:
        return None, []
    if len(segments) >= 2 and segments[0] == "elements" and segments[1]:
        return segments[1], segments[2:]
    raise _Skip(ApplyStatus.IGNORED, f"Unsupported path {path!r}")


def _build_element(key: str, value: Any, catalog: Catalog | None) -> UIElement:
    if not isinstance(value, Mapping):
        raise _Skip(ApplyStatus.IGNORED, f"Element value for {key!r} is not an object", key)
    data = dict(value)
    data["key"] = key
    try:
        element = UIElement.model_validate(data)
    except ValidationError as e:
        raise _Skip(
            ApplyStatus.IGNORED, f"Invalid element {key!r}: {e.error_count()} error(s)", key
        ) from e
    if catalog is not None:
        errors = catalog.validate_element(element)
        if errors:
            raise _Skip(ApplyStatus.REJECTED, f"{key}: {'; '.join(errors)}", key)
    return element


def _with_element(tree: UITree, element: UIElement) -> UITree:
    return tree.model_copy(update={"elements": {**tree.elements, element.key: element}})


def _apply_root(tree: UITree, patch: JsonPatch, catalog: Catalog | None) -> UITree:
    if patch.op == PatchOp.REMOVE or patch.value is None:
        return tree.model_copy(update={"root": None})
    if isinstance(patch.value, str):
        return tree.model_copy(update={"root": patch.value})
    if isinstance(patch.value, Mapping) and isinstance(patch.value.get("key"), str):
        # Root given as a whole element: point at it and store it
        element = _build_element(patch.value["key"], patch.value, catalog)
        return _with_element(tree, element).model_copy(update={"root": element.key})
    raise _Skip(ApplyStatus.IGNORED, "Root value must be an element key")


def _apply_field(
    tree: UITree, key: str, sub: list[str], patch: JsonPatch, catalog: Catalog | None
) -> UITree:
    element = tree.elements.get(key)
    if element is None:
        raise _Skip(ApplyStatus.DEFERRED, f"Element {key!r} does not exist yet", key)
    if sub[0] == "key":
        raise _Skip(ApplyStatus.IGNORED, f"Element key {key!r} cannot be patched", key)

    data = copy.deepcopy(element.model_dump(by_alias=True, mode="json"))
    try:
        if patch.op == PatchOp.REMOVE:
            if not delete_in(data, sub):
                raise _Skip(ApplyStatus.IGNORED, f"Nothing to remove at {patch.path}", key)
        else:
            set_in(data, sub, copy.deepcopy(patch.value), insert=patch.op == PatchOp.ADD)
    except PointerError as e:
        raise _Skip(ApplyStatus.IGNORED, f"{patch.path}: {e.message}", key) from e
    return _with_element(tree, _build_element(key, data, catalog))


def _apply(tree: UITree, patch: JsonPatch, catalog: Catalog | None = None) -> UITree:
    """Apply one patch, raising _Skip when it cannot be applied."""
    try:
        return _apply_target(tree, patch, catalog)
    except RecursionError as e:
        raise _Skip(ApplyStatus.IGNORED, f"Value for {patch.path} is nested too deeply") from e


def _apply_target(tree: UITree, patch: JsonPatch, catalog: Catalog | None) -> UITree:
    key, sub = _target(patch.path)
    if key is None:
        return _apply_root(tree, patch, catalog)
    if sub:
        return _apply_field(tree, key, sub, patch, catalog)
    if patch.op == PatchOp.REMOVE:
        if key not in tree.elements:
            raise _Skip(ApplyStatus.IGNORED, f"Element {key!r} does not exist", key)
        elements = {k: v for k, v in tree.elements.items() if k != key}
        return tree.model_copy(update={"elements": elements})
    return _with_element(tree, _build_element(key, patch.value, catalog))


def _defines(document: Any, sub: list[str]) -> bool:
    """True when document holds a value at sub, or a scalar on the way there."""
    for depth in range(1, len(sub) + 1):
        value = get_in(document, sub[:depth])
        if value is ABSENT:
            return False
        if not isinstance(value, Mapping | list):
            return True
    return True


def apply_patch(tree: UITree, patch: JsonPatch) -> UITree:
    """
    Apply one patch to a tree and return the new snapshot.

    Patches that cannot be applied (including field patches for elements
    that do not exist) leave the tree unchanged. The input is never mutated.
    """
    try:
        return _apply(tree, patch)
    except _Skip as skip:
        logger.debug("Patch %s %s not applied: %s", patch.op, patch.path, skip.reason)
        return tree


# =============================================================================
# Stream builder
# =============================================================================


class PatchStreamBuilder:
    """
    Incremental builder for one streamed UI tree.

    Field patches for an element that has not arrived yet are queued per key
    and replayed in arrival order right after the element is first set,
    except where that later element write already sets the same field.
    With ``defer_orphan_patches=False`` they are dropped instead.
    """

    def __init__(
        self,
        catalog: Catalog | None = None,
        config: RuntimeConfig | None = None,
        on_data_source: DataSourceCallback | None = None,
    ):
        self.catalog = catalog
        self.config = config or RuntimeConfig()
        self.on_data_source = on_data_source
        self.stats = BuilderStats()
        self._tree = UITree()
        self._buffer = ""
        self._data_source: str | None = None
        self._seen_patch = False
        self._deferred: dict[str, deque[JsonPatch]] = defaultdict(deque)

    @property
    def tree(self) -> UITree:
        """Latest published snapshot."""
        return self._tree

    @property
    def data_source(self) -> str | None:
        """Token of the accepted DATA_SOURCE control line, if any."""
        return self._data_source

    @property
    def pending_patches(self) -> int:
        """Number of field patches waiting for their element."""
        return sum(len(queue) for queue in self._deferred.values())

    @property
    def _strict_catalog(self) -> Catalog | None:
        return self.catalog if self.config.strict_catalog else None

    # Line input

    def feed(self, chunk: str) -> list[ApplyResult]:
        """
        Buffer a chunk of text and ingest every complete line in it.

        A trailing partial line stays buffered for the next chunk.
        """
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return [self.ingest(line) for line in lines]

    def ingest(self, line: str) -> ApplyResult:
        """Ingest one complete line."""
        line = line.strip()
        if not line:
            return ApplyResult(status=ApplyStatus.EMPTY, tree=self._tree)

        match = _DATA_SOURCE_RE.match(line)
        if match:
            return self._control(match.group(1).lower())

        if not line.startswith("{"):
            return self._ignore(f"Not a patch line: {line[:80]!r}")
        try:
            patch = JsonPatch.model_validate(json.loads(line))
        except ValidationError as e:
            return self._ignore(f"Not a patch: {e.error_count()} error(s)")
        except (ValueError, RecursionError) as e:
            # JSONDecodeError, oversized integers and runaway nesting
            return self._ignore(f"Malformed JSON: {type(e).__name__}: {str(e)[:80]}")

        self._seen_patch = True
        return self._apply_patch(patch)

    def finalize(self) -> UITree:
        """
        Flush the trailing buffer and close the stream.

        Field patches still waiting for their element are dropped.
        """
        if self._buffer.strip():
            self.ingest(self._buffer)
        self._buffer = ""
        dropped = self.pending_patches
        if dropped:
            logger.debug(
                "Dropping %d deferred patch(es) for missing elements: %s",
                dropped,
                sorted(self._deferred),
            )
            self.stats.dropped += dropped
        self._deferred.clear()
        return self._tree

    def discard(self) -> None:
        """Drop the buffered partial line without applying it."""
        if self._buffer:
            logger.debug("Discarding partial line of %d chars", len(self._buffer))
        self._buffer = ""

    # Internals

    def _control(self, token: str) -> ApplyResult:
        if self._seen_patch:
            return self._ignore("DATA_SOURCE after the first patch")
        if self._data_source is not None:
            return self._ignore("Repeated DATA_SOURCE line")
        if not self.config.accepts_data_source(token):
            return self._ignore(f"Unknown data source {token!r}")

        self._data_source = token
        self.stats.control += 1
        if self.on_data_source is not None:
            try:
                self.on_data_source(token)
            except Exception:
                logger.exception("Data source callback failed for %r", token)
        return ApplyResult(status=ApplyStatus.CONTROL, tree=self._tree, data_source=token)

    def _ignore(self, reason: str, patch: JsonPatch | None = None) -> ApplyResult:
        self.stats.ignored += 1
        logger.debug("Ignoring stream line: %s", reason)
        return ApplyResult(status=ApplyStatus.IGNORED, tree=self._tree, patch=patch, reason=reason)

    def _apply_patch(self, patch: JsonPatch) -> ApplyResult:
        try:
            tree = _apply(self._tree, patch, self._strict_catalog)
        except _Skip as skip:
            return self._skipped(patch, skip)

        self._tree = tree
        self.stats.applied += 1
        replayed = self._replay(tree)
        return ApplyResult(
            status=ApplyStatus.APPLIED, tree=self._tree, patch=patch, replayed=replayed
        )

    def _skipped(self, patch: JsonPatch, skip: _Skip) -> ApplyResult:
        if skip.status == ApplyStatus.DEFERRED:
            if not self.config.defer_orphan_patches:
                self.stats.dropped += 1
                logger.debug("Dropping orphan patch %s: %s", patch.path, skip.reason)
                return ApplyResult(
                    status=ApplyStatus.IGNORED, tree=self._tree, patch=patch, reason=skip.reason
                )
            self._deferred[skip.key].append(patch)
            self.stats.deferred += 1
            logger.debug("Deferring patch %s: %s", patch.path, skip.reason)
            return ApplyResult(
                status=ApplyStatus.DEFERRED, tree=self._tree, patch=patch, reason=skip.reason
            )
        if skip.status == ApplyStatus.REJECTED:
            self.stats.rejected += 1
            logger.warning("Rejected element not allowed by catalog: %s", skip.reason)
            return ApplyResult(
                status=ApplyStatus.REJECTED, tree=self._tree, patch=patch, reason=skip.reason
            )
        return self._ignore(skip.reason, patch)

    def _replay(self, tree: UITree) -> int:
        """
        Apply queued field patches for every element that now exists.

        The element write that released a queue is newer than every patch
        in it, so a queued patch whose target that write already defines is
        discarded instead of applied over it.
        """
        ready = [key for key in self._deferred if key in tree.elements]
        replayed = 0
        for key in ready:
            queue = self._deferred.pop(key)
            written = tree.elements[key].model_dump(
                by_alias=True, exclude_unset=True, mode="json"
            )
            while queue:
                patch = queue.popleft()
                if _defines(written, parse_pointer(patch.path)[2:]):
                    self.stats.ignored += 1
                    logger.debug("Deferred patch %s superseded by the element write", patch.path)
                    continue
                try:
                    self._tree = _apply(self._tree, patch, self._strict_catalog)
                except _Skip as skip:
                    self.stats.ignored += 1
                    logger.debug("Deferred patch %s not applied: %s", patch.path, skip.reason)
                    continue
                replayed += 1
        self.stats.replayed += replayed
        return replayed
