"""
Async stream sessions.

UIStream drives one PatchStreamBuilder from an async iterable of text or
byte chunks. StreamSurface owns the authoritative tree of one UI surface
and makes sure a new stream supersedes the one in flight.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import AsyncIterable, Callable, Iterable

from json_render.config import RuntimeConfig
from json_render.runtime.catalog import Catalog
from json_render.runtime.tree_builder import (
    ApplyResult,
    ApplyStatus,
    DataSourceCallback,
    PatchStreamBuilder,
)
from json_render.specs.element import UITree

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[UITree], None]
ErrorCallback = Callable[[Exception], None]


class UIStream:
    """
    One streamed generation.

    Example:
        stream = UIStream(PatchStreamBuilder(catalog=catalog), on_update=render)
        tree = await stream.run(response.aiter_bytes())
    """

    def __init__(self, builder: PatchStreamBuilder, on_update: UpdateCallback | None = None):
        self.builder = builder
        self.on_update = on_update

    async def run(self, chunks: AsyncIterable[str | bytes]) -> UITree:
        """
        Consume chunks until the source is exhausted.

        Returns:
            The finalized tree

        Raises:
            asyncio.CancelledError: When the task is cancelled; the partial
                line buffered so far is discarded, never applied
        """
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            async for chunk in chunks:
                text = decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
                self._publish(self.builder.feed(text))
            tail = decoder.decode(b"", final=True)
            if tail:
                self._publish(self.builder.feed(tail))
        except asyncio.CancelledError:
            self.builder.discard()
            raise

        before = self.builder.tree
        tree = self.builder.finalize()
        if tree is not before and self.on_update is not None:
            self.on_update(tree)
        return tree

    def _publish(self, results: Iterable[ApplyResult]) -> None:
        if self.on_update is None:
            return
        for result in results:
            if result.status == ApplyStatus.APPLIED:
                self.on_update(result.tree)


class StreamSurface:
    """
    Holds the tree for one UI surface across successive generations.

    Starting a stream cancels the one in flight, and results from a
    superseded stream are never published.
    """

    def __init__(
        self,
        catalog: Catalog | None = None,
        config: RuntimeConfig | None = None,
        on_update: UpdateCallback | None = None,
        on_data_source: DataSourceCallback | None = None,
        on_error: ErrorCallback | None = None,
    ):
        self.catalog = catalog
        self.config = config or RuntimeConfig()
        self.on_update = on_update
        self.on_data_source = on_data_source
        self.on_error = on_error

        self._tree = UITree()
        self._error: Exception | None = None
        self._data_source: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def tree(self) -> UITree:
        return self._tree

    @property
    def error(self) -> Exception | None:
        """Transport error of the last stream, if it failed."""
        return self._error

    @property
    def data_source(self) -> str | None:
        return self._data_source

    @property
    def is_streaming(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, chunks: AsyncIterable[str | bytes]) -> asyncio.Task[None]:
        """
        Start streaming a new generation into this surface.

        Must be called from a running event loop. The tree is reset to
        empty and any stream in flight is cancelled first.
        """
        self.abort()
        self._generation += 1
        generation = self._generation
        self._tree = UITree()
        self._error = None
        self._data_source = None

        builder = PatchStreamBuilder(
            catalog=self.catalog,
            config=self.config,
            on_data_source=lambda token: self._set_data_source(generation, token),
        )
        self._task = asyncio.create_task(self._run(generation, builder, chunks))
        return self._task

    def abort(self) -> None:
        """Cancel the stream in flight, keeping the tree built so far."""
        if self._task is not None and not self._task.done():
            logger.debug("Aborting stream generation %d", self._generation)
            self._task.cancel()
        self._task = None

    def clear(self) -> None:
        """Cancel any stream and reset the surface to an empty tree."""
        self.abort()
        self._generation += 1
        self._tree = UITree()
        self._error = None
        self._data_source = None

    async def wait(self) -> UITree:
        """Wait for the current stream to finish (or be cancelled)."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self._tree

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _publish(self, generation: int, tree: UITree) -> None:
        if not self._is_current(generation):
            return
        self._tree = tree
        if self.on_update is not None:
            self.on_update(tree)

    def _set_data_source(self, generation: int, token: str) -> None:
        if not self._is_current(generation):
            return
        self._data_source = token
        if self.on_data_source is not None:
            self.on_data_source(token)

    async def _run(
        self, generation: int, builder: PatchStreamBuilder, chunks: AsyncIterable[str | bytes]
    ) -> None:
        stream = UIStream(builder, on_update=lambda tree: self._publish(generation, tree))
        try:
            await stream.run(chunks)
        except Exception as e:
            if not self._is_current(generation):
                return
            self._error = e
            logger.warning(
                "Stream failed after %d applied patch(es): %s",
                builder.stats.applied,
                e,
                extra={"context": builder.stats.as_dict()},
            )
            if self.on_error is not None:
                self.on_error(e)
            return

        logger.debug("Stream finished", extra={"context": builder.stats.as_dict()})
