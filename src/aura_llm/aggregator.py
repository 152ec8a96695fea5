"""Folds normalized provider chunks into text events and tool-call buffers."""

from __future__ import annotations

import enum
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING

from aura_llm.errors import ProtocolError
from aura_llm.types import ChunkDelta, StreamEvent, ToolCallDelta

if TYPE_CHECKING:
    from aura_llm.tools import ToolExecutor

TOOL_CALLS_FINISH = "tool_calls"


class AggregatorState(enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FINISHED = "finished"
    ABORTED = "aborted"


@dataclass
class ToolCallBuffer:
    """Partially assembled tool call; arguments only parse once concatenated."""

    index: int
    id: str = ""
    name: str = ""
    arguments_text: str = ""

    def apply(self, delta: ToolCallDelta) -> None:
        if delta.id:
            self.id = delta.id
        if delta.name:
            self.name = delta.name
        if delta.arguments:
            self.arguments_text += delta.arguments


class DeltaAggregator:
    """Per-stream state machine: IDLE -> ACCUMULATING -> FINISHED | ABORTED."""

    _logger = logging.getLogger(__name__)

    def __init__(self) -> None:
        self.state = AggregatorState.IDLE
        self.finish_reason: str | None = None
        self._buffers: dict[int, ToolCallBuffer] = {}

    @property
    def is_done(self) -> bool:
        return self.state in (AggregatorState.FINISHED, AggregatorState.ABORTED)

    @property
    def pending_calls(self) -> int:
        return len(self._buffers)

    def feed(self, chunk: ChunkDelta) -> str | None:
        """Apply one chunk; return text to emit right away, if any.

        Raises ProtocolError when the chunk carries an inline provider error.
        """
        if self.is_done:
            return None
        self.state = AggregatorState.ACCUMULATING

        if chunk.error is not None:
            self.state = AggregatorState.ABORTED
            self._buffers.clear()
            raise ProtocolError(chunk.error)

        for delta in chunk.tool_calls:
            buffer = self._buffers.get(delta.index)
            if buffer is None:
                buffer = self._buffers[delta.index] = ToolCallBuffer(index=delta.index)
            buffer.apply(delta)

        if chunk.finish_reason is not None:
            self.finish_reason = chunk.finish_reason
            self.state = AggregatorState.FINISHED

        return chunk.text or None

    def completed_calls(self) -> list[ToolCallBuffer]:
        """Hand over finalized buffers in index order; consumes them."""
        buffers, self._buffers = self._buffers, {}
        if self.finish_reason != TOOL_CALLS_FINISH:
            if buffers:
                self._logger.debug(
                    "Discarding %d incomplete tool call(s) (finish reason: %s)",
                    len(buffers),
                    self.finish_reason,
                )
            return []
        return [buffers[i] for i in sorted(buffers)]


async def aggregate(
    chunks: AsyncIterator[ChunkDelta],
    executor: ToolExecutor,
) -> AsyncIterator[StreamEvent]:
    """Yield text deltas as they arrive, then the results of completed tool calls."""
    aggregator = DeltaAggregator()

    async with aclosing(chunks) as stream:
        async for chunk in stream:
            text = aggregator.feed(chunk)
            if text:
                yield StreamEvent.text_delta(text)
            if aggregator.is_done:
                break

    for call in aggregator.completed_calls():
        yield StreamEvent.tool_result(await executor.execute(call))
