"""Reduction engine.

Folds the frames of one SSE stream into a vendor-specific state using an
``EventTranslator``. The engine owns framing, ordering and per-frame error
isolation; translators own the wire protocol.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Generic, Protocol, TypeVar

from opentelemetry import trace

from chatkit.application.streaming.frame_decoder import FrameDecoder
from chatkit.domain.events import Frame
from chatkit.observability import frames_dropped

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

S = TypeVar("S")


@dataclass(frozen=True)
class Reduction(Generic[S]):
    """Result of folding one frame: the new state and whether the message is complete."""

    state: S
    done: bool = False


class EventTranslator(Protocol[S]):
    """Turns frames of one vendor protocol into state updates and block emissions."""

    def initial_state(self) -> S: ...

    def reduce(self, frame: Frame, state: S, message_id: str) -> Reduction[S]: ...


class ReductionEngine(Generic[S]):
    """Drives a translator over a byte stream, strictly in frame order."""

    def __init__(self, translator: EventTranslator[S]) -> None:
        self._translator = translator

    def fold(self, frames: list[Frame], state: S, message_id: str) -> Reduction[S]:
        """Fold already-decoded frames, stopping at the first completed reduction.

        A frame whose reduction raises is logged and skipped; folding resumes
        from the last good state.
        """
        for frame in frames:
            try:
                reduction = self._translator.reduce(frame, state, message_id)
            except Exception as e:
                logger.warning(f"Skipping frame '{frame.event_type}' for message {message_id}: {e}", exc_info=True)
                frames_dropped.add(1, {"reason": "reduce_error"})
                continue
            state = reduction.state
            if reduction.done:
                return Reduction(state, done=True)
        return Reduction(state)

    async def run(self, chunks: AsyncIterator[bytes], message_id: str) -> S:
        """Consume a byte stream and return the final state."""
        decoder = FrameDecoder()
        state = self._translator.initial_state()
        frame_count = 0

        with tracer.start_as_current_span("chatkit.stream.reduce") as span:
            span.set_attribute("chatkit.message_id", message_id)
            try:
                async for chunk in chunks:
                    frames = decoder.feed(chunk)
                    frame_count += len(frames)
                    reduction = self.fold(frames, state, message_id)
                    state = reduction.state
                    if reduction.done:
                        logger.debug(f"Stream for message {message_id} completed after {frame_count} frames")
                        span.set_attribute("chatkit.stream.completed", True)
                        break
            finally:
                decoder.close()
            span.set_attribute("chatkit.stream.frames", frame_count)

        return state
