"""SSE frame decoder.

Turns an arbitrarily chunked byte stream into complete ``Frame`` objects.

Features:
- Incremental UTF-8 decoding (multi-byte characters may straddle chunks)
- Carry-over of the trailing partial line between chunks
- ``event:`` lines set the event type for the next ``data:`` line only
- ``data: [DONE]`` sentinels are dropped
- Invalid JSON bodies skip only the offending frame
- A partial line left at end of stream is discarded, never delivered
"""

import codecs
import json
import logging
from typing import AsyncIterator, Optional, Union

from chatkit.domain.events import Frame
from chatkit.observability import frames_decoded, frames_dropped

logger = logging.getLogger(__name__)

EVENT_PREFIX = "event:"
DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class FrameDecoder:
    """Stateful decoder bound to a single stream.

    Use a new instance per stream, or call ``reset()`` before reusing one.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Drop all buffered text and event context."""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._current_event = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, chunk: Union[bytes, str]) -> list[Frame]:
        """Consume one chunk and return the frames it completed.

        Args:
            chunk: Raw bytes from the transport (``str`` is accepted for tests and replays)

        Returns:
            Frames in stream order; may be empty
        """
        text = chunk if isinstance(chunk, str) else self._utf8.decode(chunk)
        if not text:
            return []

        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        frames: list[Frame] = []
        for line in lines:
            frame = self._process_line(line.strip())
            if frame is not None:
                frames.append(frame)
        return frames

    def close(self) -> None:
        """Signal end of stream. Any incomplete trailing line is discarded."""
        self._buffer += self._utf8.decode(b"", final=True)
        if self._buffer.strip():
            logger.debug(f"Discarding incomplete SSE line at end of stream: {self._buffer[:200]!r}")
        self._buffer = ""
        self._current_event = ""

    def _process_line(self, line: str) -> Optional[Frame]:
        if not line:
            return None

        if line.startswith(EVENT_PREFIX):
            self._current_event = line[len(EVENT_PREFIX) :].strip()
            return None

        if not line.startswith(DATA_PREFIX):
            # id:, retry: and ": comment" lines carry nothing we use
            return None

        raw_data = line[len(DATA_PREFIX) :].strip()
        if raw_data == DONE_SENTINEL:
            return None

        try:
            payload = json.loads(raw_data)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping SSE frame with invalid JSON: {e} - {raw_data[:200]}")
            frames_dropped.add(1, {"reason": "invalid_json"})
            return None

        event_type = self._current_event
        if not event_type and isinstance(payload, dict):
            event_type = str(payload.get("event") or payload.get("type") or "")
        self._current_event = ""

        frames_decoded.add(1)
        return Frame(event_type=event_type, raw_data=raw_data, payload=payload)


async def decode_frames(chunks: AsyncIterator[bytes]) -> AsyncIterator[Frame]:
    """Yield frames from an async byte stream using a fresh decoder."""
    decoder = FrameDecoder()
    try:
        async for chunk in chunks:
            for frame in decoder.feed(chunk):
                yield frame
    finally:
        decoder.close()
