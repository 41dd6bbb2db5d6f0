"""Incremental decoder for the deep-thinking event stream.

The remote service is inconsistent about line framing. Three variants are
accepted, checked in this order:

1. ``data: {json}`` (canonical SSE)
2. ``data:{json}`` (no space after the colon)
3. ``{json}`` (bare record, any non-empty line not starting with ``event:``)

Lines that cannot be turned into an event are logged and dropped. Nothing in
this module raises on stream content.
"""

import codecs
import json
import logging
from typing import Any

from pydantic import ValidationError

from deepthink.assist.errors import MalformedFrameError
from deepthink.models.event import StreamEvent, parse_event

logger = logging.getLogger(__name__)

SSE_PREFIX = "data: "
COMPACT_PREFIX = "data:"
EVENT_PREFIX = "event:"


def classify_line(line: str) -> tuple[str, str] | None:
    """Extract the payload of a single line.

    Args:
        line: One complete line without its terminator.

    Returns:
        ``(framing, payload)`` where framing is ``"sse"``, ``"compact"`` or
        ``"bare"``, or None for lines that carry no payload.
    """
    if line.startswith(SSE_PREFIX):
        return "sse", line[len(SSE_PREFIX):].strip()
    if line.startswith(COMPACT_PREFIX):
        return "compact", line[len(COMPACT_PREFIX):].strip()
    if line.strip() and not line.startswith(EVENT_PREFIX):
        return "bare", line.strip()
    return None


def parse_record(line: str) -> dict[str, Any] | None:
    """Parse a line into a raw wire record.

    Returns:
        The decoded JSON object, or None for lines without a payload.

    Raises:
        MalformedFrameError: If the payload is not a JSON object.
    """
    classified = classify_line(line)
    if classified is None:
        return None
    framing, payload = classified
    if not payload:
        return None

    try:
        record = json.loads(payload)
    except json.JSONDecodeError as e:
        if framing == "bare":
            raise MalformedFrameError("Plain text line", line=line) from e
        raise MalformedFrameError(f"Invalid JSON in {framing} frame: {e}", line=line) from e

    if not isinstance(record, dict):
        raise MalformedFrameError(
            f"Expected a JSON object, got {type(record).__name__}", line=line
        )
    return record


def decode_line(line: str) -> StreamEvent | None:
    """Turn a line into a typed event.

    Raises:
        MalformedFrameError: If the line has a payload that is not a valid event.
    """
    record = parse_record(line)
    if record is None:
        return None
    try:
        return parse_event(record)
    except ValidationError as e:
        raise MalformedFrameError(
            f"Not a stream event (type={record.get('type')!r}): {e.error_count()} error(s)",
            line=line,
        ) from e


class StreamFrameDecoder:
    """Buffers transport chunks and yields events for every complete line.

    A trailing unterminated line is kept until the next ``feed`` call or
    ``flush``. Bytes are decoded incrementally, so a multi-byte character
    split across two chunks is reassembled.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.events_decoded = 0
        self.lines_dropped = 0

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        """Consume a chunk and return the events it completes, in order."""
        if isinstance(chunk, bytes):
            text = self._utf8.decode(chunk)
        else:
            text = chunk
        if not text:
            return []

        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def flush(self) -> list[StreamEvent]:
        """Decode whatever is left once the stream has ended."""
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        if not tail:
            return []
        return self._decode_lines(tail.split("\n"))

    def _decode_lines(self, lines: list[str]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for raw in lines:
            line = raw.rstrip("\r")
            try:
                event = decode_line(line)
            except MalformedFrameError as e:
                self.lines_dropped += 1
                if line.startswith(COMPACT_PREFIX):
                    logger.warning(f"Dropped malformed data frame ({e}): {line[:200]!r}")
                else:
                    logger.debug(f"Received text line: {line[:200]!r}")
                continue
            if event is not None:
                events.append(event)
        self.events_decoded += len(events)
        return events
