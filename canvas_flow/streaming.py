"""Server-Sent-Events parsing and incremental persona aggregation.

The aggregation logic only deals in async iterators of bytes and frames so it
can be exercised without a live socket; the routers wrap the frames with
``encode_sse_stream`` when writing them to the wire.
"""

from __future__ import annotations

import codecs
import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterable, AsyncIterator, Dict, List

from pydantic import ValidationError

from .errors import CanvasFlowError, UnknownError
from .logging_utils import log_error
from .normalizers import normalize_personas
from .schemas import Persona

logger = logging.getLogger(__name__)

# Effectively disables EventSource auto-reconnect on the browser side.
RETRY_DIRECTIVE = b"retry: 100000000\n\n"
DONE_SENTINEL = "[DONE]"
MESSAGE_EVENTS = frozenset({"message", "agent_message"})
TERMINAL_EVENTS = frozenset({"message_end", "workflow_finished", DONE_SENTINEL})
STREAM_ERROR_MESSAGE = "An error occurred while streaming the response."

Frame = Dict[str, Any]


def format_sse(data: Frame) -> bytes:
    """Encode one ``data:`` frame."""

    return f"data: {json.dumps(data, ensure_ascii=False, separators=(',', ':'))}\n\n".encode("utf-8")


async def encode_sse_stream(frames: AsyncIterable[Frame]) -> AsyncIterator[bytes]:
    """Write a retry directive followed by every frame as SSE bytes."""

    yield RETRY_DIRECTIVE
    async for frame in frames:
        yield format_sse(frame)


def _parse_data_line(line: str) -> Frame | None:
    line = line.rstrip("\r")
    if not line.startswith("data:"):
        return None
    payload = line[len("data:") :].strip()
    if not payload:
        return None
    if payload == DONE_SENTINEL:
        return {"event": DONE_SENTINEL}
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE line: %.100s", payload)
        return None
    return event if isinstance(event, dict) else None


async def iter_sse_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
    """Yield the JSON payload of every ``data:`` line in arrival order.

    Bytes are decoded incrementally so multi-byte characters split across
    chunks survive, and a partial trailing line is held until completed.
    """

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    try:
        async for chunk in chunks:
            pending += decoder.decode(chunk)
            *lines, pending = pending.split("\n")
            for line in lines:
                event = _parse_data_line(line)
                if event is not None:
                    yield event
        pending += decoder.decode(b"", final=True)
        if pending:
            event = _parse_data_line(pending)
            if event is not None:
                yield event
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()


def _error_text(event: Frame) -> str:
    for key in ("message", "error"):
        value = event.get(key)
        if isinstance(value, str) and value:
            return value
    return STREAM_ERROR_MESSAGE


def _public_error(exc: Exception, context: str) -> str:
    if isinstance(exc, CanvasFlowError):
        if not exc.error_id:
            log_error(logger, context, exc)
        return exc.public_message
    error_id = log_error(logger, context, exc)
    return UnknownError(STREAM_ERROR_MESSAGE, error_id=error_id).public_message


class PersonaStreamAggregator:
    """Accumulate streamed answer text and release each persona exactly once."""

    def __init__(self) -> None:
        self._text = ""
        self.emitted = 0

    def feed(self, fragment: str) -> List[Persona]:
        """Append *fragment* and return personas that became decodable."""

        self._text += fragment
        return self._drain()

    def finish(self) -> List[Persona]:
        """Final pass over the complete buffer."""

        return self._drain()

    def _parse(self) -> List[Persona]:
        try:
            return normalize_personas({"text": self._text})
        except CanvasFlowError:
            # A bare JSON array of strings has no objects to scan.
            return normalize_personas(json.loads(self._text))

    def _drain(self) -> List[Persona]:
        try:
            personas = self._parse()
        except (CanvasFlowError, ValidationError, ValueError):
            # Incomplete JSON is the steady state mid-stream.
            return []
        fresh = personas[self.emitted :]
        self.emitted = max(self.emitted, len(personas))
        return fresh


async def aggregate_persona_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
    """Turn Dify SSE bytes into ``persona`` frames followed by one ``end`` frame.

    Any failure becomes a single terminal ``error`` frame; nothing is raised
    to the transport layer.
    """

    aggregator = PersonaStreamAggregator()
    try:
        async with aclosing(iter_sse_events(chunks)) as events:
            async for event in events:
                name = event.get("event")
                if name == "error":
                    yield {"type": "error", "message": _error_text(event)}
                    return
                if name in MESSAGE_EVENTS and isinstance(event.get("answer"), str):
                    for persona in aggregator.feed(event["answer"]):
                        yield {"type": "persona", "data": persona.model_dump()}
                elif name in TERMINAL_EVENTS:
                    break
        for persona in aggregator.finish():
            yield {"type": "persona", "data": persona.model_dump()}
        logger.info("Persona stream finished (personas=%s)", aggregator.emitted)
        yield {"type": "end"}
    except Exception as exc:
        yield {"type": "error", "message": _public_error(exc, "aggregate_persona_stream")}


async def relay_task_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
    """Forward answer fragments as ``message`` frames ending in ``message_end``."""

    try:
        async with aclosing(iter_sse_events(chunks)) as events:
            async for event in events:
                name = event.get("event")
                if name == "error":
                    yield {"event": "error", "error": _error_text(event)}
                    return
                if name in MESSAGE_EVENTS and isinstance(event.get("answer"), str):
                    yield {"event": "message", "answer": event["answer"]}
                elif name in TERMINAL_EVENTS:
                    break
        yield {"event": "message_end"}
    except Exception as exc:
        yield {"event": "error", "error": _public_error(exc, "relay_task_stream")}
