from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Iterable, List

from canvas_flow.errors import UpstreamTimeoutError
from canvas_flow.schemas import Persona
from canvas_flow.streaming import (
    RETRY_DIRECTIVE,
    PersonaStreamAggregator,
    aggregate_persona_stream,
    encode_sse_stream,
    format_sse,
    iter_sse_events,
    relay_task_stream,
)


async def _chunks(items: Iterable[bytes]) -> AsyncIterator[bytes]:
    for item in items:
        yield item


async def _failing_chunks() -> AsyncIterator[bytes]:
    yield format_sse({"event": "message", "answer": '{"id": 1, "description": "a"}'})
    raise UpstreamTimeoutError()


def _collect(frames: Any) -> List[Any]:
    async def run() -> List[Any]:
        return [frame async for frame in frames]

    return asyncio.run(run())


def _persona_events(count: int) -> List[bytes]:
    return [
        format_sse({"event": "message", "answer": json.dumps({"id": index, "description": f"persona {index}"})})
        for index in range(1, count + 1)
    ]


def test_format_sse_keeps_unicode() -> None:
    assert format_sse({"answer": "健康"}) == 'data: {"answer":"健康"}\n\n'.encode("utf-8")


def test_iter_sse_events_handles_split_lines_and_skips_noise() -> None:
    raw = b'retry: 100\n\n: ping\n\ndata: {"event": "message", "answer": "\xe5\x81' + b'\xa5"}\n\ndata: oops\n\ndata: [DONE]\n\n'
    pieces = [raw[index : index + 7] for index in range(0, len(raw), 7)]

    events = _collect(iter_sse_events(_chunks(pieces)))

    assert events == [{"event": "message", "answer": "健"}, {"event": "[DONE]"}]


def test_aggregator_emits_each_persona_once_across_fragments() -> None:
    aggregator = PersonaStreamAggregator()
    text = '{"personas": [{"id": 1, "description": "a"}, {"id": 2, "description": "b"}]}'

    emitted = []
    for index in range(0, len(text), 5):
        emitted.extend(aggregator.feed(text[index : index + 5]))
    emitted.extend(aggregator.finish())

    assert [persona.id for persona in emitted] == [1, 2]


def test_aggregator_streams_objects_as_they_complete() -> None:
    aggregator = PersonaStreamAggregator()

    assert aggregator.feed('{"id": 1, "description": "a"}{"id": 2, "desc') != []
    assert aggregator.feed('ription": "b"}') == [Persona(id=2, description="b")]
    assert aggregator.finish() == []
    assert aggregator.emitted == 2


def test_persona_stream_emits_n_personas_then_end() -> None:
    frames = _collect(aggregate_persona_stream(_chunks([*_persona_events(3), format_sse({"event": "message_end"})])))

    assert [frame["type"] for frame in frames] == ["persona", "persona", "persona", "end"]
    assert [frame["data"]["id"] for frame in frames[:3]] == [1, 2, 3]


def test_persona_stream_ignores_events_after_terminal_signal() -> None:
    chunks = [*_persona_events(1), b"data: [DONE]\n\n", *_persona_events(2)[1:]]

    frames = _collect(aggregate_persona_stream(_chunks(chunks)))

    assert frames == [{"type": "persona", "data": {"id": 1, "description": "persona 1", "explicit_needs": "", "implicit_needs": ""}}, {"type": "end"}]


def test_persona_stream_relays_upstream_error_event() -> None:
    chunks = [*_persona_events(1), format_sse({"event": "error", "message": "quota exceeded"})]

    frames = _collect(aggregate_persona_stream(_chunks(chunks)))

    assert frames[-1] == {"type": "error", "message": "quota exceeded"}
    assert [frame["type"] for frame in frames].count("end") == 0


def test_persona_stream_turns_exceptions_into_error_frame() -> None:
    frames = _collect(aggregate_persona_stream(_failing_chunks()))

    assert frames[0]["type"] == "persona"
    assert frames[-1] == {"type": "error", "message": UpstreamTimeoutError.default_message}


def test_relay_forwards_answers_and_ends_once() -> None:
    chunks = [
        format_sse({"event": "message", "answer": '{"ideas": '}),
        format_sse({"event": "agent_message", "answer": "[]}"}),
        format_sse({"event": "workflow_finished"}),
    ]

    frames = _collect(relay_task_stream(_chunks(chunks)))

    assert frames == [
        {"event": "message", "answer": '{"ideas": '},
        {"event": "message", "answer": "[]}"},
        {"event": "message_end"},
    ]


def test_relay_error_frame() -> None:
    frames = _collect(relay_task_stream(_failing_chunks()))

    assert frames[-1] == {"event": "error", "error": UpstreamTimeoutError.default_message}


def test_encode_sse_stream_starts_with_retry_directive() -> None:
    async def frames() -> AsyncIterator[Any]:
        yield {"type": "end"}

    assert _collect(encode_sse_stream(frames())) == [RETRY_DIRECTIVE, b'data: {"type":"end"}\n\n']


def test_persona_stream_unwraps_data_envelope() -> None:
    answer = json.dumps({"data": [{"id": index, "description": f"persona {index}"} for index in (1, 2, 3)]})
    chunks = [format_sse({"event": "message", "answer": answer[index : index + 20]}) for index in range(0, len(answer), 20)]

    frames = _collect(aggregate_persona_stream(_chunks([*chunks, format_sse({"event": "message_end"})])))

    assert [frame["type"] for frame in frames] == ["persona", "persona", "persona", "end"]
    assert [frame["data"]["description"] for frame in frames[:3]] == ["persona 1", "persona 2", "persona 3"]
