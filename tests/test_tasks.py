from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List

import pytest

from canvas_flow.client import DemoTransport, DifyApiClient
from canvas_flow.config import DifySettings
from canvas_flow.errors import EmptyResultError, TaskValidationError, UnknownTaskError
from canvas_flow.schemas import DifyRequest, LeanCanvasData, TaskName
from canvas_flow.tasks import TASK_REGISTRY, get_task_processor, process_task


async def _no_sleep(_: float) -> None:
    return None


def _demo_client() -> DifyApiClient:
    settings = DifySettings(demo_min_delay_ms=0, demo_max_delay_ms=0, demo_stream_interval_ms=0)
    return DifyApiClient(settings, DemoTransport(settings, sleep=_no_sleep))


class RecordingTransport:
    """Capture requests and answer with a fixed payload."""

    def __init__(self, payload: Any) -> None:
        self.payload = payload
        self.requests: List[DifyRequest] = []

    async def send(self, request: DifyRequest) -> Any:
        self.requests.append(request)
        return self.payload

    async def stream(self, request: DifyRequest) -> AsyncIterator[bytes]:
        self.requests.append(request)
        return self._empty()

    async def _empty(self) -> AsyncIterator[bytes]:
        yield b""


PERSONA = {"id": 1, "description": "busy parent", "explicit_needs": "time", "implicit_needs": "calm"}
IDEA = {"id": 2, "idea_text": "meal kits", "osborn_hint": "combine"}
PRODUCT_NAME = {"id": 3, "name": "KitWise", "reason": "r", "pros": "p", "cons": "c"}
PRODUCT_DETAILS = {"category": "food", "feature": "ten-minute recipes", "brandImage": "warm"}


def test_registry_covers_every_task() -> None:
    assert set(TASK_REGISTRY) == set(TaskName)


def test_unknown_task_names_the_task() -> None:
    with pytest.raises(UnknownTaskError) as excinfo:
        asyncio.run(process_task({"task": "pitchdeck"}, _demo_client()))

    assert excinfo.value.message == "Unknown task: pitchdeck"
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"task": "persona", "keyword": "   "}, "persona: keyword required"),
        ({"task": "businessidea"}, "businessidea: persona required"),
        (
            {"task": "productname", "persona": PERSONA, "business_idea": IDEA, "product_details": {"category": "food"}},
            "productname: persona, business_idea and product_details required",
        ),
        ({"task": "canvas", "persona": PERSONA, "business_idea": IDEA}, "canvas: persona, business_idea and product_name required"),
    ],
)
def test_validation_messages(body: Dict[str, Any], message: str) -> None:
    transport = RecordingTransport({})

    with pytest.raises(TaskValidationError) as excinfo:
        asyncio.run(process_task(body, DifyApiClient(DifySettings(), transport)))

    assert excinfo.value.message == message
    assert excinfo.value.status_code == 400
    assert transport.requests == []


def test_empty_result_names_the_task() -> None:
    client = DifyApiClient(DifySettings(), RecordingTransport({"personas": []}))

    with pytest.raises(EmptyResultError) as excinfo:
        asyncio.run(process_task({"task": "persona", "keyword": "health"}, client))

    assert "persona" in excinfo.value.message


def test_text_answer_for_list_task_is_empty_result() -> None:
    client = DifyApiClient(DifySettings(), RecordingTransport({"text": "sorry"}))
    body = {"task": "businessidea", "persona": PERSONA}

    with pytest.raises(EmptyResultError):
        asyncio.run(process_task(body, client))


def test_persona_request_carries_optional_inputs() -> None:
    transport = RecordingTransport({"personas": [PERSONA]})
    client = DifyApiClient(DifySettings(), transport)

    result = asyncio.run(process_task({"task": "persona", "keyword": " health ", "notes": "urban"}, client))

    request = transport.requests[0]
    assert request.task is TaskName.PERSONA
    assert request.inputs == {"keyword": "health", "notes": "urban"}
    assert '"health"' in request.query
    assert result.personas[0].description == "busy parent"


def test_business_idea_request_includes_creativity_level() -> None:
    transport = RecordingTransport({"ideas": [{"idea": "x", "hint": "y"}]})
    client = DifyApiClient(DifySettings(), transport)

    result = asyncio.run(
        process_task({"task": "businessidea", "persona": PERSONA, "creativity_level": "visionary"}, client)
    )

    inputs = transport.requests[0].inputs
    assert inputs["creativity_level"] == "visionary"
    assert '"busy parent"' in inputs["persona"]
    assert result.business_ideas[0].osborn_hint == "y"


def test_product_name_request_serializes_product_details_by_alias() -> None:
    transport = RecordingTransport({"product_names": [PRODUCT_NAME]})
    client = DifyApiClient(DifySettings(), transport)
    body = {"task": "productname", "persona": PERSONA, "business_idea": IDEA, "product_details": PRODUCT_DETAILS}

    asyncio.run(process_task(body, client))

    assert '"brandImage":"warm"' in transport.requests[0].inputs["product_details"]


def test_stream_validates_before_calling_upstream() -> None:
    transport = RecordingTransport({})
    processor = get_task_processor("persona", DifyApiClient(DifySettings(), transport))

    with pytest.raises(TaskValidationError):
        asyncio.run(processor.stream({"keyword": ""}))

    assert transport.requests == []


def test_end_to_end_demo_workflow() -> None:
    client = _demo_client()
    counts: Dict[str, int] = {}

    async def run() -> LeanCanvasData:
        personas = (await process_task({"task": "persona", "keyword": "health"}, client)).personas
        counts["personas"] = len(personas)
        persona = next(item for item in personas if item.id == 2).model_dump()

        ideas = (await process_task({"task": "businessidea", "persona": persona}, client)).business_ideas
        counts["business_ideas"] = len(ideas)
        selected = next(item for item in ideas if item.id == 5)
        assert selected.idea_text
        idea = selected.model_dump()

        names = (
            await process_task(
                {"task": "productname", "persona": persona, "business_idea": idea, "product_details": PRODUCT_DETAILS},
                client,
            )
        ).product_names
        counts["product_names"] = len(names)
        name = names[0].model_dump()
        return await process_task({"task": "canvas", "persona": persona, "business_idea": idea, "product_name": name}, client)

    canvas = asyncio.run(run())

    assert counts == {"personas": 10, "business_ideas": 10, "product_names": 10}
    assert isinstance(canvas, LeanCanvasData)
    assert len(canvas.blocks()) == 9
    assert all(canvas.blocks().values())
