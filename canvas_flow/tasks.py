"""Task processors: validate → build → dispatch → normalize for each Dify task."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Type

from pydantic import BaseModel, ValidationError

from .client import DifyApiClient
from .errors import EmptyResultError, TaskValidationError, UnknownTaskError
from .normalizers import NORMALIZERS, Normalizer
from .schemas import (
    BusinessIdea,
    BusinessIdeaTaskRequest,
    BusinessIdeaTaskResponse,
    CanvasTaskRequest,
    CreativityLevel,
    DifyRequest,
    LeanCanvasData,
    Persona,
    PersonaTaskRequest,
    PersonaTaskResponse,
    ProductName,
    ProductNameTaskRequest,
    ProductNameTaskResponse,
    TaskName,
)

logger = logging.getLogger(__name__)

ITEMS_PER_TASK = 10

CREATIVITY_GUIDANCE: Dict[CreativityLevel, str] = {
    CreativityLevel.REALISTIC: "Keep the ideas feasible and grounded in proven business models and current market trends.",
    CreativityLevel.CREATIVE: "Favour inventive, differentiated ideas that combine new technologies or methods.",
    CreativityLevel.VISIONARY: "Propose bold, disruptive ideas that challenge industry assumptions.",
}


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------


def _build_persona(request: PersonaTaskRequest) -> DifyRequest:
    inputs: Dict[str, Any] = {"keyword": request.keyword}
    if request.challenges:
        inputs["challenges"] = request.challenges
    if request.notes:
        inputs["notes"] = request.notes
    query = (
        f'Generate {ITEMS_PER_TASK} personas based on the keyword "{request.keyword}". '
        'Respond in JSON as {"personas": [{"id": number, "description": string, '
        '"explicit_needs": string, "implicit_needs": string}]}.'
    )
    return DifyRequest(task=TaskName.PERSONA, inputs=inputs, query=query)


def _build_business_idea(request: BusinessIdeaTaskRequest) -> DifyRequest:
    inputs: Dict[str, Any] = {"persona": request.persona.model_dump_json()}
    query = (
        f"Generate {ITEMS_PER_TASK} business ideas for the following persona. "
        'Respond in JSON as {"business_ideas": [{"id": number, "idea_text": string, "osborn_hint": string}]}.'
    )
    if request.creativity_level is not None:
        inputs["creativity_level"] = request.creativity_level.value
        query = f"{query} {CREATIVITY_GUIDANCE[request.creativity_level]}"
    return DifyRequest(task=TaskName.BUSINESS_IDEA, inputs=inputs, query=query)


def _build_product_name(request: ProductNameTaskRequest) -> DifyRequest:
    return DifyRequest(
        task=TaskName.PRODUCT_NAME,
        inputs={
            "persona": request.persona.model_dump_json(),
            "business_idea": request.business_idea.model_dump_json(),
            "product_details": request.product_details.model_dump_json(by_alias=True),
        },
        query=(
            f"Generate {ITEMS_PER_TASK} product names based on the information below. "
            'Respond in JSON as {"product_names": [{"id": number, "name": string, '
            '"reason": string, "pros": string, "cons": string}]}.'
        ),
    )


def _build_canvas(request: CanvasTaskRequest) -> DifyRequest:
    return DifyRequest(
        task=TaskName.CANVAS,
        inputs={
            "persona": request.persona.model_dump_json(),
            "business_idea": request.business_idea.model_dump_json(),
            "product_name": request.product_name.model_dump_json(),
        },
        query=(
            "Generate a Lean Canvas based on the information below. Respond in JSON with every block "
            'as an array of strings, for example {"problem": [...], "solution": [...], "keyMetrics": [...], '
            '"uniqueValueProposition": [...], "unfairAdvantage": [...], "channels": [...], '
            '"customerSegments": [...], "costStructure": [...], "revenueStreams": [...]}.'
        ),
    )


# ---------------------------------------------------------------------------
# Response wrappers
# ---------------------------------------------------------------------------


def _wrap_personas(personas: List[Persona]) -> PersonaTaskResponse:
    return PersonaTaskResponse(personas=personas)


def _wrap_business_ideas(ideas: List[BusinessIdea]) -> BusinessIdeaTaskResponse:
    return BusinessIdeaTaskResponse(business_ideas=ideas)


def _wrap_product_names(names: List[ProductName]) -> ProductNameTaskResponse:
    return ProductNameTaskResponse(product_names=names)


def _wrap_canvas(canvas: LeanCanvasData) -> LeanCanvasData:
    return canvas


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskSpec:
    """Everything that differs between tasks in the shared pipeline."""

    name: TaskName
    request_model: Type[BaseModel]
    validation_message: str
    build: Callable[[Any], DifyRequest]
    normalizer: Normalizer
    wrap: Callable[[Any], BaseModel]


TASK_REGISTRY: Dict[TaskName, TaskSpec] = {
    TaskName.PERSONA: TaskSpec(
        name=TaskName.PERSONA,
        request_model=PersonaTaskRequest,
        validation_message="persona: keyword required",
        build=_build_persona,
        normalizer=NORMALIZERS[TaskName.PERSONA],
        wrap=_wrap_personas,
    ),
    TaskName.BUSINESS_IDEA: TaskSpec(
        name=TaskName.BUSINESS_IDEA,
        request_model=BusinessIdeaTaskRequest,
        validation_message="businessidea: persona required",
        build=_build_business_idea,
        normalizer=NORMALIZERS[TaskName.BUSINESS_IDEA],
        wrap=_wrap_business_ideas,
    ),
    TaskName.PRODUCT_NAME: TaskSpec(
        name=TaskName.PRODUCT_NAME,
        request_model=ProductNameTaskRequest,
        validation_message="productname: persona, business_idea and product_details required",
        build=_build_product_name,
        normalizer=NORMALIZERS[TaskName.PRODUCT_NAME],
        wrap=_wrap_product_names,
    ),
    TaskName.CANVAS: TaskSpec(
        name=TaskName.CANVAS,
        request_model=CanvasTaskRequest,
        validation_message="canvas: persona, business_idea and product_name required",
        build=_build_canvas,
        normalizer=NORMALIZERS[TaskName.CANVAS],
        wrap=_wrap_canvas,
    ),
}


class TaskProcessor:
    """Run one task through the shared pipeline."""

    def __init__(self, spec: TaskSpec, client: DifyApiClient) -> None:
        self.spec = spec
        self.client = client

    @property
    def task(self) -> TaskName:
        return self.spec.name

    def validate(self, body: Any) -> BaseModel:
        """Return the typed request or raise with the task's message."""

        if not isinstance(body, Mapping):
            raise TaskValidationError(self.spec.validation_message)
        try:
            return self.spec.request_model.model_validate(dict(body))
        except ValidationError as exc:
            logger.info("Rejected %s request: %s", self.task.value, exc.errors(include_url=False))
            raise TaskValidationError(self.spec.validation_message) from exc

    def build(self, request: BaseModel) -> DifyRequest:
        return self.spec.build(request)

    def normalize(self, raw: Any) -> Any:
        normalized = self.spec.normalizer.normalize(raw)
        if not self.spec.normalizer.validate(normalized):
            raise EmptyResultError(self.task.value)
        return normalized

    async def process(self, body: Any) -> BaseModel:
        """Validate, call Dify in blocking mode and return the typed result."""

        request = self.validate(body)
        raw = await self.client.call_api(self.build(request))
        result = self.spec.wrap(self.normalize(raw))
        logger.info("Task %s completed", self.task.value)
        return result

    async def stream(self, body: Any) -> AsyncIterator[bytes]:
        """Validate, then return Dify's raw streaming response."""

        request = self.validate(body)
        return await self.client.call_api_stream(self.build(request))


def resolve_task(task: Any) -> TaskName:
    try:
        return TaskName(task)
    except ValueError as exc:
        raise UnknownTaskError(task) from exc


def get_task_processor(task: Any, client: DifyApiClient) -> TaskProcessor:
    """Return the processor for *task* or raise ``UnknownTaskError``."""

    return TaskProcessor(TASK_REGISTRY[resolve_task(task)], client)


async def process_task(body: Mapping[str, Any], client: DifyApiClient) -> BaseModel:
    """Single dispatch point used by the HTTP layer."""

    processor = get_task_processor(body.get("task"), client)
    return await processor.process(body)
