"""Coerce loosely shaped Dify output into strict pipeline records.

The upstream workflow is an LLM; its JSON envelope is not contractually
fixed. Every normalizer therefore walks an explicit, ordered list of candidate
keys per target field so the coercion rules stay auditable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Sequence, Tuple

from pydantic import BaseModel

from .errors import ResponseParseError, UnknownTaskError
from .schemas import BusinessIdea, LeanCanvasData, Persona, ProductName, TaskName

TEXT_PREVIEW_LENGTH = 500

PERSONA_LIST_KEYS: Tuple[str, ...] = ("personas",)
BUSINESS_IDEA_LIST_KEYS: Tuple[str, ...] = ("business_ideas", "ideas")
PRODUCT_NAME_LIST_KEYS: Tuple[str, ...] = ("product_names", "names")
FALLBACK_LIST_KEYS: Tuple[str, ...] = ("data", "output")

PERSONA_DESCRIPTION_KEYS: Tuple[str, ...] = ("description", "text", "content", "persona")
IDEA_TEXT_KEYS: Tuple[str, ...] = ("idea_text", "idea", "text")
OSBORN_HINT_KEYS: Tuple[str, ...] = ("osborn_hint", "hint", "reasoning")
PRODUCT_NAME_KEYS: Tuple[str, ...] = ("name", "product_name")
PRODUCT_FIELD_KEYS: Dict[str, Tuple[str, ...]] = {
    "reason": ("reason", "reasoning", "explanation"),
    "pros": ("pros", "advantages", "benefits"),
    "cons": ("cons", "disadvantages", "drawbacks"),
}

CANVAS_WRAPPER_KEYS: Tuple[str, ...] = ("lean_canvas", "leanCanvas", "canvas", "data", "output")
CANVAS_FIELD_KEYS: Dict[str, Tuple[str, ...]] = {
    "problem": ("problem", "problems"),
    "solution": ("solution", "solutions"),
    "key_metrics": ("key_metrics", "keyMetrics", "metrics"),
    "unique_value_proposition": ("unique_value_proposition", "uniqueValueProposition", "value_proposition"),
    "unfair_advantage": ("unfair_advantage", "unfairAdvantage", "advantage"),
    "channels": ("channels",),
    "customer_segments": ("customer_segments", "customerSegments", "segments"),
    "cost_structure": ("cost_structure", "costStructure", "costs"),
    "revenue_streams": ("revenue_streams", "revenueStreams", "revenue"),
}


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def to_plain(data: Any) -> Any:
    """Turn pydantic records (or lists of them) back into plain JSON values."""

    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True)
    if isinstance(data, list):
        return [to_plain(item) for item in data]
    return data


def is_text_fallback(data: Any) -> bool:
    """True for the ``{"text": ...}`` wrapper produced from non-JSON answers."""

    return isinstance(data, Mapping) and isinstance(data.get("text"), str) and len(data) == 1


def extract_array(data: Any, keys: Sequence[str]) -> List[Any]:
    """Return the first list found under *keys*, the payload, ``data`` or ``output``."""

    if isinstance(data, Mapping):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        for key in FALLBACK_LIST_KEYS:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ", ".join(_as_text(item) for item in value if item not in (None, ""))
    if isinstance(value, (dict, tuple)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def first_text(item: Any, keys: Sequence[str], default: str = "") -> str:
    """Return the first truthy value under *keys* as text."""

    if isinstance(item, Mapping):
        for key in keys:
            value = item.get(key)
            if value:
                return _as_text(value)
    return default


def coerce_id(value: Any, position: int) -> int:
    """Keep integer ids, parse numeric strings, otherwise use *position*."""

    if isinstance(value, bool):
        return position
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return position


def iter_json_objects(text: str) -> Iterator[Dict[str, Any]]:
    """Yield each complete, brace-balanced JSON object embedded in *text*.

    An unterminated trailing object is ignored, which lets callers re-scan a
    growing buffer and only see objects that have fully arrived.
    """

    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            if depth:
                in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth:
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(text[start : index + 1])
                except json.JSONDecodeError:
                    continue
                if isinstance(parsed, dict):
                    yield parsed


# ---------------------------------------------------------------------------
# Persona
# ---------------------------------------------------------------------------


def _persona_need(item: Mapping[str, Any], kind: str) -> str:
    needs = item.get("needs")
    if isinstance(needs, Mapping) and needs.get(kind):
        return _as_text(needs[kind])
    return first_text(item, (kind, f"{kind}_needs", f"{kind}Needs"))


def _is_list_envelope(obj: Mapping[str, Any], keys: Sequence[str]) -> bool:
    return any(isinstance(obj.get(key), list) for key in (*keys, *FALLBACK_LIST_KEYS))


def _persona_items_from_text(text: str) -> List[Any]:
    items: List[Any] = []
    for obj in iter_json_objects(text):
        if _is_list_envelope(obj, PERSONA_LIST_KEYS):
            items.extend(extract_array(obj, PERSONA_LIST_KEYS))
        else:
            items.append(obj)
    if not items:
        preview = text[:TEXT_PREVIEW_LENGTH]
        raise ResponseParseError(f"Dify returned a non-JSON response; JSON output is required: {preview}")
    return items


def normalize_personas(data: Any) -> List[Persona]:
    data = to_plain(data)
    if is_text_fallback(data):
        items = _persona_items_from_text(data["text"])
    else:
        items = extract_array(data, PERSONA_LIST_KEYS)

    personas: List[Persona] = []
    for position, item in enumerate(items, start=1):
        if isinstance(item, Mapping):
            if any(key in item for key in PERSONA_DESCRIPTION_KEYS):
                description = first_text(item, PERSONA_DESCRIPTION_KEYS)
            else:
                description = json.dumps(item, ensure_ascii=False)
            personas.append(
                Persona(
                    id=coerce_id(item.get("id"), position),
                    description=description,
                    explicit_needs=_persona_need(item, "explicit"),
                    implicit_needs=_persona_need(item, "implicit"),
                )
            )
        else:
            personas.append(Persona(id=position, description=_as_text(item)))
    return personas


# ---------------------------------------------------------------------------
# Business ideas and product names
# ---------------------------------------------------------------------------


def normalize_business_ideas(data: Any) -> List[BusinessIdea]:
    data = to_plain(data)
    ideas: List[BusinessIdea] = []
    for position, item in enumerate(extract_array(data, BUSINESS_IDEA_LIST_KEYS), start=1):
        if isinstance(item, Mapping):
            ideas.append(
                BusinessIdea(
                    id=coerce_id(item.get("id"), position),
                    idea_text=first_text(item, IDEA_TEXT_KEYS, default=_as_text(dict(item))),
                    osborn_hint=first_text(item, OSBORN_HINT_KEYS),
                )
            )
        else:
            ideas.append(BusinessIdea(id=position, idea_text=_as_text(item)))
    return ideas


def normalize_product_names(data: Any) -> List[ProductName]:
    data = to_plain(data)
    names: List[ProductName] = []
    for position, item in enumerate(extract_array(data, PRODUCT_NAME_LIST_KEYS), start=1):
        if isinstance(item, Mapping):
            names.append(
                ProductName(
                    id=coerce_id(item.get("id"), position),
                    name=first_text(item, PRODUCT_NAME_KEYS, default=_as_text(dict(item))),
                    **{field: first_text(item, keys) for field, keys in PRODUCT_FIELD_KEYS.items()},
                )
            )
        else:
            names.append(ProductName(id=position, name=_as_text(item)))
    return names


# ---------------------------------------------------------------------------
# Lean canvas
# ---------------------------------------------------------------------------


def _canvas_source(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        return {}
    if any(key in data for keys in CANVAS_FIELD_KEYS.values() for key in keys):
        return data
    for key in CANVAS_WRAPPER_KEYS:
        nested = data.get(key)
        if isinstance(nested, Mapping):
            return nested
    return data


def normalize_canvas(data: Any) -> LeanCanvasData:
    data = to_plain(data)
    source = _canvas_source(data)
    blocks: Dict[str, List[str]] = {}
    for field, keys in CANVAS_FIELD_KEYS.items():
        blocks[field] = []
        for key in keys:
            value = source.get(key)
            if isinstance(value, list):
                blocks[field] = [_as_text(entry) for entry in value if entry not in (None, "")]
                break
    return LeanCanvasData(**blocks)


# ---------------------------------------------------------------------------
# Validation and registry
# ---------------------------------------------------------------------------


def validate_records(result: Any) -> bool:
    return isinstance(result, list) and len(result) > 0


def validate_canvas(result: Any) -> bool:
    if not isinstance(result, LeanCanvasData):
        return False
    return any(result.blocks().values())


@dataclass(frozen=True)
class Normalizer:
    """Pair a task's coercion function with its validity predicate."""

    task: TaskName
    normalize: Callable[[Any], Any]
    validate: Callable[[Any], bool]


NORMALIZERS: Dict[TaskName, Normalizer] = {
    TaskName.PERSONA: Normalizer(TaskName.PERSONA, normalize_personas, validate_records),
    TaskName.BUSINESS_IDEA: Normalizer(TaskName.BUSINESS_IDEA, normalize_business_ideas, validate_records),
    TaskName.PRODUCT_NAME: Normalizer(TaskName.PRODUCT_NAME, normalize_product_names, validate_records),
    TaskName.CANVAS: Normalizer(TaskName.CANVAS, normalize_canvas, validate_canvas),
}


def get_normalizer(task: str | TaskName) -> Normalizer:
    """Return the normalizer registered for *task*."""

    try:
        return NORMALIZERS[TaskName(task)]
    except ValueError as exc:
        raise UnknownTaskError(task) from exc
