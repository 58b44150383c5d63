"""Dify task endpoints: blocking envelope, raw relay stream and persona stream."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..client import DifyApiClient
from ..errors import CanvasFlowError, TaskValidationError, UnknownError, is_retryable
from ..logging_utils import log_error
from ..schemas import ApiError, ApiResponse, TaskName
from ..streaming import (
    Frame,
    aggregate_persona_stream,
    encode_sse_stream,
    relay_task_stream,
)
from ..tasks import get_task_processor, process_task

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["dify"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
INVALID_BODY_MESSAGE = "Request body must be a JSON object."
MISSING_STREAM_REQUEST_MESSAGE = "The request query parameter is required."


def _client(request: Request) -> DifyApiClient:
    return request.app.state.dify_client


def _as_canvas_error(exc: Exception, context: str) -> CanvasFlowError:
    if isinstance(exc, CanvasFlowError):
        return exc
    error_id = log_error(logger, context, exc)
    return UnknownError(error_id=error_id)


def _error_response(error: CanvasFlowError) -> JSONResponse:
    envelope = ApiResponse(success=False, error=ApiError(**error.to_payload()))
    return JSONResponse(status_code=error.status_code, content=envelope.model_dump(exclude_none=True))


def _event_stream(frames: AsyncIterator[Frame]) -> StreamingResponse:
    return StreamingResponse(encode_sse_stream(frames), media_type="text/event-stream", headers=SSE_HEADERS)


async def _single_frame(frame: Frame) -> AsyncIterator[Frame]:
    yield frame


async def _read_json_object(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise TaskValidationError(INVALID_BODY_MESSAGE) from exc
    if not isinstance(body, dict):
        raise TaskValidationError(INVALID_BODY_MESSAGE)
    return body


@router.get("/health")
async def healthcheck(request: Request) -> Dict[str, Any]:
    """Simple health check endpoint."""

    return {"status": "ok", "demo_mode": _client(request).is_demo_mode}


@router.post("/dify")
async def run_task(request: Request) -> JSONResponse:
    """Run one task in blocking mode and wrap the result in the API envelope."""

    try:
        body = await _read_json_object(request)
        result = await process_task(body, _client(request))
    except Exception as exc:
        error = _as_canvas_error(exc, "POST /api/dify")
        logger.info(
            "Task request failed (kind=%s, status=%s, retryable=%s)",
            error.kind,
            error.status_code,
            is_retryable(error),
        )
        return _error_response(error)

    envelope = ApiResponse(success=True, data=result.model_dump(by_alias=True))
    return JSONResponse(content=envelope.model_dump(exclude_none=True))


@router.get("/dify/stream")
async def stream_task(request: Request) -> StreamingResponse:
    """Relay a task's answer fragments as SSE.

    The task request arrives JSON-encoded in the ``request`` query parameter
    because browser ``EventSource`` cannot send a body. Failures are reported
    as a single ``error`` frame on a 200 response.
    """

    raw = request.query_params.get("request")
    try:
        if not raw:
            raise TaskValidationError(MISSING_STREAM_REQUEST_MESSAGE)
        try:
            body = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TaskValidationError(INVALID_BODY_MESSAGE) from exc
        if not isinstance(body, dict):
            raise TaskValidationError(INVALID_BODY_MESSAGE)
        processor = get_task_processor(body.get("task"), _client(request))
        chunks = await processor.stream(body)
    except Exception as exc:
        error = _as_canvas_error(exc, "GET /api/dify/stream")
        return _event_stream(_single_frame({"event": "error", "error": error.public_message}))

    return _event_stream(relay_task_stream(chunks))


@router.post("/dify/persona-stream")
async def stream_personas(request: Request) -> StreamingResponse:
    """Stream personas one SSE frame at a time as they become decodable."""

    try:
        body = await _read_json_object(request)
        processor = get_task_processor(TaskName.PERSONA, _client(request))
        chunks = await processor.stream(body)
    except Exception as exc:
        error = _as_canvas_error(exc, "POST /api/dify/persona-stream")
        return _event_stream(_single_frame({"type": "error", "message": error.public_message}))

    return _event_stream(aggregate_persona_stream(chunks))
