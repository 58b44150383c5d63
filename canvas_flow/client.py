"""Boundary between the task pipeline and the Dify chat-messages API.

Two transports implement the same interface: ``DifyHttpTransport`` talks to
the real provider over httpx and ``DemoTransport`` serves canned data when no
credentials are configured. ``DifyApiClient`` picks one at construction time.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Protocol

import httpx

from .config import DifySettings
from .errors import (
    ConfigurationError,
    NetworkError,
    ResponseParseError,
    UpstreamTimeoutError,
    UpstreamWorkflowFailure,
    error_for_status,
)
from .logging_utils import log_error
from .mock_data import MockDataGenerator
from .schemas import DifyRequest
from .streaming import RETRY_DIRECTIVE, format_sse

logger = logging.getLogger(__name__)

CHAT_MESSAGES_PATH = "/chat-messages"
BLOCKING = "blocking"
STREAMING = "streaming"

SleepFn = Callable[[float], Awaitable[None]]


def build_request_body(request: DifyRequest, response_mode: str, user_id: str) -> Dict[str, Any]:
    """Assemble the chat-messages payload for *request*."""

    return {
        "inputs": {"task": request.task.value, **request.inputs},
        "query": request.query or f"Please perform task: {request.task.value}",
        "response_mode": response_mode,
        "user": user_id,
        "conversation_id": "",
    }


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = [line.rstrip() for line in text.splitlines()]
        if len(lines) >= 2:
            lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text


def parse_answer(answer: str) -> Any:
    """Decode the JSON nested in Dify's ``answer`` text, or wrap it as text."""

    try:
        return json.loads(_strip_code_fence(answer))
    except json.JSONDecodeError:
        return {"text": answer}


class DifyTransport(Protocol):
    async def send(self, request: DifyRequest) -> Any:
        ...

    async def stream(self, request: DifyRequest) -> AsyncIterator[bytes]:
        ...


class DifyHttpTransport:
    """Call the real Dify API, bounding every call by the configured timeout."""

    def __init__(self, settings: DifySettings, http_transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._http_transport = http_transport

    @property
    def endpoint(self) -> str:
        return f"{self._settings.api_url}{CHAT_MESSAGES_PATH}"

    def _require_config(self) -> None:
        if not self._settings.api_key or not self._settings.api_url:
            raise ConfigurationError()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.api_key}",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.timeout_seconds),
            transport=self._http_transport,
        )

    def _timeout_error(self, exc: BaseException, task: str) -> UpstreamTimeoutError:
        error_id = log_error(logger, "DifyHttpTransport", exc, task=task, timeout_ms=self._settings.timeout_ms)
        return UpstreamTimeoutError(error_id=error_id)

    def _network_error(self, exc: BaseException, task: str) -> NetworkError:
        error_id = log_error(logger, "DifyHttpTransport", exc, task=task, endpoint=self.endpoint)
        return NetworkError(error_id=error_id)

    def _status_error(self, response: httpx.Response, body_text: str, task: str) -> Exception:
        error_id = log_error(
            logger,
            "DifyHttpTransport",
            f"Dify API request failed: {response.status_code}",
            status=response.status_code,
            reason=response.reason_phrase,
            endpoint=self.endpoint,
            task=task,
            response_length=len(body_text),
            response_body=body_text,
        )
        return error_for_status(response.status_code, error_id=error_id)

    async def send(self, request: DifyRequest) -> Any:
        self._require_config()
        task = request.task.value
        body = build_request_body(request, BLOCKING, self._settings.user_id)
        logger.info("Making Dify API request to %s (task=%s, inputs=%s)", self.endpoint, task, sorted(request.inputs))

        try:
            async with self._client() as client:
                response = await asyncio.wait_for(
                    client.post(self.endpoint, json=body, headers=self._headers()),
                    timeout=self._settings.timeout_seconds,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise self._timeout_error(exc, task) from exc
        except httpx.RequestError as exc:
            raise self._network_error(exc, task) from exc

        body_text = response.text
        if not response.is_success:
            raise self._status_error(response, body_text, task)

        try:
            result = json.loads(body_text)
        except json.JSONDecodeError as exc:
            error_id = log_error(
                logger,
                "DifyHttpTransport",
                exc,
                task=task,
                response_length=len(body_text),
                response_preview=body_text[:200],
            )
            raise ResponseParseError(error_id=error_id) from exc

        if not isinstance(result, dict):
            return result
        if result.get("status") == "failed":
            error_id = log_error(
                logger,
                "DifyHttpTransport",
                "Dify workflow execution failed",
                task=task,
                dify_error=str(result.get("error", "")),
            )
            raise UpstreamWorkflowFailure(error_id=error_id)

        logger.info("Dify API request succeeded (task=%s, has_answer=%s)", task, bool(result.get("answer")))
        answer = result.get("answer")
        if isinstance(answer, str) and answer:
            return parse_answer(answer)
        return result

    async def stream(self, request: DifyRequest) -> AsyncIterator[bytes]:
        self._require_config()
        task = request.task.value
        body = build_request_body(request, STREAMING, self._settings.user_id)
        logger.info("Making Dify streaming request to %s (task=%s)", self.endpoint, task)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settings.timeout_seconds
        client = self._client()
        try:
            http_request = client.build_request("POST", self.endpoint, json=body, headers=self._headers())
            response = await asyncio.wait_for(
                client.send(http_request, stream=True),
                timeout=self._settings.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            await client.aclose()
            raise self._timeout_error(exc, task) from exc
        except httpx.RequestError as exc:
            await client.aclose()
            raise self._network_error(exc, task) from exc

        if not response.is_success:
            try:
                body_text = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
                await client.aclose()
            raise self._status_error(response, body_text, task)

        content_type = response.headers.get("content-type", "")
        logger.info("Dify streaming request started (task=%s, content_type=%s)", task, content_type)
        if "text/event-stream" not in content_type:
            return self._blocking_as_stream(client, response)
        return self._iter_body(client, response, deadline, task)

    async def _blocking_as_stream(self, client: httpx.AsyncClient, response: httpx.Response) -> AsyncIterator[bytes]:
        # The provider answered in blocking mode; re-frame the body as SSE.
        try:
            body_text = (await response.aread()).decode("utf-8", errors="replace")
        finally:
            await response.aclose()
            await client.aclose()
        try:
            envelope = json.loads(body_text)
        except json.JSONDecodeError:
            envelope = None
        answer = envelope.get("answer") if isinstance(envelope, dict) else None
        yield format_sse({"event": "message", "answer": answer if isinstance(answer, str) else body_text})
        yield format_sse({"event": "message_end"})

    async def _iter_body(
        self,
        client: httpx.AsyncClient,
        response: httpx.Response,
        deadline: float,
        task: str,
    ) -> AsyncIterator[bytes]:
        loop = asyncio.get_running_loop()
        chunks = response.aiter_bytes()

        async def next_chunk() -> bytes:
            return await chunks.__anext__()

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                try:
                    chunk = await asyncio.wait_for(next_chunk(), timeout=remaining)
                except StopAsyncIteration:
                    break
                if chunk:
                    yield chunk
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise self._timeout_error(exc, task) from exc
        except httpx.RequestError as exc:
            raise self._network_error(exc, task) from exc
        finally:
            await response.aclose()
            await client.aclose()


class DemoTransport:
    """Serve mock data with simulated latency instead of calling Dify."""

    def __init__(
        self,
        settings: DifySettings,
        *,
        sleep: SleepFn = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._sleep = sleep
        self._rng = rng or random.Random()

    def _delay_seconds(self) -> float:
        low = self._settings.demo_min_delay_ms
        high = max(low, self._settings.demo_max_delay_ms)
        return self._rng.uniform(low, high) / 1000

    async def send(self, request: DifyRequest) -> Any:
        logger.info(
            "Using demo mode - mock data will be returned (task=%s, inputs=%s)",
            request.task.value,
            sorted(request.inputs),
        )
        await self._sleep(self._delay_seconds())
        return MockDataGenerator.generate(request.task.value, request.inputs)

    async def stream(self, request: DifyRequest) -> AsyncIterator[bytes]:
        logger.info("Using streaming demo mode - mock SSE data will be returned (task=%s)", request.task.value)
        return self._frames(request)

    async def _frames(self, request: DifyRequest) -> AsyncIterator[bytes]:
        interval = self._settings.demo_stream_interval_ms / 1000
        yield RETRY_DIRECTIVE
        for index, record in enumerate(MockDataGenerator.records(request.task.value)):
            await self._sleep(interval if index else self._delay_seconds())
            yield format_sse({"event": "message", "answer": json.dumps(record, ensure_ascii=False)})
        yield format_sse({"event": "message_end"})


class DifyApiClient:
    """Blocking and streaming access to the Dify workflow."""

    def __init__(self, settings: DifySettings, transport: DifyTransport | None = None) -> None:
        self.settings = settings
        if transport is None:
            transport = DemoTransport(settings) if settings.is_demo_mode else DifyHttpTransport(settings)
        self.transport = transport

    @property
    def is_demo_mode(self) -> bool:
        return isinstance(self.transport, DemoTransport)

    async def call_api(self, request: DifyRequest) -> Any:
        """Run *request* in blocking mode and return the decoded answer."""

        return await self.transport.send(request)

    async def call_api_stream(self, request: DifyRequest) -> AsyncIterator[bytes]:
        """Run *request* in streaming mode and return the raw SSE byte stream."""

        return await self.transport.stream(request)
