from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Dict, List

from fastapi.testclient import TestClient
import pytest
import stripe

from canvas_flow.app import create_app


client = TestClient(create_app())

PERSONA = {"id": 1, "description": "busy parent", "explicit_needs": "time", "implicit_needs": "calm"}


def _sse_frames(body: str) -> List[Dict[str, Any]]:
    return [json.loads(line[len("data: ") :]) for line in body.splitlines() if line.startswith("data: ")]


def test_healthcheck_reports_demo_mode() -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "demo_mode": True}


def test_dify_persona_returns_envelope() -> None:
    response = client.post("/api/dify", json={"task": "persona", "keyword": "health"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert len(payload["data"]["personas"]) == 10


def test_dify_canvas_uses_camel_case_blocks() -> None:
    body = {
        "task": "canvas",
        "persona": PERSONA,
        "business_idea": {"id": 1, "idea_text": "meal kits"},
        "product_name": {"id": 1, "name": "KitWise"},
    }

    response = client.post("/api/dify", json=body)

    assert response.status_code == 200
    assert set(response.json()["data"]) >= {"keyMetrics", "uniqueValueProposition", "revenueStreams"}


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"task": "pitchdeck"}, "Unknown task: pitchdeck"),
        ({"task": "persona"}, "persona: keyword required"),
        ([1, 2], "Request body must be a JSON object."),
    ],
)
def test_dify_errors_use_envelope_and_status(body: Any, message: str) -> None:
    response = client.post("/api/dify", json=body)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": {"message": message}}


def test_stream_relays_demo_answer() -> None:
    request = json.dumps({"task": "businessidea", "persona": PERSONA})

    response = client.get("/api/dify/stream", params={"request": request})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.text.startswith("retry: 100000000")
    frames = _sse_frames(response.text)
    assert frames[-1] == {"event": "message_end"}
    answer = "".join(frame["answer"] for frame in frames if frame["event"] == "message")
    assert len(json.loads(answer)["business_ideas"]) == 10


@pytest.mark.parametrize(
    "params",
    [{}, {"request": "{not json"}, {"request": json.dumps({"task": "pitchdeck"})}],
)
def test_stream_reports_bad_requests_as_error_frame(params: Dict[str, str]) -> None:
    response = client.get("/api/dify/stream", params=params)

    assert response.status_code == 200
    frames = _sse_frames(response.text)
    assert len(frames) == 1
    assert frames[0]["event"] == "error"


def test_persona_stream_emits_each_persona_then_end() -> None:
    response = client.post("/api/dify/persona-stream", json={"keyword": "health"})

    assert response.status_code == 200
    frames = _sse_frames(response.text)
    assert [frame["type"] for frame in frames] == ["persona"] * 10 + ["end"]
    assert [frame["data"]["id"] for frame in frames[:-1]] == list(range(1, 11))


def test_persona_stream_validation_error_frame() -> None:
    response = client.post("/api/dify/persona-stream", json={"keyword": ""})

    assert response.status_code == 200
    assert _sse_frames(response.text) == [{"type": "error", "message": "persona: keyword required"}]


@pytest.mark.parametrize("amount", [0, -5, "500", None, True])
def test_donation_rejects_invalid_amount(amount: Any) -> None:
    response = client.post("/api/stripe", json={"amount": amount})

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid amount"}


def test_donation_rejects_publishable_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STRIPE_SECRET_KEY", "pk_test_123")

    response = client.post("/api/stripe", json={"amount": 500})

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to create checkout session"}


def test_donation_creates_checkout_session(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    calls: List[Dict[str, Any]] = []

    def fake_create(**kwargs: Any) -> SimpleNamespace:
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    response = client.post("/api/stripe", json={"amount": 1000}, headers={"Origin": "https://canvas.example.com"})

    assert response.status_code == 200
    assert response.json() == {"sessionId": "cs_test_1"}
    created = calls[0]
    assert created["mode"] == "payment"
    assert created["submit_type"] == "donate"
    assert created["line_items"][0]["price_data"]["unit_amount"] == 1000
    assert created["success_url"] == "https://canvas.example.com/?donation=success"
    assert created["cancel_url"] == "https://canvas.example.com/?donation=cancel"
