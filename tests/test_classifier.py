"""
Tests for `services/classifier.py` and `services/inference_client.py`.

Covers:
- A well-formed model answer is used (decision_source "model").
- Fenced / chatty JSON is extracted.
- Malformed answers, transport errors, timeouts and a missing key fall back
  to the keyword heuristic.
- Unknown models are rejected before any remote call.
"""

from __future__ import annotations

import json
import threading
from typing import Callable, List

import httpx
import pytest

from domain.classification import DecisionSource, RecommendedAction
from domain.errors import UpstreamUnavailable, ValidationError
from config.ai_models import AI_MODELS
from services.classifier import Classifier, extract_json_object, heuristic_decision
from services.inference_client import InferenceClient

DEFAULT_MODEL = "anthropic/claude-3.5-sonnet"


def _reply(content: str) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return handler


def _classifier(handler: Callable[[httpx.Request], httpx.Response], api_key: str = "test-key",
                timeout: float = 2.0) -> Classifier:
    client = InferenceClient(
        api_key,
        "https://inference.test/api/v1",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    return Classifier(client, default_model=DEFAULT_MODEL, timeout=timeout, deadline=timeout * 2)


def test_model_decision_is_used() -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        content = json.dumps({
            "isGoldRelated": True,
            "confidence": 0.92,
            "reasoning": "Asks about gold prices",
            "suggestedAction": "PURCHASE_GOLD",
        })
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    decision = _classifier(handler).classify("What is the gold price today?")

    assert decision.decision_source is DecisionSource.MODEL
    assert decision.is_in_domain is True
    assert decision.confidence == pytest.approx(0.92)
    assert decision.model == DEFAULT_MODEL
    assert requests[0].url.path == "/api/v1/chat/completions"
    assert requests[0].headers["Authorization"] == "Bearer test-key"
    assert json.loads(requests[0].content)["model"] == DEFAULT_MODEL


def test_fenced_json_is_extracted() -> None:
    content = 'Sure!\n```json\n{"isGoldRelated": false, "confidence": 0.8, "reasoning": "weather"}\n```'

    decision = _classifier(_reply(content)).classify("Will it rain tomorrow?")

    assert decision.decision_source is DecisionSource.MODEL
    assert decision.is_in_domain is False
    assert decision.recommended_action is RecommendedAction.REDIRECT_TO_OTHER_API


def test_explicit_model_by_key() -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return _reply('{"isGoldRelated": true, "confidence": 0.7}')(request)

    decision = _classifier(handler).classify("gold bars?", model="gpt4o")

    assert decision.model == AI_MODELS["gpt4o"].model_id
    assert json.loads(requests[0].content)["model"] == "openai/gpt-4o"


@pytest.mark.parametrize(
    "content",
    [
        "I think this is about gold.",
        '{"isGoldRelated": "yes", "confidence": 0.9}',
        '{"isGoldRelated": true, "confidence": 1.5}',
        '{"confidence": 0.9}',
    ],
)
def test_malformed_answer_falls_back_to_heuristic(content: str) -> None:
    decision = _classifier(_reply(content)).classify("Should I buy gold coins?")

    assert decision.decision_source is DecisionSource.HEURISTIC
    assert decision.is_in_domain is True
    assert decision.confidence == pytest.approx(0.7)


def test_transport_error_falls_back_to_heuristic() -> None:
    decision = _classifier(lambda request: httpx.Response(503)).classify("What is the capital of France?")

    assert decision.decision_source is DecisionSource.HEURISTIC
    assert decision.is_in_domain is False
    assert decision.confidence == pytest.approx(0.6)


def test_slow_model_falls_back_to_heuristic() -> None:
    release = threading.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        release.wait(2.0)
        return _reply('{"isGoldRelated": false, "confidence": 0.9}')(request)

    decision = _classifier(handler, timeout=0.05).classify("Is bullion a good hedge?")
    release.set()

    assert decision.decision_source is DecisionSource.HEURISTIC
    assert decision.is_in_domain is True


def test_missing_api_key_uses_heuristic_without_calling_out() -> None:
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    decision = _classifier(handler, api_key="").classify("Tell me about the stock market")

    assert decision.decision_source is DecisionSource.HEURISTIC
    assert decision.is_in_domain is False
    assert calls == []


def test_unknown_model_rejected() -> None:
    with pytest.raises(ValidationError):
        _classifier(_reply("{}")).classify("gold?", model="no-such-model")


def test_inference_client_requires_key() -> None:
    client = InferenceClient("", http_client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200))))

    with pytest.raises(UpstreamUnavailable):
        client.chat(AI_MODELS["gpt4o"], [{"role": "user", "content": "hi"}], timeout=1.0)


def test_heuristic_is_total() -> None:
    assert heuristic_decision("").is_in_domain is False
    assert heuristic_decision("What does one tola of 22 karat cost?").is_in_domain is True


def test_extract_json_object_without_json_raises() -> None:
    with pytest.raises(ValueError):
        extract_json_object("no braces here")


def test_inference_client_closes_its_http_client() -> None:
    http_client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))

    with InferenceClient("key", http_client=http_client) as client:
        assert client.configured

    assert http_client.is_closed
