from __future__ import annotations

import asyncio

import httpx
from structlog.testing import capture_logs

from client_test_utils import FakeBackend, build_service
from replicate_proxy.config import ModelMapping
from replicate_proxy.errors import BackendPredictionFailed, BackendRequestFailed
from replicate_proxy.schemas import ChatCompletionRequest, CompletionRequest
from replicate_proxy.services.backend_client import Fragments, PollingBackendClient
from replicate_proxy.services.model_resolver import ModelResolver
from replicate_proxy.services.openai_service import ChatCompletionService


def _chat(**overrides) -> ChatCompletionRequest:
    data = {"model": "gpt-4", "messages": [{"role": "user", "content": "hi"}]}
    data.update(overrides)
    return ChatCompletionRequest(**data)


def test_chat_completion_resolves_compiles_and_echoes_requested_model() -> None:
    backend = FakeBackend(output=Fragments(("  Hello", " world  ")))
    service = build_service(backend)

    result = asyncio.run(service.create_chat_completion(_chat(max_tokens=64, temperature=0.2)))

    assert result.status_code == 200
    assert result.stream is False
    assert result.body["model"] == "gpt-4"
    assert result.body["choices"][0]["message"]["content"] == "Hello world"
    assert backend.calls == [
        (
            "meta/llama-2-70b-chat",
            {"prompt": "Human: hi\n\nAssistant: ", "max_new_tokens": 64, "temperature": 0.2},
        )
    ]


def test_chat_defaults_for_max_tokens_and_temperature() -> None:
    backend = FakeBackend(output="ok")
    service = build_service(backend)

    asyncio.run(service.create_chat_completion(_chat()))

    _, payload = backend.calls[0]
    assert payload["max_new_tokens"] == 500
    assert payload["temperature"] == 0.7


def test_unknown_model_is_served_by_default_model_but_echoed_verbatim() -> None:
    backend = FakeBackend(output="ok")
    service = build_service(backend)

    result = asyncio.run(service.create_chat_completion(_chat(model="my-custom-model")))

    assert backend.calls[0][0] == "meta/llama-2-7b-chat"
    assert result.body["model"] == "my-custom-model"


def test_stream_flag_produces_chunk_shape() -> None:
    service = build_service(FakeBackend(output="streamed"))

    result = asyncio.run(service.create_chat_completion(_chat(stream=True)))

    assert result.status_code == 200
    assert result.stream is True
    assert result.body["object"] == "chat.completion.chunk"
    assert result.body["choices"][0]["delta"]["content"] == "streamed"


def test_missing_chat_fields_are_rejected_before_backend_call() -> None:
    backend = FakeBackend(output="never")
    service = build_service(backend)

    for request in (
        ChatCompletionRequest(messages=[{"role": "user", "content": "hi"}]),
        ChatCompletionRequest(model="gpt-4"),
        ChatCompletionRequest(model="gpt-4", messages=[]),
        ChatCompletionRequest(model="", messages=[{"role": "user", "content": "hi"}]),
    ):
        result = asyncio.run(service.create_chat_completion(request))
        assert result.status_code == 400
        assert result.body["error"]["type"] == "invalid_request_error"
        assert result.body["error"]["code"] == "missing_required_fields"

    assert backend.calls == []


def test_legacy_completion_uses_prompt_verbatim() -> None:
    backend = FakeBackend(output=" answer ")
    service = build_service(backend)

    result = asyncio.run(
        service.create_completion(CompletionRequest(model="text-davinci-003", prompt="Say hi", max_tokens=10))
    )

    assert result.status_code == 200
    assert result.body["object"] == "text_completion"
    assert result.body["model"] == "text-davinci-003"
    assert result.body["choices"][0]["text"] == "answer"
    assert backend.calls[0][1]["prompt"] == "Say hi"


def test_missing_legacy_prompt_is_rejected() -> None:
    backend = FakeBackend(output="never")
    service = build_service(backend)

    result = asyncio.run(service.create_completion(CompletionRequest(model="text-davinci-003")))

    assert result.status_code == 400
    assert backend.calls == []


def test_backend_errors_become_upstream_error() -> None:
    for error in (BackendPredictionFailed("boom", prediction_id="p1"), BackendRequestFailed("x", status_code=500)):
        service = build_service(FakeBackend(error=error))

        result = asyncio.run(service.create_chat_completion(_chat()))

        assert result.status_code == 502
        assert result.body["error"]["type"] == "upstream_error"
        assert result.body["error"]["code"] == "replicate_error"
        assert "boom" not in result.body["error"]["message"]


def test_unexpected_errors_become_internal_error() -> None:
    service = build_service(FakeBackend(error=RuntimeError("kaboom")))

    result = asyncio.run(service.create_completion(CompletionRequest(model="gpt-4", prompt="p")))

    assert result.status_code == 500
    assert result.body == {
        "error": {"message": "Internal server error", "type": "server_error", "code": "internal_error"}
    }


def test_failed_prediction_through_polling_client_surfaces_502() -> None:
    payloads = iter(
        [
            {"id": "p9", "status": "starting"},
            {"id": "p9", "status": "failed", "error": "boom"},
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=next(payloads))

    async def no_wait(seconds: float) -> None:
        return None

    resolver = ModelResolver(ModelMapping.from_dict({}))
    backend = PollingBackendClient(
        resolver,
        "r8_test_token",
        api_base="https://replicate.test/v1",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=no_wait,
    )
    service = ChatCompletionService(resolver, backend)

    result = asyncio.run(service.create_chat_completion(_chat()))

    assert result.status_code == 502
    assert result.body["error"]["code"] == "replicate_error"


def test_backend_failure_detail_is_logged_but_not_returned() -> None:
    service = build_service(FakeBackend(error=BackendPredictionFailed("boom", prediction_id="p1")))

    with capture_logs() as logs:
        result = asyncio.run(service.create_chat_completion(_chat()))

    assert result.status_code == 502
    assert "boom" not in str(result.body)
    failures = [entry for entry in logs if entry["event"] == "Error calling Replicate"]
    assert len(failures) == 1
    assert failures[0]["log_level"] == "error"
    assert "boom" in failures[0]["error"]
    assert failures[0]["error_class"] == "BackendPredictionFailed"


def test_non_object_prediction_payload_surfaces_502() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "a", "prediction"])

    resolver = ModelResolver(ModelMapping.from_dict({}))
    backend = PollingBackendClient(
        resolver,
        "r8_test_token",
        api_base="https://replicate.test/v1",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    service = ChatCompletionService(resolver, backend)

    result = asyncio.run(service.create_chat_completion(_chat()))

    assert result.status_code == 502
    assert result.body["error"]["code"] == "replicate_error"


def test_null_sampling_fields_are_treated_as_omitted() -> None:
    request = _chat(max_tokens=None, temperature=None, stream=None)

    assert request.max_tokens == 500
    assert request.temperature == 0.7
    assert request.stream is False

    completion = CompletionRequest(model="text-davinci-003", prompt="p", max_tokens=None)
    assert completion.max_tokens == 500
