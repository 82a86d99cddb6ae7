"""Service layer orchestrating OpenAI-compatible completions over Replicate."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict

from fastuuid import uuid4

from ..config import get_model_mapping, get_settings
from ..errors import (
    BackendError,
    InternalError,
    InvalidRequestError,
    ProxyError,
    UpstreamError,
)
from ..helpers import (
    bind_request_context,
    debug_log,
    error_log,
    RequestStage,
    prediction_timer,
    request_stage_log,
    reset_request_context,
)
from ..schemas import ChatCompletionRequest, CompletionRequest
from .backend_client import BackendClient, create_backend_client
from .model_resolver import ModelResolver
from .prompt_compiler import compile_prompt
from .response_formatter import ResponseFormatter, ResponseShape, response_formatter


_CONTEXT_KEYS = ("request_id", "model", "backend_model", "mode")


@dataclass(frozen=True)
class ServiceResult:
    """What the HTTP layer needs to serialise a response"""

    status_code: int
    body: Dict[str, Any]
    stream: bool = False


class ChatCompletionService:
    """Encapsulate the completion workflow independent of the FastAPI layer."""

    def __init__(
        self,
        resolver: ModelResolver,
        backend: BackendClient,
        formatter: ResponseFormatter = response_formatter,
    ) -> None:
        self.resolver = resolver
        self.backend = backend
        self.formatter = formatter

    async def create_chat_completion(self, request: ChatCompletionRequest) -> ServiceResult:
        request_stage_log(
            RequestStage.RECEIVED,
            endpoint="chat.completions",
            model=request.model,
            stream=request.stream,
            message_count=len(request.messages or []),
        )
        try:
            if not request.model or not request.messages:
                raise InvalidRequestError("Missing required fields: model and messages are required")
            request_stage_log(RequestStage.VALIDATED)

            prompt = compile_prompt(request.messages)
            request_stage_log(RequestStage.COMPILED, prompt_chars=len(prompt))
            shape = ResponseShape.CHAT_COMPLETION_CHUNK if request.stream else ResponseShape.CHAT_COMPLETION
            return await self._execute(request.model, prompt, request.max_tokens, request.temperature, shape)
        except Exception as exc:
            return self._error_result(exc)
        finally:
            reset_request_context(*_CONTEXT_KEYS)

    async def create_completion(self, request: CompletionRequest) -> ServiceResult:
        request_stage_log(RequestStage.RECEIVED, endpoint="completions", model=request.model)
        try:
            if not request.model or not request.prompt:
                raise InvalidRequestError("Missing required fields: model and prompt are required")
            request_stage_log(RequestStage.VALIDATED)

            return await self._execute(
                request.model,
                request.prompt,
                request.max_tokens,
                request.temperature,
                ResponseShape.TEXT_COMPLETION,
            )
        except Exception as exc:
            return self._error_result(exc)
        finally:
            reset_request_context(*_CONTEXT_KEYS)

    async def _execute(
        self,
        requested_model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
        shape: ResponseShape,
    ) -> ServiceResult:
        backend_model = self.resolver.resolve(requested_model)
        bind_request_context(
            request_id=uuid4().hex[:12],
            model=requested_model,
            backend_model=backend_model,
            mode="stream" if shape is ResponseShape.CHAT_COMPLETION_CHUNK else "non_stream",
        )
        request_stage_log(RequestStage.RESOLVED, backend_model=backend_model)

        payload = {
            "prompt": prompt,
            "max_new_tokens": max_tokens,
            "temperature": temperature,
        }
        debug_log("Replicate input", payload=payload)

        with prediction_timer(backend_model):
            output = await self.backend.run_to_completion(backend_model, payload)
        request_stage_log(RequestStage.INVOKED, output_type=type(output).__name__)

        body = self.formatter.format(output, requested_model, shape)
        request_stage_log(RequestStage.FORMATTED, object=body["object"])
        return ServiceResult(
            status_code=200,
            body=body,
            stream=shape is ResponseShape.CHAT_COMPLETION_CHUNK,
        )

    def _error_result(self, exc: Exception) -> ServiceResult:
        if isinstance(exc, ProxyError):
            error = exc
        elif isinstance(exc, BackendError):
            error_log("Error calling Replicate", error=str(exc), error_class=type(exc).__name__)
            error = UpstreamError()
        else:
            error_log("Unexpected error while handling request", error=str(exc), exc_info=True)
            error = InternalError()

        request_stage_log(RequestStage.ERRORED, status_code=error.status_code, code=error.code)
        return ServiceResult(status_code=error.status_code, body=error.to_envelope())


@lru_cache(maxsize=1)
def get_chat_service() -> ChatCompletionService:
    """Process-wide service built from the startup configuration"""
    resolver = ModelResolver(get_model_mapping())
    return ChatCompletionService(resolver, create_backend_client(get_settings(), resolver))
