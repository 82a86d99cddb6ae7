"""
OpenAI API endpoints
"""

import time

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import InternalError, InvalidRequestError, NotFoundError, ProxyError
from .helpers import debug_log, error_log, get_logger
from .schemas import ChatCompletionRequest, CompletionRequest, Model, ModelsResponse
from .services.openai_service import ChatCompletionService, ServiceResult, get_chat_service
from .services.response_formatter import response_formatter

router = APIRouter(prefix="/v1")

logger = get_logger("openai_api")


def to_http_response(result: ServiceResult):
    """Serialise a service result as JSON or as an event stream"""
    if not result.stream:
        return JSONResponse(status_code=result.status_code, content=result.body)

    async def event_stream():
        yield response_formatter.encode_event_stream(result.body)

    return StreamingResponse(
        event_stream(),
        status_code=result.status_code,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


def error_response(error: ProxyError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_envelope())


@router.get("/models")
async def list_models(service: ChatCompletionService = Depends(get_chat_service)):
    """List the OpenAI model names this proxy accepts"""
    current_time = int(time.time())
    return ModelsResponse(
        data=[
            Model(id=model_id, created=current_time, owned_by="replicate-proxy")
            for model_id in service.resolver.available_models()
        ]
    )


@router.post("/chat/completions")
async def chat_completions(
    request: ChatCompletionRequest,
    service: ChatCompletionService = Depends(get_chat_service),
):
    """Handle chat completions; stream=true is answered as a single SSE chunk"""
    return to_http_response(await service.create_chat_completion(request))


@router.post("/completions")
async def completions(
    request: CompletionRequest,
    service: ChatCompletionService = Depends(get_chat_service),
):
    """Handle legacy text completions"""
    return to_http_response(await service.create_completion(request))


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    return error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Routing misses, including wrong methods on known paths
    debug_log("Unmatched route", path=request.url.path, method=request.method, status_code=exc.status_code)
    return error_response(NotFoundError())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request body", path=request.url.path, errors=len(exc.errors()))
    return error_response(InvalidRequestError("Invalid request body"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error_log("Unhandled error", path=request.url.path, error=str(exc))
    return error_response(InternalError())


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
