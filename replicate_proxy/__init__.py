"""
replicate_proxy package - OpenAI-compatible proxy in front of Replicate
"""

from .config import settings, get_settings, get_model_mapping, ModelMapping
from .helpers import debug_log, get_logger, configure_structlog
from .schemas import ChatCompletionRequest, CompletionRequest, ModelsResponse, Model, Message, ContentPart

__all__ = [
    "settings",
    "get_settings",
    "get_model_mapping",
    "ModelMapping",
    "debug_log",
    "get_logger",
    "configure_structlog",
    "ChatCompletionRequest",
    "CompletionRequest",
    "ModelsResponse",
    "Model",
    "Message",
    "ContentPart",
]
