#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Response formatter - wraps backend output in OpenAI response envelopes

Streaming requests are answered with one complete chunk followed by
``[DONE]``; the backend output is only available once the prediction ends.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union

import orjson
from fastuuid import uuid4

from .backend_client import Fragments, Single


class ResponseShape(str, Enum):
    CHAT_COMPLETION = "chat.completion"
    CHAT_COMPLETION_CHUNK = "chat.completion.chunk"
    TEXT_COMPLETION = "text_completion"


def normalize_output(output: Union[Single, Fragments, str, Sequence[str], None]) -> str:
    """Concatenate fragments in order and trim surrounding whitespace"""
    if isinstance(output, (Single, Fragments)):
        text = output.text
    elif output is None:
        text = ""
    elif isinstance(output, str):
        text = output
    else:
        text = "".join(output)
    return text.strip()


def _response_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:24]}"


def _usage(usage: Optional[Dict[str, int]]) -> Dict[str, int]:
    usage = usage or {}
    return {
        "prompt_tokens": usage.get("prompt_tokens", 0),
        "completion_tokens": usage.get("completion_tokens", 0),
        "total_tokens": usage.get("total_tokens", 0),
    }


class ResponseFormatter:
    """Build chat.completion / chat.completion.chunk / text_completion bodies"""

    def build_chat_completion(self, content: str, model: str, usage: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        return {
            "id": _response_id("chatcmpl"),
            "object": ResponseShape.CHAT_COMPLETION.value,
            "created": int(time.time()),
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "message": {
                        "role": "assistant",
                        "content": content,
                    },
                    "finish_reason": "stop",
                }
            ],
            "usage": _usage(usage),
        }

    def build_chat_chunk(self, content: str, model: str) -> Dict[str, Any]:
        return {
            "id": _response_id("chatcmpl"),
            "object": ResponseShape.CHAT_COMPLETION_CHUNK.value,
            "created": int(time.time()),
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "delta": {
                        "role": "assistant",
                        "content": content,
                    },
                    "finish_reason": "stop",
                }
            ],
        }

    def build_text_completion(self, text: str, model: str, usage: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        return {
            "id": _response_id("cmpl"),
            "object": ResponseShape.TEXT_COMPLETION.value,
            "created": int(time.time()),
            "model": model,
            "choices": [
                {
                    "text": text,
                    "index": 0,
                    "finish_reason": "stop",
                }
            ],
            "usage": _usage(usage),
        }

    def format(
        self,
        output: Union[Single, Fragments, str, Sequence[str], None],
        model: str,
        shape: ResponseShape,
        usage: Optional[Dict[str, int]] = None,
    ) -> Dict[str, Any]:
        """
        Wrap backend output for the client

        Args:
            output: backend output, single text or ordered fragments
            model: the model name the client asked for (echoed back as-is)
            shape: which envelope to build
            usage: token counts; all zero when omitted

        Returns:
            dict: response body
        """
        content = normalize_output(output)
        if shape is ResponseShape.CHAT_COMPLETION_CHUNK:
            return self.build_chat_chunk(content, model)
        if shape is ResponseShape.TEXT_COMPLETION:
            return self.build_text_completion(content, model, usage)
        return self.build_chat_completion(content, model, usage)

    def encode_event_stream(self, *chunks: Dict[str, Any]) -> str:
        """Frame chunks as SSE ``data:`` events terminated by ``[DONE]``"""
        frames = [f"data: {orjson.dumps(chunk).decode('utf-8')}\n\n" for chunk in chunks]
        frames.append("data: [DONE]\n\n")
        return "".join(frames)


response_formatter = ResponseFormatter()
