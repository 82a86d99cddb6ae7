"""
Application data models
"""

from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator


class ContentPart(BaseModel):
    """Content part model for OpenAI's new content format"""
    type: str
    text: Optional[str] = None


class Message(BaseModel):
    """Chat message model"""
    model_config = ConfigDict(extra="allow")

    role: str
    content: Optional[Union[str, List[ContentPart]]] = None

    @property
    def text(self) -> str:
        """Message content as plain text; non-text parts are skipped"""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text or "" for part in self.content if part.type == "text")


class SamplingParams(BaseModel):
    """Generation knobs shared by chat and legacy completions"""
    model_config = ConfigDict(extra="allow")

    max_tokens: int = 500
    temperature: float = 0.7

    @field_validator("max_tokens", "temperature", "stream", mode="before", check_fields=False)
    @classmethod
    def default_when_null(cls, value, info: ValidationInfo):
        # OpenAI clients send null for optional fields; treat it as omitted
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


# Required fields stay optional here so that missing ones produce the
# proxy's own 400 envelope instead of a framework validation error.
class ChatCompletionRequest(SamplingParams):
    """OpenAI-compatible chat completion request"""
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: Optional[List[Message]] = None
    stream: bool = False


class CompletionRequest(SamplingParams):
    """OpenAI-compatible legacy text completion request"""
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    prompt: Optional[str] = None


class Model(BaseModel):
    """Model information for listing"""
    id: str
    object: str = "model"
    created: int
    owned_by: str


class ModelsResponse(BaseModel):
    """Models list response model"""
    object: str = "list"
    data: List[Model]
