"""
FastAPI application configuration module
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Mapping, Optional

import orjson
from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Load .env and let it override the process environment, even when values are empty
load_dotenv(override=True)


logger = logging.getLogger("config")


# Built-in model table used when no model_config.json is present
DEFAULT_MODEL_MAPPINGS: dict[str, str] = {
    "gpt-3.5-turbo": "meta/llama-2-7b-chat",
    "gpt-3.5-turbo-16k": "meta/llama-2-7b-chat",
    "gpt-4": "meta/llama-2-70b-chat",
    "gpt-4-turbo": "meta/llama-2-70b-chat",
    "gpt-4-turbo-preview": "meta/llama-2-70b-chat",
    "gpt-4-32k": "meta/llama-2-70b-chat",
    "text-davinci-003": "meta/llama-2-7b-chat",
    "text-davinci-002": "meta/llama-2-7b-chat",
    "text-curie-001": "meta/llama-2-7b-chat",
    "text-babbage-001": "meta/llama-2-7b-chat",
    "text-ada-001": "meta/llama-2-7b-chat",
}

DEFAULT_BACKEND_MODEL = "meta/llama-2-7b-chat"

DEFAULT_MODEL_VERSIONS: dict[str, str] = {
    "meta/llama-2-7b-chat": "13c3cdee13ee059ab779f0291d29054dab00a47dad8261375654de5540165fb0",
    "meta/llama-2-70b-chat": "02e509c789964a7ea8736978a43525956ef40397be9033abf9fd2badfe68c9e3",
}


BACKEND_STRATEGIES = frozenset({"poll", "wait"})
LOG_LEVELS = frozenset({"false", "info", "debug"})


class Settings(BaseSettings):
    """Application settings"""

    # Shared secret clients must send as "Authorization: Bearer <key>"
    PROXY_API_KEY: str = os.getenv("PROXY_API_KEY", "")

    # Replicate Configuration
    REPLICATE_API_TOKEN: str = os.getenv("REPLICATE_API_TOKEN", "")
    REPLICATE_API_BASE: str = os.getenv("REPLICATE_API_BASE", "https://api.replicate.com/v1")

    # Backend invocation strategy: poll (submit then poll) or wait (Prefer: wait)
    BACKEND_STRATEGY: str = os.getenv("BACKEND_STRATEGY", "poll")

    # Polling Configuration - 0 disables the corresponding limit
    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "1.0"))
    POLL_MAX_ATTEMPTS: int = int(os.getenv("POLL_MAX_ATTEMPTS", "0"))
    POLL_DEADLINE: float = float(os.getenv("POLL_DEADLINE", "0"))

    # Model Configuration
    MODEL_CONFIG_PATH: str = os.getenv("MODEL_CONFIG_PATH", "model_config.json")

    # Server Configuration
    LISTEN_PORT: int = int(os.getenv("LISTEN_PORT", "8080"))

    # Logging Configuration - false, info or debug
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

    # Optional outbound proxy for backend calls
    HTTPS_PROXY: Optional[str] = os.getenv("HTTPS_PROXY") or None

    @field_validator("BACKEND_STRATEGY", mode="before")
    @classmethod
    def check_backend_strategy(cls, value: str) -> str:
        strategy = str(value).strip().lower()
        if strategy not in BACKEND_STRATEGIES:
            raise ValueError(f"BACKEND_STRATEGY must be one of {sorted(BACKEND_STRATEGIES)}, got {value!r}")
        return strategy

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        # Unknown levels fall back to info
        level = str(value).strip().lower()
        return level if level in LOG_LEVELS else "info"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


@dataclass(frozen=True)
class ModelMapping:
    """Read-only model table loaded once per process"""

    mappings: Mapping[str, str]
    default_model: str
    model_versions: Mapping[str, str]
    model_configs: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelMapping":
        mappings = data.get("mappings") or DEFAULT_MODEL_MAPPINGS
        default_model = data.get("default_model") or DEFAULT_BACKEND_MODEL
        versions = {**DEFAULT_MODEL_VERSIONS, **(data.get("model_versions") or {})}
        return cls(
            mappings=MappingProxyType(dict(mappings)),
            default_model=default_model,
            model_versions=MappingProxyType(versions),
            model_configs=MappingProxyType(dict(data.get("model_configs") or {})),
        )


def load_model_mapping(path: Optional[str] = None) -> ModelMapping:
    """
    Load the model mapping from a JSON file, falling back to the built-in table

    Expected shape::

        {"mappings": {...}, "default_model": "...", "model_configs": {...},
         "model_versions": {...}}
    """
    config_file = Path(path or settings.MODEL_CONFIG_PATH)
    if not config_file.exists():
        logger.info("[CONFIG] %s not found, using built-in model mappings", config_file)
        return ModelMapping.from_dict({})

    data = orjson.loads(config_file.read_bytes())
    mapping = ModelMapping.from_dict(data)
    logger.info(
        "[CONFIG] loaded %d model mappings from %s (default=%s)",
        len(mapping.mappings),
        config_file,
        mapping.default_model,
    )
    return mapping


@lru_cache(maxsize=1)
def get_model_mapping() -> ModelMapping:
    return load_model_mapping()
