"""Map OpenAI model names onto Replicate models and versions."""

from __future__ import annotations

from typing import List, Optional

from ..config import DEFAULT_BACKEND_MODEL, ModelMapping
from ..helpers import info_log, debug_log


class ModelResolver:
    """Resolve inbound model identifiers against a read-only ModelMapping."""

    def __init__(self, mapping: ModelMapping) -> None:
        self._mapping = mapping

    @property
    def default_model(self) -> str:
        return self._mapping.default_model

    def resolve(self, requested_model: Optional[str]) -> str:
        # Unknown names fall back to the default model instead of failing
        backend_model = self._mapping.mappings.get(requested_model or "")
        if backend_model is None:
            info_log(
                "[MODEL] No mapping for requested model, using default",
                requested_model=requested_model,
                backend_model=self._mapping.default_model,
                fallback=True,
            )
            return self._mapping.default_model

        debug_log("[MODEL] Mapped model", requested_model=requested_model, backend_model=backend_model)
        return backend_model

    def version_for(self, backend_model: str) -> str:
        versions = self._mapping.model_versions
        version = versions.get(backend_model)
        if version is None:
            version = versions.get(self._mapping.default_model) or versions[DEFAULT_BACKEND_MODEL]
            debug_log("[MODEL] No version for backend model, using default", backend_model=backend_model)
        return version

    def available_models(self) -> List[str]:
        return list(self._mapping.mappings.keys())
