from __future__ import annotations

import json
from pathlib import Path

from replicate_proxy.config import (
    DEFAULT_MODEL_VERSIONS,
    ModelMapping,
    load_model_mapping,
)
from replicate_proxy.services.model_resolver import ModelResolver


def _resolver() -> ModelResolver:
    return ModelResolver(
        ModelMapping.from_dict(
            {
                "mappings": {"gpt-4": "meta/llama-2-70b-chat", "gpt-3.5-turbo": "meta/llama-2-7b-chat"},
                "default_model": "meta/llama-2-7b-chat",
            }
        )
    )


def test_resolve_returns_mapped_backend_model() -> None:
    resolver = _resolver()

    assert resolver.resolve("gpt-4") == "meta/llama-2-70b-chat"
    assert resolver.resolve("gpt-3.5-turbo") == "meta/llama-2-7b-chat"


def test_resolve_falls_back_to_default_for_unknown_or_empty_names() -> None:
    resolver = _resolver()

    for requested in ("claude-3", "", None, "GPT-4"):
        assert resolver.resolve(requested) == "meta/llama-2-7b-chat"


def test_resolve_is_repeatable() -> None:
    resolver = _resolver()

    assert resolver.resolve("gpt-4") == resolver.resolve("gpt-4")
    assert resolver.resolve("unknown") == resolver.resolve("unknown")


def test_version_for_falls_back_to_default_model_version() -> None:
    resolver = _resolver()

    assert resolver.version_for("meta/llama-2-70b-chat") == DEFAULT_MODEL_VERSIONS["meta/llama-2-70b-chat"]
    assert resolver.version_for("someone/other-model") == DEFAULT_MODEL_VERSIONS["meta/llama-2-7b-chat"]


def test_builtin_mapping_is_used_without_config_data() -> None:
    mapping = ModelMapping.from_dict({})

    assert mapping.default_model == "meta/llama-2-7b-chat"
    assert mapping.mappings["gpt-4-32k"] == "meta/llama-2-70b-chat"
    assert "text-ada-001" in ModelResolver(mapping).available_models()


def test_load_model_mapping_reads_json_file(tmp_path: Path) -> None:
    config_file = tmp_path / "model_config.json"
    config_file.write_text(
        json.dumps(
            {
                "mappings": {"my-model": "acme/custom"},
                "default_model": "acme/custom",
                "model_versions": {"acme/custom": "abc123"},
                "model_configs": {"acme/custom": {"max_tokens": 1024, "supports_streaming": False}},
            }
        )
    )

    mapping = load_model_mapping(str(config_file))
    resolver = ModelResolver(mapping)

    assert resolver.resolve("my-model") == "acme/custom"
    assert resolver.resolve("gpt-4") == "acme/custom"
    assert resolver.version_for("acme/other") == "abc123"
    assert mapping.model_configs["acme/custom"]["max_tokens"] == 1024


def test_load_model_mapping_missing_file_uses_builtin_table(tmp_path: Path) -> None:
    mapping = load_model_mapping(str(tmp_path / "absent.json"))

    assert mapping.mappings["gpt-4"] == "meta/llama-2-70b-chat"
