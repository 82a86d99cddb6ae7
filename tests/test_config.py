from __future__ import annotations

import pytest
from pydantic import ValidationError

from replicate_proxy.config import Settings


def test_backend_strategy_from_env_is_case_insensitive(monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_STRATEGY", "WAIT")

    assert Settings().BACKEND_STRATEGY == "wait"


def test_unknown_backend_strategy_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_STRATEGY", "push")

    with pytest.raises(ValidationError):
        Settings()


def test_log_level_is_normalised_with_info_fallback(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    assert Settings().LOG_LEVEL == "debug"

    monkeypatch.setenv("LOG_LEVEL", "verbose")
    assert Settings().LOG_LEVEL == "info"


def test_explicit_values_go_through_the_same_normalisation() -> None:
    settings = Settings(BACKEND_STRATEGY=" Poll ", LOG_LEVEL="False")

    assert settings.BACKEND_STRATEGY == "poll"
    assert settings.LOG_LEVEL == "false"
