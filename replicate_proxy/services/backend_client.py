#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Replicate backend clients

Two strategies share one contract, ``run_to_completion(model, input)``:

- ``PollingBackendClient`` creates a prediction by version and polls it at a
  fixed interval until it reaches a terminal state.
- ``WaitingBackendClient`` creates the prediction on the model endpoint with
  ``Prefer: wait`` so the backend holds the call open until it finishes.

Both resolve the backend's ``str | list[str]`` output once, into
``Single`` / ``Fragments``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import httpx

from ..config import Settings
from ..errors import BackendPredictionFailed, BackendRequestFailed, BackendTimeout
from ..helpers import debug_log, error_log, info_log
from .model_resolver import ModelResolver
from .network_manager import network_manager


ACTIVE_STATUSES = frozenset({"starting", "processing"})
FAILED_STATUSES = frozenset({"failed", "canceled"})
SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class Single:
    text: str


@dataclass(frozen=True)
class Fragments:
    parts: Tuple[str, ...]

    @property
    def text(self) -> str:
        return "".join(self.parts)


PredictionOutput = Union[Single, Fragments]


def to_prediction_output(raw: Any) -> PredictionOutput:
    """Normalise raw backend output (text, list of text chunks or null)."""
    if raw is None:
        return Single("")
    if isinstance(raw, (list, tuple)):
        return Fragments(tuple("" if part is None else str(part) for part in raw))
    return Single(str(raw))


@dataclass(frozen=True)
class PredictionJob:
    """Snapshot of a Replicate prediction as last fetched"""

    id: str
    status: str
    output: Any = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PredictionJob":
        error = payload.get("error")
        return cls(
            id=str(payload.get("id") or ""),
            status=str(payload.get("status") or ""),
            output=payload.get("output"),
            error=None if error is None else str(error),
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class BackendClient(ABC):
    """Run a Replicate prediction to a terminal state and return its output."""

    def __init__(
        self,
        api_token: str,
        api_base: str = "https://api.replicate.com/v1",
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        poll_interval: float = 1.0,
        max_attempts: int = 0,
        deadline: float = 0,
    ) -> None:
        self.api_token = api_token
        self.api_base = api_base.rstrip("/")
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.deadline = deadline
        self._http_client = http_client
        self._sleep = sleep

    async def run_to_completion(self, model: str, payload: Dict[str, Any]) -> PredictionOutput:
        if not self.api_token:
            raise BackendRequestFailed("REPLICATE_API_TOKEN is not configured")

        client = self._http_client or await network_manager.get_client()
        if not self.deadline:
            return await self._run(client, model, payload)

        try:
            # wait_for cancels the poll loop when the deadline passes
            return await asyncio.wait_for(self._run(client, model, payload), timeout=self.deadline)
        except asyncio.TimeoutError as exc:
            error_log("[REPLICATE] Prediction deadline exceeded", model=model, deadline=self.deadline)
            raise BackendTimeout(f"Replicate prediction did not finish within {self.deadline}s") from exc

    async def _run(self, client: httpx.AsyncClient, model: str, payload: Dict[str, Any]) -> PredictionOutput:
        job = await self._start(client, model, payload)
        info_log("[REPLICATE] Prediction created", prediction_id=job.id, status=job.status, model=model)
        job = await self._wait_for_terminal(client, job)
        return self._finish(job)

    @abstractmethod
    async def _start(self, client: httpx.AsyncClient, model: str, payload: Dict[str, Any]) -> PredictionJob:
        """Create the prediction and return its first snapshot."""

    async def _wait_for_terminal(self, client: httpx.AsyncClient, job: PredictionJob) -> PredictionJob:
        attempts = 0
        while job.is_active:
            if self.max_attempts and attempts >= self.max_attempts:
                error_log("[REPLICATE] Poll attempts exhausted", prediction_id=job.id, attempts=attempts)
                raise BackendTimeout(
                    f"Replicate prediction still {job.status} after {attempts} polls",
                    prediction_id=job.id,
                )
            await self._sleep(self.poll_interval)
            attempts += 1
            job = PredictionJob.from_payload(
                await self._request(client, "GET", f"{self.api_base}/predictions/{job.id}")
            )
            debug_log("[REPLICATE] Polled prediction", prediction_id=job.id, status=job.status, attempt=attempts)
        return job

    def _finish(self, job: PredictionJob) -> PredictionOutput:
        if job.status == SUCCEEDED:
            return to_prediction_output(job.output)
        if job.status in FAILED_STATUSES:
            error_log("[REPLICATE] Prediction failed", prediction_id=job.id, status=job.status, error=job.error)
            raise BackendPredictionFailed(job.error, prediction_id=job.id)
        raise BackendRequestFailed(f"Unexpected prediction status: {job.status!r}")

    def _headers(self, **extra: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            **extra,
        }

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        try:
            response = await client.request(method, url, headers=headers or self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            error_log("[REPLICATE] Request failed", method=method, url=url, error=str(exc))
            raise BackendRequestFailed(f"Replicate API request failed: {exc}") from exc

        if not response.is_success:
            error_log(
                "[REPLICATE] API returned an error",
                method=method,
                url=url,
                status_code=response.status_code,
                error_detail=response.text[:200],
            )
            raise BackendRequestFailed(
                f"Replicate API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise BackendRequestFailed("Replicate API returned invalid JSON") from exc

        if not isinstance(body, dict):
            error_log("[REPLICATE] Prediction payload is not an object", method=method, url=url)
            raise BackendRequestFailed("Replicate API returned an unexpected payload")
        return body


class PollingBackendClient(BackendClient):
    """Submit a prediction by version, then poll until it finishes."""

    def __init__(self, resolver: ModelResolver, api_token: str, **kwargs: Any) -> None:
        super().__init__(api_token, **kwargs)
        self.resolver = resolver

    async def _start(self, client: httpx.AsyncClient, model: str, payload: Dict[str, Any]) -> PredictionJob:
        version = self.resolver.version_for(model)
        body = await self._request(
            client,
            "POST",
            f"{self.api_base}/predictions",
            json={"version": version, "input": payload},
        )
        return PredictionJob.from_payload(body)


class WaitingBackendClient(BackendClient):
    """Create the prediction with ``Prefer: wait`` and let the backend block."""

    wait_seconds = 60

    async def _start(self, client: httpx.AsyncClient, model: str, payload: Dict[str, Any]) -> PredictionJob:
        body = await self._request(
            client,
            "POST",
            f"{self.api_base}/models/{model}/predictions",
            headers=self._headers(Prefer=f"wait={self.wait_seconds}"),
            json={"input": payload},
        )
        job = PredictionJob.from_payload(body)
        if job.is_active:
            # The wait window can close before the model does; finish by polling
            info_log("[REPLICATE] Wait window elapsed, falling back to polling", prediction_id=job.id)
        return job


def create_backend_client(settings: Settings, resolver: ModelResolver) -> BackendClient:
    """Build the backend client selected by BACKEND_STRATEGY."""
    options = {
        "api_base": settings.REPLICATE_API_BASE,
        "poll_interval": settings.POLL_INTERVAL,
        "max_attempts": settings.POLL_MAX_ATTEMPTS,
        "deadline": settings.POLL_DEADLINE,
    }
    if settings.BACKEND_STRATEGY == "wait":
        return WaitingBackendClient(settings.REPLICATE_API_TOKEN, **options)
    return PollingBackendClient(resolver, settings.REPLICATE_API_TOKEN, **options)
