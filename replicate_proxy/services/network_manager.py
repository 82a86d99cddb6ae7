"""Shared HTTP client management for backend calls."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

import httpx

from ..helpers import info_log, error_log
from ..config import settings


_CONNECTION_POOL_CONFIG: Dict[str, object] = {
    "limits": httpx.Limits(
        max_keepalive_connections=20,
        max_connections=100,
        keepalive_expiry=30,
    ),
    "timeout": httpx.Timeout(
        connect=10.0,
        # Prefer: wait holds the connection open for up to a minute
        read=90.0,
        write=30.0,
        pool=10.0,
    ),
    "http2": True,
}


class NetworkManager:
    """Own the process-wide httpx client used to talk to Replicate."""

    def __init__(self, proxy_url: Optional[str] = None) -> None:
        self._proxy_url = proxy_url
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def get_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                if self._proxy_url:
                    info_log("[CLIENT] Creating backend client", proxy=self._proxy_url)
                    self._client = httpx.AsyncClient(proxy=self._proxy_url, **_CONNECTION_POOL_CONFIG)
                else:
                    info_log("[CLIENT] Creating backend client (direct)")
                    self._client = httpx.AsyncClient(**_CONNECTION_POOL_CONFIG)
            return self._client

    async def cleanup(self) -> None:
        async with self._client_lock:
            client = self._client
            self._client = None

        if client:
            try:
                await client.aclose()
                info_log("[CLIENT] Backend client closed")
            except Exception as exc:  # pragma: no cover
                error_log("[CLIENT] Failed to close backend client", error=str(exc))


network_manager = NetworkManager(settings.HTTPS_PROXY)
