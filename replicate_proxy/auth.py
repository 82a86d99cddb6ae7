"""
Bearer token check for the /v1 endpoints
"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .errors import AuthenticationError, ConfigurationError, ProxyError
from .helpers import error_log

PROTECTED_PREFIX = "/v1"


def check_api_key(authorization: Optional[str], settings: Settings) -> None:
    """Reject the request unless it carries ``Bearer <PROXY_API_KEY>``"""
    expected_api_key = settings.PROXY_API_KEY
    if not expected_api_key:
        error_log("[AUTH] PROXY_API_KEY is not set, refusing request")
        raise ConfigurationError()

    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid authorization header")

    api_key = authorization[7:]
    if api_key != expected_api_key:
        raise AuthenticationError("Invalid API key")


def _is_protected(path: str) -> bool:
    return path == PROTECTED_PREFIX or path.startswith(PROTECTED_PREFIX + "/")


async def api_key_middleware(request: Request, call_next):
    """
    Authenticate every /v1 request before routing or body parsing, so that
    unknown paths and malformed bodies are still answered with 401 first.
    """
    if request.method == "OPTIONS" or not _is_protected(request.url.path):
        return await call_next(request)

    # Honour dependency overrides so tests can swap the settings provider
    settings_provider = request.app.dependency_overrides.get(get_settings, get_settings)
    try:
        check_api_key(request.headers.get("Authorization"), settings_provider())
    except ProxyError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())
    return await call_next(request)
