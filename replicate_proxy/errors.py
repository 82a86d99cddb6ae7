"""
Error taxonomy shared by the service layer and the HTTP layer

Every failure that leaves the proxy is one of these, serialised as
``{"error": {"message", "type", "code"}}``.
"""

from typing import Optional


class ProxyError(Exception):
    """Base class for errors that map onto an OpenAI-style error envelope"""

    status_code: int = 500
    error_type: str = "server_error"
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_envelope(self) -> dict:
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            }
        }


class InvalidRequestError(ProxyError):
    status_code = 400
    error_type = "invalid_request_error"
    code = "missing_required_fields"
    default_message = "Missing required fields"


class ConfigurationError(ProxyError):
    status_code = 500
    error_type = "configuration_error"
    code = "missing_api_key"
    default_message = "Proxy API key not configured"


class AuthenticationError(ProxyError):
    status_code = 401
    error_type = "authentication_error"
    code = "invalid_api_key"
    default_message = "Invalid API key"


class UpstreamError(ProxyError):
    status_code = 502
    error_type = "upstream_error"
    code = "replicate_error"
    default_message = "Upstream model provider error"


class InternalError(ProxyError):
    pass


class NotFoundError(ProxyError):
    status_code = 404
    error_type = "invalid_request_error"
    code = "not_found"
    default_message = "Not found"


class BackendError(Exception):
    """Raised by backend clients; classified as UpstreamError by the service layer"""


class BackendRequestFailed(BackendError):
    """A submit or poll call returned a non-2xx status or failed in transport"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendPredictionFailed(BackendError):
    """The prediction reached a failed (or canceled) terminal state"""

    def __init__(self, detail: Optional[str], prediction_id: Optional[str] = None):
        super().__init__(f"Replicate prediction failed: {detail}")
        self.detail = detail
        self.prediction_id = prediction_id


class BackendTimeout(BackendError):
    """Polling gave up before the prediction reached a terminal state"""

    def __init__(self, message: str, prediction_id: Optional[str] = None):
        super().__init__(message)
        self.prediction_id = prediction_id
