from .client import ApiResult, BackendClient, generate_token, interpret_response, normalize_endpoint
from .session import ROLE_DASHBOARDS, ApiSession

__all__ = [
    "ApiResult",
    "ApiSession",
    "BackendClient",
    "ROLE_DASHBOARDS",
    "generate_token",
    "interpret_response",
    "normalize_endpoint",
]
