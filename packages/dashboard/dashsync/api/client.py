from __future__ import annotations

import json
import logging
import secrets
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ..config import get_settings
from ..log import ApiCallLogger
from .session import ApiSession

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 300
_RAW_CHARS = 500

_JSON_DB_MARKERS = (
    "access denied",
    "using password: no",
    "database connection",
    "mysqli_connect",
    "connection failed",
)
_TEXT_DB_MARKERS = (
    "access denied",
    "using password: no",
    "mysqli_connect",
    "database connection",
)


class ApiResult(BaseModel):
    """Envelope every backend call resolves to; failures never raise."""

    success: bool
    data: Any = None
    status: int = 0
    url: Optional[str] = None

    @property
    def body_success(self) -> bool:
        return isinstance(self.data, dict) and self.data.get("success") in (True, "true")

    def message(self, default: str = "") -> str:
        if isinstance(self.data, dict):
            for key in ("message", "error", "msg"):
                value = self.data.get(key)
                if value:
                    return str(value)
        return default


def generate_token() -> str:
    """Random 64 character hex token."""
    return secrets.token_hex(32)


def normalize_endpoint(endpoint: str) -> str:
    return endpoint if endpoint.startswith("/") else f"/{endpoint}"


def _is_list_endpoint(endpoint: str) -> bool:
    return "get_tables" in endpoint or "get_halls" in endpoint or ("get_" in endpoint and ".php" in endpoint)


def _is_login_endpoint(endpoint: str) -> bool:
    return "login" in endpoint


def _json_mentions_database_error(data: Any) -> bool:
    text = json.dumps(data, default=str).lower()
    if any(marker in text for marker in _JSON_DB_MARKERS):
        return True
    return "mysql" in text and "denied" in text


def _text_mentions_database_error(text: str) -> bool:
    lowered = text.lower()
    if any(marker in lowered for marker in _TEXT_DB_MARKERS):
        return True
    return "mysql" in lowered and ("denied" in lowered or "error" in lowered)


def _failure(status: int, message: str, **fields: Any) -> ApiResult:
    data: dict[str, Any] = {"success": False, "message": message}
    data.update({key: value for key, value in fields.items() if value is not None})
    return ApiResult(success=False, data=data, status=status)


def _invalid_credentials(status: int) -> ApiResult:
    return _failure(
        status or 401,
        "Invalid username or password",
        error="The credentials you entered are incorrect. Please check your username and password and try again.",
        is_empty_response=True,
    )


def interpret_response(endpoint: str, status: int, ok: bool, text: str) -> ApiResult:
    """Turn a raw HTTP answer from the PHP backend into an ``ApiResult``."""
    if not text or not text.strip():
        return _failure(
            status,
            "Server returned an empty response. Please check server logs or try again.",
            endpoint=endpoint,
            raw_response="",
        )

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Invalid JSON from %s: %s", endpoint, text[:200])
        if _text_mentions_database_error(text):
            return _failure(
                status or 500,
                "Database Connection Error",
                error="The server cannot connect to the database. The response contains database error information.",
                is_database_error=True,
                raw_response=text[:_RAW_CHARS],
            )
        return _failure(
            status,
            "Invalid response from server. Please check server logs.",
            error="Server returned non-JSON response. This might be a PHP error or database connection issue.",
            details=f"Response preview: {text[:_PREVIEW_CHARS]}",
            raw_response=text[:_RAW_CHARS],
            endpoint=endpoint,
        )

    if isinstance(data, dict) and not data:
        if _is_list_endpoint(endpoint):
            logger.debug("Empty object from %s treated as an empty list", endpoint)
            return ApiResult(success=True, data=[], status=status or 200)
        if _is_login_endpoint(endpoint):
            return _invalid_credentials(status)
        return ApiResult(success=ok, data={}, status=status or 200)

    if isinstance(data, (dict, list)) and _json_mentions_database_error(data):
        detail = data.get("message") or data.get("error") if isinstance(data, dict) else None
        return _failure(
            status or 500,
            "Database Connection Error",
            error="The server cannot connect to the database. Please check your database configuration.",
            details=f"Database Error: {detail or 'Access denied for user. Check database credentials.'}",
            is_database_error=True,
            raw_response=data,
        )

    if isinstance(data, dict) and "success" in data and not data.get("success"):
        has_message = any(data.get(key) for key in ("message", "error", "details", "msg"))
        if not has_message or len(data) <= 1:
            if _is_login_endpoint(endpoint):
                return _invalid_credentials(status)
            return _failure(
                status or 500,
                "Server Error: Empty response received",
                error="The server returned an empty error response. This usually indicates a database connection issue or PHP error.",
                is_database_error=True,
            )

    success = ok or (isinstance(data, dict) and data.get("success") is True)
    return ApiResult(success=success, data=data, status=status)


def _network_failure(endpoint: str, url: str, exc: httpx.HTTPError) -> ApiResult:
    if isinstance(exc, httpx.TimeoutException):
        message = "Request Timeout"
        details = f"The server took too long to respond.\n\nAPI URL: {url}"
    elif isinstance(exc, httpx.ConnectError):
        message = "Cannot connect to server"
        details = f"Unable to reach the API server at: {url}"
    else:
        message = f"Network error: {exc}"
        details = message
    result = _failure(
        0,
        message,
        details=details,
        endpoint=endpoint,
        api_url=url,
        error_type=type(exc).__name__,
    )
    return result.model_copy(update={"url": url})


class BackendClient:
    """Async JSON client for the PHP backend.

    Every verb resolves to an ``ApiResult``; transport failures, empty bodies
    and non-JSON answers become failed results with a readable message.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session: Optional[ApiSession] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.session = session if session is not None else ApiSession()
        self._timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._timeout)

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}{normalize_endpoint(endpoint)}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.session.auth_headers())
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        body: Any = None,
        *,
        params: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        endpoint = normalize_endpoint(endpoint)
        url = self.url_for(endpoint)
        content = json.dumps(body) if body is not None else None
        with ApiCallLogger(method, endpoint) as call:
            try:
                response = await self._client.request(
                    method,
                    url,
                    content=content,
                    params=params,
                    headers=self._headers(),
                )
            except httpx.HTTPError as exc:
                call.error(str(exc) or type(exc).__name__)
                return _network_failure(endpoint, url, exc)
            result = interpret_response(endpoint, response.status_code, response.is_success, response.text)
            call.success(response.status_code, result.success)
        return result.model_copy(update={"url": url})

    async def get(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> ApiResult:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, body: Any = None) -> ApiResult:
        return await self.request("POST", endpoint, body if body is not None else {})

    async def put(self, endpoint: str, body: Any = None) -> ApiResult:
        return await self.request("PUT", endpoint, body if body is not None else {})

    async def delete(self, endpoint: str, body: Any = None) -> ApiResult:
        # The backend reads identifiers from a JSON body, not the query string.
        return await self.request("DELETE", endpoint, body)

    async def login(self, username: str, password: str) -> ApiResult:
        result = await self.post("/login.php", {"username": username, "password": password})
        data = result.data if isinstance(result.data, dict) else {}
        accepted = result.success and (
            result.body_success or (bool(data.get("token")) and bool(data.get("role")))
        )
        if not accepted:
            return result.model_copy(update={"success": False})
        if not self.session.apply_login(data):
            logger.warning("Login response from %s carried no usable token/role", result.url)
            return _failure(
                result.status,
                "Login failed: Invalid role value received from server. Please contact administrator.",
            ).model_copy(update={"url": result.url})
        logger.info("Logged in as %s (%s)", self.session.username or username, self.session.role)
        return result

    def logout(self) -> None:
        self.session.clear()

    async def test_connection(self) -> ApiResult:
        return await self.get("/test_connection.php")


__all__ = [
    "ApiResult",
    "BackendClient",
    "generate_token",
    "interpret_response",
    "normalize_endpoint",
]
