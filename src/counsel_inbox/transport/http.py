"""
REST HTTP client for the counseling-office API.

One well-known path per capability. Timeouts and connection retries live here,
never in the sync engine.
"""

import logging
import os
from typing import Any, Optional

import httpx

from counsel_inbox.errors import AuthError, InboxError, NetworkError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = os.environ.get("COUNSEL_INBOX_BASE_URL", "http://localhost:8000/api")
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_RETRIES = 2

AUTH_STATUSES = {401, 403, 419}
VALIDATION_STATUSES = {400, 404, 409, 422}


def error_message(body: Any, fallback: str) -> str:
    """Pick the most useful message out of a Laravel-style error body."""
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
        errors = body.get("errors")
        if isinstance(errors, dict):
            for value in errors.values():
                if isinstance(value, list) and value:
                    return str(value[0])
                if isinstance(value, str):
                    return value
    if isinstance(body, str) and body.strip():
        return body[:200]
    return fallback


def error_for_status(status: int, body: Any, reason: str = "") -> InboxError:
    message = error_message(body, reason or f"HTTP {status}")
    details = body if isinstance(body, dict) else None
    if status in AUTH_STATUSES:
        return AuthError(message, status=status)
    if status in VALIDATION_STATUSES:
        return ValidationError(message, code="http_error", status=status, details=details)
    return NetworkError(message, status=status, details=details)


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        retries: int = DEFAULT_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": "counsel-inbox/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport or httpx.AsyncHTTPTransport(retries=retries),
        )

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Any:
        try:
            resp = await self._client.request(
                method, path, json=body, params=params,
                headers=self._auth_headers(authenticated),
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out: %s", method, path, e)
            raise NetworkError(f"Request timed out: {method} {path}") from e
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError(f"Could not reach the server: {e}") from e

        data = self._decode(resp)
        if resp.status_code >= 400:
            logger.debug("%s %s -> HTTP %d", method, path, resp.status_code)
            raise error_for_status(resp.status_code, data, resp.reason_phrase)
        return data

    async def get(self, path: str, params: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self.request("GET", path, params=params, authenticated=authenticated)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        return await self.request("POST", path, body or {}, authenticated=authenticated)

    async def patch(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        return await self.request("PATCH", path, body or {}, authenticated=authenticated)

    async def delete(self, path: str, params: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self.request("DELETE", path, params=params, authenticated=authenticated)

    async def close(self) -> None:
        await self._client.aclose()
