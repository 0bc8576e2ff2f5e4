"""
Auth module — the identity/session provider for the inbox.

Email + password login returns a bearer token and the signed-in user.
"""

from typing import Any

from counsel_inbox.errors import AuthError, InboxError
from counsel_inbox.models.identity import Identity
from counsel_inbox.transport.http import HttpClient


def _user_payload(data: Any) -> dict[str, Any]:
    if isinstance(data, dict):
        user = data.get("user", data.get("data", data))
        if isinstance(user, dict):
            return user
    raise AuthError("Auth response did not include a user")


class Auth:
    def __init__(self, http: HttpClient):
        self._http = http

    async def login(self, email: str, password: str) -> tuple[str, Identity]:
        """Log in; stores the token on the HTTP client and returns (token, identity)."""
        try:
            result = await self._http.post(
                "/auth/login", {"email": email, "password": password}, authenticated=False,
            )
        except InboxError as e:
            raise AuthError(f"Failed to log in: {e}", status=e.status) from e
        token = (result.get("token") or result.get("access_token")) if isinstance(result, dict) else None
        if not token:
            raise AuthError("Login response did not include a token")
        self._http.set_token(token)
        return token, Identity.model_validate(_user_payload(result))

    async def me(self) -> Identity:
        """Fetch the current user for the stored token."""
        try:
            data = await self._http.get("/auth/me")
        except AuthError:
            raise
        except InboxError as e:
            raise AuthError(f"Failed to load the current user: {e}", status=e.status) from e
        return Identity.model_validate(_user_payload(data))

    async def logout(self) -> None:
        try:
            await self._http.post("/auth/logout")
        finally:
            self._http.set_token(None)
