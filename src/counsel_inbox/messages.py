"""
Messages REST API — one endpoint per capability for the signed-in role.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Union
from urllib.parse import quote

from counsel_inbox.errors import ValidationError
from counsel_inbox.models.conversation import PeerIdentity
from counsel_inbox.records import peers_from_payload
from counsel_inbox.roles import InboxProfile, canonical_role
from counsel_inbox.transport.http import HttpClient

ApiId = Union[int, str]


def api_id(value: str) -> ApiId:
    """The backend validates message ids as integers; send them as such when they are."""
    text = str(value).strip()
    return int(text) if text.isdigit() else text


class MessagesAPI:
    def __init__(self, http: HttpClient, profile: InboxProfile):
        self._http = http
        self._profile = profile

    @property
    def endpoint(self) -> str:
        return self._profile.endpoint

    async def list(self) -> Any:
        """Fetch the full visible message list for the caller."""
        return await self._http.get(self.endpoint)

    async def send(
        self,
        content: str,
        recipient_id: Optional[str] = None,
        recipient_role: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> Any:
        body: dict[str, Any] = {"content": content}
        if recipient_id is not None:
            body["recipient_id"] = api_id(recipient_id)
        if recipient_role:
            body["recipient_role"] = recipient_role
        if conversation_id is not None:
            body["conversation_id"] = api_id(conversation_id)
        return await self._http.post(self.endpoint, body)

    async def mark_read(self, message_ids: Iterable[str]) -> Any:
        return await self._http.post(
            f"{self.endpoint}/mark-as-read",
            {"message_ids": [api_id(i) for i in message_ids]},
        )

    async def update(self, message_id: str, content: str) -> Any:
        return await self._http.patch(f"/messages/{quote(str(message_id), safe='')}", {"content": content})

    async def delete(self, message_id: str) -> Any:
        return await self._http.delete(f"/messages/{quote(str(message_id), safe='')}")

    async def delete_conversation(self, conversation_id: str) -> Any:
        return await self._http.delete(f"/messages/conversations/{quote(conversation_id, safe='')}")

    async def search_peers(self, role: str, query: str = "", limit: int = 20) -> list[PeerIdentity]:
        """Search the user directory for people of ``role`` this inbox can message."""
        role = canonical_role(role)
        if role not in self._profile.peer_roles:
            raise ValidationError(f"This inbox cannot message a {role or 'user'}", code="invalid_recipient")
        params = {"role": role, "q": query.strip()} if query.strip() else {"role": role, "limit": str(limit)}
        data = await self._http.get("/users/search", params=params)
        return peers_from_payload(data, role)
