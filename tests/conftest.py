"""Shared fixtures: identities, a scripted messages API and a dto factory."""

import asyncio
from typing import Any, Optional

import pytest

from counsel_inbox.errors import NetworkError
from counsel_inbox.models.identity import Identity
from counsel_inbox.roles import COUNSELOR_INBOX, REFERRAL_USER_INBOX, STUDENT_INBOX


class FakeMessagesAPI:
    """Stands in for MessagesAPI. Records calls; results are scripted per method.

    ``list_payloads`` is consumed in order (the last one repeats). Setting
    ``fail[method]`` makes that method raise; setting ``gates[method]`` to an
    asyncio.Event makes it wait for the event first.
    """

    def __init__(self, list_payloads: Optional[list[Any]] = None):
        self.list_payloads = list(list_payloads or [[]])
        self.calls: list[tuple[str, tuple, dict]] = []
        self.fail: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.send_response: Any = None
        self.update_response: Any = None
        self.peers: list[Any] = []
        self.endpoint = "/student/messages"

    def count(self, method: str) -> int:
        return sum(1 for name, _, _ in self.calls if name == method)

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, args, kwargs))
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        error = self.fail.get(method)
        if error is not None:
            raise error

    async def list(self) -> Any:
        payload = self.list_payloads[0] if len(self.list_payloads) == 1 else self.list_payloads.pop(0)
        await self._call("list")
        return payload

    async def send(self, content, recipient_id=None, recipient_role=None, conversation_id=None) -> Any:
        await self._call("send", content, recipient_id=recipient_id,
                         recipient_role=recipient_role, conversation_id=conversation_id)
        return self.send_response

    async def mark_read(self, message_ids) -> Any:
        ids = list(message_ids)
        await self._call("mark_read", ids)
        return {"updated": len(ids)}

    async def update(self, message_id, content) -> Any:
        await self._call("update", message_id, content)
        return self.update_response

    async def delete(self, message_id) -> Any:
        await self._call("delete", message_id)
        return None

    async def delete_conversation(self, conversation_id) -> Any:
        await self._call("delete_conversation", conversation_id)
        return None

    async def search_peers(self, role, query="", limit=20) -> Any:
        await self._call("search_peers", role, query)
        return list(self.peers)


def dto(id: Any = 1, sender: str = "counselor", content: str = "hi", **fields: Any) -> dict[str, Any]:
    """A server-shaped message record."""
    record: dict[str, Any] = {
        "id": id,
        "sender": sender,
        "content": content,
        "created_at": fields.pop("created_at", "2024-03-01T09:00:00Z"),
    }
    record.update(fields)
    return record


@pytest.fixture
def student() -> Identity:
    return Identity(id=42, name="Ana Cruz", email="ana@example.edu", role="student")


@pytest.fixture
def counselor() -> Identity:
    return Identity(id=7, name="Mr. Reyes", email="reyes@example.edu", role="counselor")


@pytest.fixture
def dean() -> Identity:
    return Identity(id=300, name="Dean Lim", role="dean")


@pytest.fixture
def student_profile():
    return STUDENT_INBOX


@pytest.fixture
def counselor_profile():
    return COUNSELOR_INBOX


@pytest.fixture
def referral_profile():
    return REFERRAL_USER_INBOX


@pytest.fixture
def offline() -> NetworkError:
    return NetworkError("Could not reach the server: connection refused")
