"""
AsyncInbox / Inbox — main client objects.
"""

import asyncio
from typing import Any, Callable, Optional

from counsel_inbox.auth import Auth
from counsel_inbox.errors import AuthError, InboxError
from counsel_inbox.messages import MessagesAPI
from counsel_inbox.models.conversation import Conversation
from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import Message
from counsel_inbox.mutations import Result
from counsel_inbox.roles import profile_for
from counsel_inbox.store import MessageStore
from counsel_inbox.sync import SyncCoordinator
from counsel_inbox.transport.http import DEFAULT_BASE_URL, DEFAULT_RETRIES, DEFAULT_TIMEOUT_S, HttpClient


class AsyncInbox:
    """Async inbox client (primary)."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        identity: Optional[Identity] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
        retries: int = DEFAULT_RETRIES,
        http: Optional[HttpClient] = None,
    ):
        self.http = http or HttpClient(base_url=base_url, token=access_token, timeout=timeout, retries=retries)
        self.auth = Auth(self.http)
        self._identity = identity
        self._sync: Optional[SyncCoordinator] = None

    @property
    def connected(self) -> bool:
        return self._sync is not None

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def sync(self) -> SyncCoordinator:
        self._ensure_connected()
        return self._sync  # type: ignore[return-value]

    @property
    def store(self) -> MessageStore:
        return self.sync.store

    async def login(self, email: str, password: str) -> Identity:
        _, self._identity = await self.auth.login(email, password)
        return self._identity

    async def connect(self, fetch: bool = True) -> Optional[Result]:
        """Resolve the identity, build the session and load the inbox."""
        if self._identity is None:
            if not self.http.token:
                raise AuthError("access_token required. Log in first.")
            self._identity = await self.auth.me()
        profile = profile_for(self._identity)
        if self._sync is not None:
            self._sync.close()
        self._sync = SyncCoordinator(MessagesAPI(self.http, profile), self._identity, profile)
        if fetch:
            return await self._sync.refresh()
        return None

    async def disconnect(self) -> None:
        if self._sync is not None:
            self._sync.close()
            self._sync = None
        await self.http.close()

    async def __aenter__(self) -> "AsyncInbox":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disconnect()

    def add_error_handler(self, handler: Callable[[str, InboxError], None]) -> Callable[[], None]:
        return self.sync.add_error_handler(handler)

    def get_conversations(self, query: Optional[str] = None) -> list[Conversation]:
        return self.sync.get_conversations(query)

    def get_messages(self, conversation_id: str) -> list[Message]:
        return self.sync.get_messages(conversation_id)

    async def refresh(self) -> Result:
        return await self.sync.refresh()

    async def open_conversation(self, conversation_id: str, wait: bool = True) -> None:
        """Open a thread; with ``wait`` the automatic mark-read finishes before returning."""
        self.sync.open_conversation(conversation_id)
        if wait:
            await self.sync.settle()

    def start_conversation(
        self, peer_id: str, peer_name: str, peer_role: Optional[str] = None, avatar_url: Optional[str] = None,
    ) -> str:
        return self.sync.start_conversation(peer_id, peer_name, peer_role, avatar_url)

    async def search_peers(self, query: str = "", role: Optional[str] = None) -> Result:
        return await self.sync.search_peers(query, role)

    async def send_message(self, conversation_id: str, text: Optional[str] = None) -> Result:
        return await self.sync.send_message(conversation_id, text)

    async def edit_message(self, message_id: str, text: str) -> Result:
        return await self.sync.edit_message(message_id, text)

    async def delete_message(self, message_id: str) -> Result:
        return await self.sync.delete_message(message_id)

    async def delete_conversation(self, conversation_id: str) -> Result:
        return await self.sync.delete_conversation(conversation_id)

    async def mark_conversation_read(self, conversation_id: str) -> Result:
        return await self.sync.mark_conversation_read(conversation_id)

    def _ensure_connected(self) -> None:
        if self._sync is None:
            raise InboxError("not_connected", "Not connected. Call connect() first.")


class Inbox:
    """Sync wrapper around AsyncInbox. Runs the event loop internally."""

    def __init__(self, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = AsyncInbox(**kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def auth(self) -> Auth:
        return self._async.auth

    @property
    def identity(self) -> Optional[Identity]:
        return self._async.identity

    @property
    def connected(self) -> bool:
        return self._async.connected

    def login(self, email: str, password: str) -> Identity:
        return self._run(self._async.login(email, password))

    def connect(self, **kwargs: Any) -> Result:
        return self._run(self._async.connect(**kwargs))

    def disconnect(self) -> None:
        try:
            self._run(self._async.disconnect())
        finally:
            self._loop.close()

    def get_conversations(self, query: Optional[str] = None) -> list[Conversation]:
        return self._async.get_conversations(query)

    def get_messages(self, conversation_id: str) -> list[Message]:
        return self._async.get_messages(conversation_id)

    def refresh(self) -> Result:
        return self._run(self._async.refresh())

    def open_conversation(self, conversation_id: str) -> None:
        self._run(self._async.open_conversation(conversation_id, wait=True))

    def start_conversation(self, peer_id: str, peer_name: str, peer_role: Optional[str] = None) -> str:
        return self._async.start_conversation(peer_id, peer_name, peer_role)

    def search_peers(self, query: str = "", role: Optional[str] = None) -> Result:
        return self._run(self._async.search_peers(query, role))

    def send_message(self, conversation_id: str, text: Optional[str] = None) -> Result:
        async def _send() -> Result:
            result = await self._async.send_message(conversation_id, text)
            await self._async.sync.settle()
            return result
        return self._run(_send())

    def edit_message(self, message_id: str, text: str) -> Result:
        return self._run(self._async.edit_message(message_id, text))

    def delete_message(self, message_id: str) -> Result:
        return self._run(self._async.delete_message(message_id))

    def delete_conversation(self, conversation_id: str) -> Result:
        return self._run(self._async.delete_conversation(conversation_id))

    def mark_conversation_read(self, conversation_id: str) -> Result:
        return self._run(self._async.mark_conversation_read(conversation_id))
