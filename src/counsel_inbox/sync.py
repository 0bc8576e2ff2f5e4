"""
Sync coordinator — owns the inbox session.

Responsibilities:
- fetch the full message list on start and on refresh, with at most one
  fetch outstanding (a newer fetch cancels the older one, whose result is
  discarded)
- one mark-as-read request per conversation at a time; concurrent triggers
  share it
- automatic mark-as-read, but only for threads the read-state tracker says
  the user opened or replied to
- never pick a thread on the user's behalf: if the active thread disappears,
  the active pointer is cleared

All work runs on one asyncio loop; reads of derived state happen between
awaits, after the store has settled.
"""

import asyncio
import logging
from typing import Callable, Optional

from counsel_inbox.aggregator import build_conversations, search_conversations, thread_messages
from counsel_inbox.errors import FetchCancelledError, InboxError, ValidationError
from counsel_inbox.messages import MessagesAPI
from counsel_inbox.models.conversation import Conversation
from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import Message
from counsel_inbox.mutations import Err, MutationEngine, Ok, Result
from counsel_inbox.read_state import ReadStateTracker
from counsel_inbox.records import messages_from_payload
from counsel_inbox.roles import InboxProfile, profile_for
from counsel_inbox.store import MessageStore
from counsel_inbox.visibility import filter_visible

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[str, InboxError], None]


class SyncCoordinator:
    def __init__(
        self,
        api: MessagesAPI,
        identity: Identity,
        profile: Optional[InboxProfile] = None,
        store: Optional[MessageStore] = None,
    ):
        self._api = api
        self.identity = identity
        self.profile = profile or profile_for(identity)
        self.store = store or MessageStore()
        self.read_state = ReadStateTracker()
        self.engine = MutationEngine(self.store, api, self.read_state, identity, self.profile)

        self._fetch_task: Optional[asyncio.Task] = None
        self._generation = 0
        self._closed = False
        self._mark_inflight: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._drafts: dict[str, str] = {}
        self._error_handlers: list[ErrorHandler] = []

        self._cache_version = -1
        self._conversations: list[Conversation] = []

    # -- errors ------------------------------------------------------------

    def add_error_handler(self, handler: ErrorHandler) -> Callable[[], None]:
        """Register a callback for surfaced errors. Returns a cleanup function."""
        self._error_handlers.append(handler)

        def remove() -> None:
            try:
                self._error_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def _surface(self, operation: str, result: Result) -> Result:
        if isinstance(result, Err) and not isinstance(result.error, FetchCancelledError):
            for handler in list(self._error_handlers):
                handler(operation, result.error)
        return result

    # -- derived state -----------------------------------------------------

    def get_conversations(self, query: Optional[str] = None) -> list[Conversation]:
        if self._cache_version != self.store.version:
            self._conversations = build_conversations(self.store.all(), self.identity, self.profile)
            self._cache_version = self.store.version
        return search_conversations(self._conversations, query)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        for c in self.get_conversations():
            if c.id == conversation_id:
                return c
        return None

    def get_messages(self, conversation_id: str) -> list[Message]:
        return thread_messages(self.store.all(), conversation_id)

    @property
    def active_conversation_id(self) -> Optional[str]:
        return self.read_state.active_id

    def active_conversation(self) -> Optional[Conversation]:
        active = self.read_state.active_id
        return self.get_conversation(active) if active else None

    # -- fetch -------------------------------------------------------------

    @property
    def fetching(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    def _cancel_fetch(self) -> None:
        if self._fetch_task is not None and not self._fetch_task.done():
            logger.debug("Cancelling in-flight fetch")
            self._fetch_task.cancel()
        self._fetch_task = None

    async def refresh(self) -> Result:
        """Fetch the full message list and replace the store with it."""
        if self._closed:
            return Err(FetchCancelledError("Inbox session is closed"))
        self._cancel_fetch()
        self._generation += 1
        generation = self._generation
        task = asyncio.ensure_future(self._api.list())
        self._fetch_task = task

        try:
            payload = await task
        except asyncio.CancelledError:
            if generation != self._generation or self._closed:
                return Err(FetchCancelledError())
            raise
        except InboxError as e:
            logger.warning("Fetching messages failed: %s", e)
            return self._surface("refresh", Err(e))
        finally:
            if self._fetch_task is task:
                self._fetch_task = None

        if generation != self._generation or self._closed:
            return Err(FetchCancelledError())

        messages = filter_visible(
            messages_from_payload(payload, self.identity, self.profile),
            self.identity, self.profile,
        )
        self.store.replace_all(messages)
        logger.debug("Loaded %d visible messages", len(messages))

        present = self.store.conversation_ids()
        active = self.read_state.active_id
        if active is not None and active not in present:
            logger.info("Active conversation %s is gone; clearing selection", active)
        for conversation_id in self.read_state.opened - present:
            self.read_state.forget(conversation_id)
        self._maybe_auto_mark(self.read_state.active_id)
        return Ok(len(messages))

    # -- read state --------------------------------------------------------

    def _has_unread(self, conversation_id: str) -> bool:
        return any(m.is_unread for m in self.store.in_conversation(conversation_id))

    def _maybe_auto_mark(self, conversation_id: Optional[str]) -> None:
        if conversation_id is None or self._closed:
            return
        if not self.read_state.may_auto_mark(conversation_id):
            return
        if not self._has_unread(conversation_id):
            return
        task = asyncio.ensure_future(self._auto_mark(conversation_id))
        self._background.add(task)
        task.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background mark-read crashed", exc_info=error)

    async def _auto_mark(self, conversation_id: str) -> None:
        result = self._surface("auto_mark_read", await self._mark(conversation_id))
        if isinstance(result, Err):
            logger.info("Automatic mark-read for %s failed: %s", conversation_id, result.error)
        elif self.read_state.active_id == conversation_id:
            # replies that landed while the request was in flight
            self._maybe_auto_mark(conversation_id)

    async def _run_mark(self, conversation_id: str) -> Result:
        try:
            return await self.engine.mark_read(conversation_id)
        finally:
            self._mark_inflight.pop(conversation_id, None)

    async def _mark(self, conversation_id: str) -> Result:
        inflight = self._mark_inflight.get(conversation_id)
        if inflight is None:
            inflight = asyncio.ensure_future(self._run_mark(conversation_id))
            self._mark_inflight[conversation_id] = inflight
        return await asyncio.shield(inflight)

    def open_conversation(self, conversation_id: str) -> None:
        """Select a thread on the user's behalf; schedules auto mark-read if it has unread messages."""
        if conversation_id not in self.store.conversation_ids():
            raise ValidationError(f"Conversation {conversation_id} not found", code="not_found")
        self.read_state.open(conversation_id)
        self._maybe_auto_mark(conversation_id)

    def close_conversation(self) -> None:
        self.read_state.clear_active()

    async def mark_conversation_read(self, conversation_id: str) -> Result:
        """Explicit user action; allowed whether or not the thread was opened."""
        return self._surface("mark_read", await self._mark(conversation_id))

    async def settle(self) -> None:
        """Wait for background work (automatic mark-read) to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- drafts ------------------------------------------------------------

    def set_draft(self, conversation_id: str, text: str) -> None:
        self._drafts[conversation_id] = text

    def draft(self, conversation_id: str) -> str:
        return self._drafts.get(conversation_id, "")

    # -- mutations ---------------------------------------------------------

    def start_conversation(
        self,
        peer_id: str,
        peer_name: str,
        peer_role: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> str:
        conversation_id = self.engine.seed_conversation(str(peer_id), peer_name, peer_role, avatar_url)
        self.read_state.open(conversation_id)
        return conversation_id

    async def search_peers(self, query: str = "", role: Optional[str] = None) -> Result:
        """Look up people to start a thread with. Defaults to the inbox's usual peer role."""
        role = role or self.profile.default_peer_role
        if not role:
            return self._surface("search_peers", Err(ValidationError("Pick a role to search.", code="missing_role")))
        try:
            peers = await self._api.search_peers(role, query)
        except InboxError as e:
            logger.warning("Peer search failed: %s", e)
            return self._surface("search_peers", Err(e))
        return Ok(peers)

    async def send_message(self, conversation_id: str, text: Optional[str] = None) -> Result:
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return self._surface("send", Err(ValidationError("Select a conversation first.", code="not_found")))
        if text is None:
            text = self.draft(conversation_id)
        # the draft is cleared as soon as the send starts and is not restored on failure
        self._drafts.pop(conversation_id, None)

        result = await self.engine.send(conversation, text)
        if isinstance(result, Ok):
            self._maybe_auto_mark(result.value.conversation_id)
        return self._surface("send", result)

    async def edit_message(self, message_id: str, text: str) -> Result:
        return self._surface("edit", await self.engine.edit(message_id, text))

    async def delete_message(self, message_id: str) -> Result:
        return self._surface("delete", await self.engine.delete_message(message_id))

    async def delete_conversation(self, conversation_id: str) -> Result:
        return self._surface("delete_conversation", await self.engine.delete_conversation(conversation_id))

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Tear down: cancel the in-flight fetch and background work."""
        self._closed = True
        self._cancel_fetch()
        for task in list(self._background):
            task.cancel()
