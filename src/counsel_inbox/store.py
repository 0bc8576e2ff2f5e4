"""
Message store — the single source of truth for an inbox session.

The store is an ordered list of frozen Message records. Every mutation bumps
``version`` and notifies subscribers; derived views (conversations, threads)
are recomputed from it and never kept elsewhere.

Removed messages remember the ids that preceded them, so a rollback puts them
back next to the same neighbours even after other inserts, removals or a
refresh changed the list in between.
"""

import logging
from typing import Callable, Iterable, Optional

from counsel_inbox.models.message import Message

logger = logging.getLogger(__name__)

# (ids before the message, nearest first; the message)
Removal = tuple[tuple[str, ...], Message]


class MessageStore:
    def __init__(self, messages: Optional[Iterable[Message]] = None):
        self._messages: list[Message] = list(messages or [])
        self._read_ids: set[str] = set()
        self._deleted_ids: set[str] = set()
        self._pending_ids: set[str] = set()
        self._pending_conversations: set[str] = set()
        self._listeners: list[Callable[["MessageStore"], None]] = []
        self.version = 0

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return self.index_of(str(message_id)) is not None

    def subscribe(self, listener: Callable[["MessageStore"], None]) -> Callable[[], None]:
        """Add a change listener. Returns a cleanup function."""
        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def _changed(self) -> None:
        self.version += 1
        for listener in list(self._listeners):
            listener(self)

    # -- reads -------------------------------------------------------------

    def all(self) -> list[Message]:
        return list(self._messages)

    def get(self, message_id: str) -> Optional[Message]:
        index = self.index_of(message_id)
        return self._messages[index] if index is not None else None

    def index_of(self, message_id: str) -> Optional[int]:
        for i, m in enumerate(self._messages):
            if m.id == message_id:
                return i
        return None

    def in_conversation(self, conversation_id: str) -> list[Message]:
        return [m for m in self._messages if m.conversation_id == conversation_id]

    def conversation_ids(self) -> set[str]:
        return {m.conversation_id for m in self._messages}

    # -- writes ------------------------------------------------------------

    def _suppressed(self, message: Message) -> bool:
        return (
            message.id in self._deleted_ids
            or message.id in self._pending_ids
            or message.conversation_id in self._pending_conversations
        )

    def replace_all(self, messages: Iterable[Message]) -> None:
        """Swap in a freshly fetched list.

        Local (not yet acknowledged) messages are carried over, ids the client
        already marked read stay read, and messages with a delete pending or
        done stay out.
        """
        fresh: list[Message] = []
        for m in messages:
            if self._suppressed(m):
                continue
            if m.is_unread and m.id in self._read_ids:
                m = m.model_copy(update={"is_unread": False})
            fresh.append(m)
        fresh_ids = {m.id for m in fresh}
        fresh.extend(m for m in self._messages if m.local and m.id not in fresh_ids)
        self._messages = fresh
        self._changed()

    def insert(self, message: Message, index: Optional[int] = None) -> None:
        if index is None or index >= len(self._messages):
            self._messages.append(message)
        else:
            self._messages.insert(max(0, index), message)
        self._changed()

    def replace(self, message_id: str, message: Message) -> bool:
        index = self.index_of(message_id)
        if index is None:
            return False
        if message.id != message_id:
            # drop a copy of the canonical record a refresh may already have delivered
            self._messages = [m for i, m in enumerate(self._messages) if i == index or m.id != message.id]
            index = self.index_of(message_id)
        self._messages[index] = message  # type: ignore[index]
        self._changed()
        return True

    def update(self, message_id: str, **fields: object) -> Optional[Message]:
        index = self.index_of(message_id)
        if index is None:
            return None
        if fields.get("is_unread") is True and not self._messages[index].is_unread:
            raise ValueError("is_unread cannot be set back to True")
        updated = self._messages[index].model_copy(update=fields)
        self._messages[index] = updated
        self._changed()
        return updated

    def _preceding(self, index: int) -> tuple[str, ...]:
        return tuple(m.id for m in reversed(self._messages[:index]))

    def remove(self, message_id: str) -> Optional[Removal]:
        index = self.index_of(message_id)
        if index is None:
            return None
        removal = (self._preceding(index), self._messages[index])
        del self._messages[index]
        self._changed()
        return removal

    def remove_conversation(self, conversation_id: str) -> list[Removal]:
        removed = [
            (self._preceding(i), m)
            for i, m in enumerate(self._messages)
            if m.conversation_id == conversation_id
        ]
        if removed:
            self._messages = [m for m in self._messages if m.conversation_id != conversation_id]
            self._changed()
        return removed

    def restore(self, removed: Iterable[Removal]) -> None:
        """Reinsert removed messages after the nearest neighbour still present."""
        for preceding, message in removed:
            if self.index_of(message.id) is not None:
                continue
            position = 0
            for neighbour in preceding:
                index = self.index_of(neighbour)
                if index is not None:
                    position = index + 1
                    break
            self._messages.insert(position, message)
        self._changed()

    # -- pending deletes ---------------------------------------------------

    def hold_deleted(self, message_ids: Iterable[str] = (), conversation_id: Optional[str] = None) -> None:
        """Keep ids (or a whole conversation) out of refreshes while a delete is in flight."""
        self._pending_ids.update(message_ids)
        if conversation_id is not None:
            self._pending_conversations.add(conversation_id)

    def release_deleted(
        self,
        message_ids: Iterable[str] = (),
        conversation_id: Optional[str] = None,
        confirmed: bool = False,
    ) -> None:
        """End a pending delete. Confirmed ids never come back from a refresh."""
        ids = set(message_ids)
        self._pending_ids -= ids
        if conversation_id is not None:
            self._pending_conversations.discard(conversation_id)
        if confirmed:
            self._deleted_ids |= ids
            if any(m.id in ids for m in self._messages):
                self._messages = [m for m in self._messages if m.id not in ids]
                self._changed()

    def migrate_conversation(self, old_id: str, new_id: str) -> int:
        moved = 0
        for i, m in enumerate(self._messages):
            if m.conversation_id == old_id:
                self._messages[i] = m.model_copy(update={"conversation_id": new_id})
                moved += 1
        if moved:
            logger.debug("Migrated %d messages from conversation %s to %s", moved, old_id, new_id)
            self._changed()
        return moved

    def mark_read(self, message_ids: Iterable[str]) -> int:
        ids = set(message_ids)
        self._read_ids |= ids
        cleared = 0
        for i, m in enumerate(self._messages):
            if m.is_unread and m.id in ids:
                self._messages[i] = m.model_copy(update={"is_unread": False})
                cleared += 1
        if cleared:
            self._changed()
        return cleared

    def clear(self) -> None:
        self._messages = []
        self._read_ids.clear()
        self._deleted_ids.clear()
        self._pending_ids.clear()
        self._pending_conversations.clear()
        self._changed()
