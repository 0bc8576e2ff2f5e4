"""
Optimistic mutation engine — local-first send, edit and delete.

Each operation changes the store immediately, talks to the server, and then
either reconciles with the canonical record or rolls the store back. Every
call returns a tagged result:

- ``Ok(value)``: the server accepted the change (or no server call was needed)
- ``Err(error)``: the store is back to its pre-mutation state; ``error`` is an
  InboxError (network, validation or auth failure)

Validation failures are reported before anything in the store changes.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar, Union

from counsel_inbox.errors import InboxError, ValidationError
from counsel_inbox.messages import MessagesAPI
from counsel_inbox.models.conversation import Conversation
from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import Message, SenderKind
from counsel_inbox.read_state import ReadStateTracker
from counsel_inbox.records import extract_record, message_from_dto, optional_str, parse_timestamp
from counsel_inbox.roles import InboxProfile, canonical_role, normalize_role, own_kind
from counsel_inbox.store import MessageStore
from counsel_inbox.visibility import is_own

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Ok(Generic[T]):
    __slots__ = ("value",)
    ok = True

    def __init__(self, value: T):
        self.value = value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


class Err:
    __slots__ = ("error",)
    ok = False

    def __init__(self, error: InboxError):
        self.error = error

    def __repr__(self) -> str:
        return f"Err({self.error.code!r}, {str(self.error)!r})"


Result = Union[Ok[Any], Err]


class MutationEngine:
    def __init__(
        self,
        store: MessageStore,
        api: MessagesAPI,
        read_state: ReadStateTracker,
        identity: Identity,
        profile: InboxProfile,
    ):
        self._store = store
        self._api = api
        self._read_state = read_state
        self._identity = identity
        self._profile = profile

    def _recipient_role(self, conversation: Conversation) -> Optional[str]:
        role = normalize_role(conversation.peer.role)
        if role in self._profile.peer_roles:
            return role
        return self._profile.default_peer_role

    def seed_conversation(
        self,
        peer_id: str,
        peer_name: str,
        peer_role: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> str:
        """Start a thread locally with a system seed message. Returns its provisional id."""
        role = canonical_role(peer_role) or self._profile.default_peer_role or "counselor"
        if role not in self._profile.peer_roles:
            raise ValidationError(f"This inbox cannot message a {role}", code="invalid_recipient")
        conversation_id = f"new-{role}-{peer_id}-{int(time.time() * 1000)}"
        self._store.insert(Message(
            id=f"seed-{conversation_id}",
            conversation_id=conversation_id,
            sender=SenderKind.SYSTEM,
            sender_name="System",
            recipient_id=str(peer_id),
            recipient_role=role,
            recipient_name=peer_name,
            recipient_avatar_url=avatar_url,
            content=f"Conversation started with {peer_name}.",
            created_at=datetime.now(timezone.utc),
            persisted=False,
            local=True,
        ))
        return conversation_id

    async def send(self, conversation: Conversation, text: str) -> Result:
        content = (text or "").strip()
        if not content:
            return Err(ValidationError("Message cannot be empty.", code="empty_content"))
        peer = conversation.peer
        if self._profile.requires_recipient and not peer.id:
            return Err(ValidationError("A recipient is required.", code="missing_recipient"))

        recipient_role = self._recipient_role(conversation)
        provisional = Message(
            id=f"local-{uuid.uuid4().hex}",
            conversation_id=conversation.id,
            sender=own_kind(self._identity),
            sender_id=self._identity.id,
            sender_name=self._identity.display_name,
            recipient_id=peer.id,
            recipient_role=recipient_role,
            recipient_name=peer.name,
            recipient_avatar_url=peer.avatar_url,
            content=content,
            created_at=datetime.now(timezone.utc),
            persisted=False,
            local=True,
        )
        server_conversation = any(m.server_conversation for m in self._store.in_conversation(conversation.id))
        self._store.insert(provisional)

        try:
            response = await self._api.send(
                content,
                recipient_id=peer.id,
                recipient_role=recipient_role,
                conversation_id=conversation.id if server_conversation else None,
            )
        except InboxError as e:
            self._store.remove(provisional.id)
            logger.warning("Send to conversation %s failed: %s", conversation.id, e)
            return Err(e)
        except BaseException:
            # cancelled or unexpected: nothing was acknowledged
            self._store.remove(provisional.id)
            raise

        record = extract_record(response)
        if record is None:
            logger.debug("Send response carried no message record; keeping provisional %s", provisional.id)
            # no longer local: the next refresh brings the stored copy
            kept = self._store.update(provisional.id, local=False)
            self._read_state.on_send_success(conversation.id)
            return Ok(kept or provisional)

        canonical = message_from_dto(record, self._identity, self._profile)
        canonical = canonical.model_copy(update={"is_unread": False})
        if not self._store.replace(provisional.id, canonical):
            logger.debug("Provisional %s left the store before the server answered", provisional.id)

        if canonical.conversation_id != conversation.id:
            self._store.migrate_conversation(conversation.id, canonical.conversation_id)
            self._read_state.migrate(conversation.id, canonical.conversation_id)
        self._read_state.on_send_success(canonical.conversation_id)
        return Ok(canonical)

    def _undo_edit(self, message_id: str, content: str, previous: str) -> None:
        latest = self._store.get(message_id)
        if latest is not None and latest.content == content:
            self._store.update(message_id, content=previous)

    async def edit(self, message_id: str, text: str) -> Result:
        content = (text or "").strip()
        if not content:
            return Err(ValidationError("Message cannot be empty.", code="empty_content"))
        current = self._store.get(message_id)
        if current is None:
            return Err(ValidationError(f"Message {message_id} not found", code="not_found"))
        if not is_own(current, self._identity, self._profile):
            return Err(ValidationError("Only your own messages can be edited.", code="not_editable"))

        previous = current.content
        self._store.update(message_id, content=content)
        if not current.persisted:
            return Ok(self._store.get(message_id))

        try:
            response = await self._api.update(message_id, content)
        except InboxError as e:
            self._undo_edit(message_id, content, previous)
            logger.warning("Edit of message %s failed: %s", message_id, e)
            return Err(e)
        except BaseException:
            self._undo_edit(message_id, content, previous)
            raise

        fields: dict[str, Any] = {}
        record = extract_record(response)
        if record is not None:
            fields["content"] = str(record.get("content") or content)
            updated_at = parse_timestamp(record.get("updated_at"))
            if updated_at is not None:
                fields["updated_at"] = updated_at
            sender_name = optional_str(record.get("sender_name"))
            if sender_name:
                fields["sender_name"] = sender_name
        merged = self._store.update(message_id, **fields) if fields else self._store.get(message_id)
        return Ok(merged or current.model_copy(update={"content": content}))

    async def delete_message(self, message_id: str) -> Result:
        removed = self._store.remove(message_id)
        if removed is None:
            return Err(ValidationError(f"Message {message_id} not found", code="not_found"))
        message = removed[1]
        if not message.persisted:
            return Ok(message)

        self._store.hold_deleted([message_id])
        try:
            await self._api.delete(message_id)
        except BaseException as e:
            self._store.release_deleted([message_id])
            self._store.restore([removed])
            if not isinstance(e, InboxError):
                raise
            logger.warning("Delete of message %s failed: %s", message_id, e)
            return Err(e)
        self._store.release_deleted([message_id], confirmed=True)
        return Ok(message)

    async def delete_conversation(self, conversation_id: str) -> Result:
        removed = self._store.remove_conversation(conversation_id)
        if not removed:
            return Err(ValidationError(f"Conversation {conversation_id} not found", code="not_found"))

        ids = [m.id for _, m in removed]
        if any(m.persisted or m.server_conversation for _, m in removed):
            self._store.hold_deleted(ids, conversation_id)
            try:
                await self._api.delete_conversation(conversation_id)
            except BaseException as e:
                self._store.release_deleted(ids, conversation_id)
                self._store.restore(removed)
                if not isinstance(e, InboxError):
                    raise
                logger.warning("Delete of conversation %s failed: %s", conversation_id, e)
                return Err(e)
            self._store.release_deleted(ids, conversation_id, confirmed=True)

        self._read_state.forget(conversation_id)
        return Ok(len(removed))

    async def mark_read(self, conversation_id: str) -> Result:
        unread = [m for m in self._store.in_conversation(conversation_id) if m.is_unread]
        if not unread:
            return Ok(0)
        persisted = [m.id for m in unread if m.persisted]
        if persisted:
            try:
                await self._api.mark_read(persisted)
            except InboxError as e:
                logger.warning("Mark-read for conversation %s failed: %s", conversation_id, e)
                return Err(e)
        return Ok(self._store.mark_read(m.id for m in unread))
