"""
Conversation aggregator — groups inbox messages into peer-scoped threads.

Everything here is a pure function of its inputs: the same message list
always yields the same conversations, in the same order.
"""

from datetime import date
from typing import Iterable, Optional

from counsel_inbox.models.conversation import Conversation, PeerIdentity
from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import Message, SenderKind
from counsel_inbox.roles import InboxProfile, normalize_role, role_label
from counsel_inbox.visibility import is_own


def _counterpart(message: Message, identity: Identity, profile: InboxProfile) -> tuple[str, Optional[str]]:
    if message.sender is SenderKind.SYSTEM or is_own(message, identity, profile):
        role = normalize_role(message.recipient_role) or profile.default_peer_role or "system"
        return role, message.recipient_id
    author = message.sender_id if message.sender_id is not None else message.user_id
    return message.sender.value, author


def derive_conversation_key(message: Message, identity: Identity, profile: InboxProfile) -> str:
    role, peer_id = _counterpart(message, identity, profile)
    if peer_id is not None and str(peer_id).strip():
        return f"{role}-{peer_id}"
    return f"{role}-office"


def conversation_key(raw_id: object, message: Message, identity: Identity, profile: InboxProfile) -> str:
    """Server conversation id when present and non-blank, else one derived from the counterpart."""
    if raw_id is not None and str(raw_id).strip():
        return str(raw_id).strip()
    return derive_conversation_key(message, identity, profile)


def sort_thread(messages: Iterable[Message]) -> list[Message]:
    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(messages, key=lambda m: m.created_at)


def _is_generic_name(name: str, role: str) -> bool:
    return not name.strip() or name == role_label(role)


def _peer_name(name: Optional[str], role: str, peer_id: Optional[str], placeholder: str) -> str:
    name = (name or "").strip()
    if not _is_generic_name(name, role):
        return name
    if peer_id:
        return f"{role_label(role)} #{peer_id}"
    return name or placeholder


def resolve_peer(ordered: list[Message], identity: Identity, profile: InboxProfile) -> PeerIdentity:
    for m in ordered:
        if m.sender in profile.peer_kinds and not is_own(m, identity, profile):
            role = m.sender.value
            peer_id = m.sender_id if m.sender_id is not None else m.user_id
            return PeerIdentity(
                id=peer_id,
                name=_peer_name(m.sender_name, role, peer_id, profile.peer_placeholder),
                role=role,
                avatar_url=m.sender_avatar_url,
            )

    for m in ordered:
        outbound = m.sender is SenderKind.SYSTEM or is_own(m, identity, profile)
        if outbound and (m.recipient_id is not None or m.recipient_name):
            role = normalize_role(m.recipient_role) or profile.default_peer_role or "counselor"
            return PeerIdentity(
                id=m.recipient_id,
                name=_peer_name(m.recipient_name, role, m.recipient_id, profile.peer_placeholder),
                role=role,
                avatar_url=m.recipient_avatar_url,
            )

    return PeerIdentity(
        id=None,
        name=profile.peer_placeholder,
        role=profile.default_peer_role or "system",
    )


def group_messages(messages: Iterable[Message]) -> dict[str, list[Message]]:
    grouped: dict[str, list[Message]] = {}
    for m in messages:
        grouped.setdefault(m.conversation_id, []).append(m)
    return grouped


def build_conversations(messages: Iterable[Message], identity: Identity, profile: InboxProfile) -> list[Conversation]:
    conversations: list[Conversation] = []
    for conversation_id, msgs in group_messages(messages).items():
        ordered = sort_thread(msgs)
        last = ordered[-1]
        peer = resolve_peer(ordered, identity, profile)
        conversations.append(Conversation(
            id=conversation_id,
            peer=peer,
            subtitle=profile.subtitle(peer.role),
            unread_count=sum(1 for m in ordered if m.is_unread),
            last_message=last.content,
            last_timestamp=last.created_at,
            message_ids=tuple(m.id for m in ordered),
        ))

    conversations.sort(key=lambda c: (-c.unread_count, -c.last_timestamp.timestamp()))
    return conversations


def thread_messages(messages: Iterable[Message], conversation_id: str) -> list[Message]:
    return sort_thread(m for m in messages if m.conversation_id == conversation_id)


def search_conversations(conversations: list[Conversation], query: Optional[str]) -> list[Conversation]:
    q = (query or "").strip().lower()
    if not q:
        return list(conversations)
    return [c for c in conversations if q in c.peer.name.lower() or q in c.subtitle.lower()]


def group_by_day(messages: Iterable[Message]) -> list[tuple[date, list[Message]]]:
    """Bucket an ordered thread into (day, messages) pairs for timeline display."""
    buckets: list[tuple[date, list[Message]]] = []
    for m in sort_thread(messages):
        day = m.created_at.date()
        if buckets and buckets[-1][0] == day:
            buckets[-1][1].append(m)
        else:
            buckets.append((day, [m]))
    return buckets
