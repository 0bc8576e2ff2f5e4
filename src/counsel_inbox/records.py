"""
Server record normalization.

The messages API is loose about shapes: ids may be ints or strings, read flags
booleans or 0/1, and some legacy rows lack ids or timestamps. One malformed
record must never keep the rest of the inbox from rendering, so every missing
field gets a deterministic fallback instead of an exception.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from counsel_inbox.aggregator import conversation_key
from counsel_inbox.models.conversation import PeerIdentity
from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import EPOCH, Message, SenderKind
from counsel_inbox.roles import OFFICE_NAME, InboxProfile, canonical_role, normalize_sender, role_label
from counsel_inbox.visibility import is_own

logger = logging.getLogger(__name__)

_datetime = TypeAdapter(datetime)

LIST_KEYS = ("messages", "data", "results", "items", "records")
RECORD_KEYS = ("messageRecord", "message", "data", "record")


def extract_messages_array(payload: Any) -> list[Any]:
    if not payload:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def extract_record(payload: Any) -> Optional[dict[str, Any]]:
    """Pull the single message record out of a send/update response."""
    if not isinstance(payload, dict):
        return None
    for key in RECORD_KEYS:
        value = payload.get(key)
        if isinstance(value, dict):
            return value
    if "content" in payload and ("id" in payload or "conversation_id" in payload):
        return payload
    return None


def optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        parsed = _datetime.validate_python(value)
    except PydanticValidationError:
        logger.debug("Unparseable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_unread_flag(dto: dict[str, Any]) -> bool:
    value = dto.get("is_read")
    if isinstance(value, bool):
        return not value
    if isinstance(value, str):
        return value.strip().lower() in ("0", "false")
    return value == 0


def _avatar(dto: dict[str, Any], *nested: str) -> Optional[str]:
    for key in ("sender_avatar_url", "avatar_url", "avatar", "profile_photo_url"):
        url = optional_str(dto.get(key))
        if url:
            return url
    for name in nested:
        inner = dto.get(name)
        if isinstance(inner, dict):
            url = _avatar(inner)
            if url:
                return url
    return None


def _recipient_name(dto: dict[str, Any]) -> Optional[str]:
    name = optional_str(dto.get("recipient_name"))
    if name:
        return name
    for key in ("recipient_user", "recipientUser"):
        inner = dto.get(key)
        if isinstance(inner, dict):
            name = optional_str(inner.get("name"))
            if name:
                return name
    return None


def default_sender_name(sender: SenderKind, own: bool, identity: Identity) -> str:
    if sender is SenderKind.SYSTEM:
        return OFFICE_NAME
    if own:
        return identity.display_name
    return role_label(sender.value)


def message_from_dto(dto: dict[str, Any], identity: Identity, profile: InboxProfile, index: int = 0) -> Message:
    sender = normalize_sender(dto.get("sender") or dto.get("sender_role"))
    created = parse_timestamp(dto.get("created_at")) or EPOCH

    raw_id = optional_str(dto.get("id"))
    message_id = raw_id or f"missing-{created.isoformat()}-{sender.value}-{index}"

    draft = Message(
        id=message_id,
        conversation_id="",
        sender=sender,
        sender_id=optional_str(dto.get("sender_id")),
        sender_avatar_url=_avatar(dto, "sender_user", "senderUser"),
        recipient_id=optional_str(dto.get("recipient_id")),
        recipient_role=optional_str(dto.get("recipient_role")),
        recipient_name=_recipient_name(dto),
        recipient_avatar_url=_recipient_avatar(dto),
        user_id=optional_str(dto.get("user_id")),
        content=str(dto.get("content") or ""),
        created_at=created,
        updated_at=parse_timestamp(dto.get("updated_at")),
        persisted=raw_id is not None,
    )

    own = is_own(draft, identity, profile)
    raw_conversation = dto.get("conversation_id", dto.get("conversationId"))
    return draft.model_copy(update={
        "conversation_id": conversation_key(raw_conversation, draft, identity, profile),
        "server_conversation": optional_str(raw_conversation) is not None,
        "sender_name": optional_str(dto.get("sender_name")) or default_sender_name(sender, own, identity),
        "is_unread": False if own else is_unread_flag(dto),
    })


def _recipient_avatar(dto: dict[str, Any]) -> Optional[str]:
    for key in ("recipient_user", "recipientUser"):
        inner = dto.get(key)
        if isinstance(inner, dict):
            url = _avatar(inner)
            if url:
                return url
    return optional_str(dto.get("recipient_avatar_url"))


def messages_from_payload(payload: Any, identity: Identity, profile: InboxProfile) -> list[Message]:
    messages: list[Message] = []
    for index, dto in enumerate(extract_messages_array(payload)):
        if not isinstance(dto, dict):
            logger.warning("Skipping malformed message record at index %d: %r", index, dto)
            continue
        messages.append(message_from_dto(dto, identity, profile, index))
    return messages


USER_LIST_KEYS = ("users", "data", "results", "items", "counselors", "students")
USER_ID_KEYS = ("id", "user_id", "account_id", "student_id", "counselor_id")


def _user_name(user: dict[str, Any]) -> Optional[str]:
    for key in ("name", "full_name", "fullName", "display_name"):
        name = optional_str(user.get(key))
        if name:
            return name
    parts = [optional_str(user.get(k)) for k in ("first_name", "last_name")]
    joined = " ".join(p for p in parts if p)
    return joined or optional_str(user.get("email"))


def peer_from_user(raw: Any, role: str) -> Optional[PeerIdentity]:
    """A directory user as a peer of ``role``; None when it has no id or another role."""
    user = raw.get("user", raw) if isinstance(raw, dict) else None
    if not isinstance(user, dict):
        return None
    peer_id = next((optional_str(user.get(k)) for k in USER_ID_KEYS if optional_str(user.get(k))), None)
    if peer_id is None:
        return None
    for key in ("role", "role_name", "account_type", "type"):
        listed = canonical_role(user.get(key))
        if listed:
            if listed != role:
                return None
            break
    return PeerIdentity(
        id=peer_id,
        name=_user_name(user) or f"{role_label(role)} #{peer_id}",
        role=role,
        avatar_url=_avatar(user),
    )


def peers_from_payload(payload: Any, role: str) -> list[PeerIdentity]:
    if isinstance(payload, dict):
        rows = next((payload[k] for k in USER_LIST_KEYS if isinstance(payload.get(k), list)), [])
    elif isinstance(payload, list):
        rows = payload
    else:
        rows = []
    peers: list[PeerIdentity] = []
    seen: set[str] = set()
    for raw in rows:
        peer = peer_from_user(raw, role)
        if peer is None or peer.id in seen:
            continue
        seen.add(peer.id)  # type: ignore[arg-type]
        peers.append(peer)
    return peers
