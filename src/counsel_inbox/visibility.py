"""
Which messages a role's inbox may show.
"""

from typing import Iterable, Optional

from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import Message, SenderKind
from counsel_inbox.roles import InboxProfile, normalize_role


def _author_id(message: Message) -> Optional[str]:
    return message.sender_id if message.sender_id is not None else message.user_id


def is_own(message: Message, identity: Identity, profile: InboxProfile) -> bool:
    """True when the signed-in identity authored the message."""
    if message.sender not in profile.own_kinds:
        return False
    author = _author_id(message)
    return author is None or author == identity.id


def _addressed_to_me(message: Message, identity: Identity, profile: InboxProfile) -> bool:
    if message.recipient_id is not None:
        return message.recipient_id == identity.id
    if message.user_id is not None and message.user_id == identity.id:
        return True
    if profile.office_inbox:
        role = normalize_role(message.recipient_role)
        return role in ("", profile.role)
    return False


def is_visible(message: Message, identity: Identity, profile: InboxProfile) -> bool:
    if message.sender is SenderKind.SYSTEM:
        return True
    if is_own(message, identity, profile):
        role = normalize_role(message.recipient_role) or profile.default_peer_role
        return role in profile.peer_roles
    if message.sender in profile.peer_kinds:
        return _addressed_to_me(message, identity, profile)
    return False


def filter_visible(messages: Iterable[Message], identity: Identity, profile: InboxProfile) -> list[Message]:
    return [m for m in messages if is_visible(m, identity, profile)]
