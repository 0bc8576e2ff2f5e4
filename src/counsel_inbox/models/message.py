"""
Inbox message record.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SenderKind(str, Enum):
    STUDENT = "student"
    GUEST = "guest"
    REFERRAL_USER = "referral_user"
    COUNSELOR = "counselor"
    SYSTEM = "system"


REQUESTER_KINDS = frozenset({SenderKind.STUDENT, SenderKind.GUEST, SenderKind.REFERRAL_USER})


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    server_conversation: bool = False

    sender: SenderKind
    sender_id: Optional[str] = None
    sender_name: str = ""
    sender_avatar_url: Optional[str] = None

    recipient_id: Optional[str] = None
    recipient_role: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_avatar_url: Optional[str] = None

    user_id: Optional[str] = None  # legacy thread owner

    content: str = ""
    created_at: datetime = EPOCH
    updated_at: Optional[datetime] = None

    is_unread: bool = False
    persisted: bool = True
    local: bool = False
