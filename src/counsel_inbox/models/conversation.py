"""
Conversation models — derived from the message store, never persisted.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from counsel_inbox.models.message import EPOCH


class PeerIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str
    role: str
    avatar_url: Optional[str] = None


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    peer: PeerIdentity
    subtitle: str = ""
    unread_count: int = 0
    last_message: str = ""
    last_timestamp: datetime = EPOCH
    message_ids: tuple[str, ...] = ()

    @property
    def peer_name(self) -> str:
        return self.peer.name
