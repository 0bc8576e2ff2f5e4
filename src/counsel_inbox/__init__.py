"""
counsel-inbox — conversation sync client for the counseling-office portal.

Turns the flat message list served by the REST API into ordered,
peer-scoped conversation threads, with optimistic send/edit/delete and
read-state tracking.
"""

from counsel_inbox.client import AsyncInbox, Inbox
from counsel_inbox.auth import Auth
from counsel_inbox.errors import (
    InboxError,
    NetworkError,
    ValidationError,
    AuthError,
    FetchCancelledError,
    UnsupportedRoleError,
)
from counsel_inbox.models.conversation import Conversation, PeerIdentity
from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import Message, SenderKind
from counsel_inbox.mutations import Ok, Err
from counsel_inbox.store import MessageStore
from counsel_inbox.sync import SyncCoordinator

__version__ = "0.1.0"
__all__ = [
    "AsyncInbox",
    "Inbox",
    "Auth",
    "InboxError",
    "NetworkError",
    "ValidationError",
    "AuthError",
    "FetchCancelledError",
    "UnsupportedRoleError",
    "Conversation",
    "PeerIdentity",
    "Identity",
    "Message",
    "SenderKind",
    "Ok",
    "Err",
    "MessageStore",
    "SyncCoordinator",
]
