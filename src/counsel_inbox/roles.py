"""
Role handling and per-role inbox profiles.

Every role's inbox works the same way; what differs is the endpoint, which
sender kinds count as "me", and which kinds are peers. An InboxProfile
captures those differences so the engine can stay role-agnostic.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from counsel_inbox.errors import UnsupportedRoleError
from counsel_inbox.models.identity import Identity
from counsel_inbox.models.message import SenderKind

OFFICE_NAME = "Guidance & Counseling Office"

REFERRAL_ALIASES = ("referral", "dean", "registrar", "program_chair", "program chair")

ROLE_LABELS = {
    "student": "Student",
    "guest": "Guest",
    "referral_user": "Referral User",
    "counselor": "Counselor",
    "system": "System",
}


def normalize_role(role: Any) -> str:
    """Normalize any backend-provided role value to a lowercase string."""
    if role is None:
        return ""
    return str(role).strip().lower()


def resolve_inbox_role(role: Any) -> str:
    normalized = normalize_role(role)
    if "admin" in normalized:
        return "admin"
    if "counselor" in normalized or "counsellor" in normalized:
        return "counselor"
    if any(alias in normalized for alias in REFERRAL_ALIASES):
        return "referral_user"
    return "student"


def normalize_sender(raw: Any) -> SenderKind:
    """Map a raw sender string onto exactly one SenderKind.

    Unknown values fall into SYSTEM.
    """
    value = normalize_role(raw)
    if value in ("dean", "registrar", "program_chair"):
        return SenderKind.REFERRAL_USER
    try:
        return SenderKind(value)
    except ValueError:
        return SenderKind.SYSTEM


def canonical_role(raw: Any) -> str:
    """Role name in sender-kind vocabulary: referral aliases become ``referral_user``.

    Unknown values are returned normalized so callers can report them.
    """
    value = normalize_role(raw)
    if value in REFERRAL_ALIASES:
        return SenderKind.REFERRAL_USER.value
    if value == "counsellor":
        return SenderKind.COUNSELOR.value
    return value


def role_label(role: Optional[str]) -> str:
    return ROLE_LABELS.get(normalize_role(role), "Counselor")


class InboxProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    endpoint: str
    own_kinds: frozenset[SenderKind]
    peer_kinds: frozenset[SenderKind]
    default_peer_role: Optional[str] = None
    peer_placeholder: str = "Counselor Office"
    requires_recipient: bool = False
    office_inbox: bool = False

    @property
    def peer_roles(self) -> frozenset[str]:
        return frozenset(kind.value for kind in self.peer_kinds)

    def subtitle(self, peer_role: Optional[str]) -> str:
        return f"{role_label(peer_role or self.default_peer_role)} thread"


STUDENT_INBOX = InboxProfile(
    role="student",
    endpoint="/student/messages",
    own_kinds=frozenset({SenderKind.STUDENT, SenderKind.GUEST}),
    peer_kinds=frozenset({SenderKind.COUNSELOR}),
    default_peer_role="counselor",
    peer_placeholder="Counselor Office",
)

REFERRAL_USER_INBOX = InboxProfile(
    role="referral_user",
    endpoint="/referral-user/messages",
    own_kinds=frozenset({SenderKind.REFERRAL_USER}),
    peer_kinds=frozenset({SenderKind.COUNSELOR}),
    default_peer_role="counselor",
    peer_placeholder="Counselor",
    requires_recipient=True,
)

COUNSELOR_INBOX = InboxProfile(
    role="counselor",
    endpoint="/counselor/messages",
    own_kinds=frozenset({SenderKind.COUNSELOR}),
    peer_kinds=frozenset({
        SenderKind.STUDENT, SenderKind.GUEST, SenderKind.REFERRAL_USER, SenderKind.COUNSELOR,
    }),
    default_peer_role=None,
    peer_placeholder="Unknown sender",
    requires_recipient=True,
    office_inbox=True,
)

PROFILES = {
    "student": STUDENT_INBOX,
    "referral_user": REFERRAL_USER_INBOX,
    "counselor": COUNSELOR_INBOX,
}


def profile_for(identity: Identity) -> InboxProfile:
    role = resolve_inbox_role(identity.role)
    try:
        return PROFILES[role]
    except KeyError:
        raise UnsupportedRoleError(role) from None


def own_kind(identity: Identity) -> SenderKind:
    """Sender kind used for messages this identity authors."""
    role = resolve_inbox_role(identity.role)
    if role == "student" and normalize_role(identity.role) == "guest":
        return SenderKind.GUEST
    if role == "referral_user":
        return SenderKind.REFERRAL_USER
    if role == "counselor":
        return SenderKind.COUNSELOR
    return SenderKind.STUDENT
