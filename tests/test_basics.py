"""Basic unit tests for the counsel-inbox package."""

from counsel_inbox import (
    AsyncInbox,
    Inbox,
    InboxError,
    NetworkError,
    ValidationError,
    AuthError,
    FetchCancelledError,
    UnsupportedRoleError,
    Ok,
    Err,
    __version__,
)
from counsel_inbox.models.message import SenderKind


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert Inbox is not None
    assert AsyncInbox is not None


def test_error_hierarchy():
    for cls in (NetworkError, ValidationError, AuthError, FetchCancelledError, UnsupportedRoleError):
        assert issubclass(cls, InboxError)


def test_error_attributes():
    err = InboxError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert str(err) == "something broke"
    assert err.details is None
    assert not err.retryable

    net = NetworkError("down", status=503)
    assert net.code == "network_error"
    assert net.status == 503
    assert net.retryable

    bad = ValidationError("empty", code="empty_content")
    assert bad.code == "empty_content"
    assert not bad.retryable

    role = UnsupportedRoleError("admin")
    assert role.details == {"role": "admin"}


def test_result_tags():
    ok = Ok(3)
    err = Err(NetworkError("down"))
    assert ok.ok and ok.value == 3
    assert not err.ok and err.error.code == "network_error"


def test_sender_kind_values():
    assert SenderKind.REFERRAL_USER == "referral_user"
    assert SenderKind("counselor") is SenderKind.COUNSELOR
