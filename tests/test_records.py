"""Server record normalization."""

from datetime import datetime, timezone

from conftest import dto
from counsel_inbox.models.message import EPOCH, SenderKind
from counsel_inbox.records import (
    extract_messages_array,
    extract_record,
    is_unread_flag,
    message_from_dto,
    messages_from_payload,
    parse_timestamp,
    peers_from_payload,
)


def test_extract_messages_array_shapes():
    rows = [dto(1), dto(2)]
    assert extract_messages_array(rows) == rows
    assert extract_messages_array({"messages": rows}) == rows
    assert extract_messages_array({"data": rows}) == rows
    assert extract_messages_array({"status": "ok"}) == []
    assert extract_messages_array(None) == []


def test_extract_record_shapes():
    record = dto(9, "student", "hello")
    assert extract_record({"messageRecord": record}) == record
    assert extract_record({"data": record}) == record
    assert extract_record(record) == record
    assert extract_record({"status": "ok"}) is None
    assert extract_record(None) is None


def test_unread_flag_variants():
    assert is_unread_flag({"is_read": False})
    assert is_unread_flag({"is_read": 0})
    assert is_unread_flag({"is_read": "0"})
    assert not is_unread_flag({"is_read": True})
    assert not is_unread_flag({"is_read": 1})
    assert not is_unread_flag({})


def test_parse_timestamp():
    assert parse_timestamp("2024-03-01T09:00:00Z") == datetime(2024, 3, 1, 9, tzinfo=timezone.utc)
    naive = parse_timestamp("2024-03-01 09:00:00")
    assert naive.tzinfo is not None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_peer_message_normalized(student, student_profile):
    m = message_from_dto(
        dto(5, "counselor", "hi", conversation_id=11, sender_id=7, recipient_id=42, is_read=0,
            sender_name="Mr. Reyes"),
        student, student_profile,
    )
    assert m.id == "5"
    assert m.conversation_id == "11"
    assert m.server_conversation
    assert m.sender is SenderKind.COUNSELOR
    assert m.sender_name == "Mr. Reyes"
    assert m.is_unread
    assert m.persisted


def test_own_message_never_unread(student, student_profile):
    m = message_from_dto(dto(6, "student", "hey", sender_id=42, is_read=0), student, student_profile)
    assert not m.is_unread
    assert m.sender_name == "Ana Cruz"


def test_missing_id_and_timestamp_get_fallbacks(student, student_profile):
    record = {"sender": "counselor", "content": "legacy", "recipient_id": 42}
    m = message_from_dto(record, student, student_profile, index=3)
    assert m.id.startswith("missing-")
    assert m.id.endswith("-counselor-3")
    assert m.created_at == EPOCH
    assert not m.persisted
    # same input, same id
    assert message_from_dto(record, student, student_profile, index=3).id == m.id


def test_unknown_sender_is_system(student, student_profile):
    m = message_from_dto(dto(8, "robot", "beep"), student, student_profile)
    assert m.sender is SenderKind.SYSTEM
    assert m.sender_name == "Guidance & Counseling Office"


def test_referral_aliases_map_to_referral_user(counselor, counselor_profile):
    m = message_from_dto(dto(8, "dean", "please see", sender_id=300, recipient_id=7), counselor, counselor_profile)
    assert m.sender is SenderKind.REFERRAL_USER


def test_derived_conversation_id_without_server_id(student, student_profile):
    m = message_from_dto(dto(5, "counselor", sender_id=7, recipient_id=42), student, student_profile)
    assert m.conversation_id == "counselor-7"
    assert not m.server_conversation


def test_malformed_records_are_skipped(student, student_profile):
    messages = messages_from_payload({"data": [dto(1, recipient_id=42), "junk", None]}, student, student_profile)
    assert [m.id for m in messages] == ["1"]


def test_peers_from_payload_filters_role_and_dedupes():
    payload = {"data": [
        {"user": {"user_id": 7, "full_name": "Mr. Reyes", "role": "counselor"}},
        {"id": 7, "name": "Mr. Reyes (again)", "role": "counselor"},
        {"id": 300, "name": "Dean Lim", "role": "dean"},
        {"email": "no-id@example.edu", "role": "counselor"},
        {"id": 9, "email": "anon@example.edu"},
    ]}
    peers = peers_from_payload(payload, "counselor")
    assert [(p.id, p.name) for p in peers] == [("7", "Mr. Reyes"), ("9", "anon@example.edu")]

    referral = peers_from_payload(payload["data"], "referral_user")
    assert [(p.id, p.role) for p in referral] == [("300", "referral_user"), ("9", "referral_user")]
    assert peers_from_payload("oops", "counselor") == []
